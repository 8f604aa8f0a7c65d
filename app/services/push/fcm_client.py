"""
Firebase Cloud Messaging client

Sends push notifications through the FCM HTTP v1 API. Delivery is
best-effort: nothing here raises to the caller, failures are logged, and
tokens FCM reports as dead are removed from the device token store.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

import httpx
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings
from app.core.logging import get_logger
from app.models.token import UserToken

logger = get_logger(__name__)

FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"

# FCM error codes that mean the registration token will never work again
INVALID_TOKEN_ERRORS = {"UNREGISTERED", "INVALID_ARGUMENT"}

AccessTokenProvider = Callable[[], Awaitable[str]]


@dataclass
class PushResult:
    success_count: int = 0
    failure_count: int = 0
    invalid_tokens: List[str] = field(default_factory=list)

    def merge(self, other: "PushResult") -> "PushResult":
        self.success_count += other.success_count
        self.failure_count += other.failure_count
        self.invalid_tokens.extend(other.invalid_tokens)
        return self


def service_account_token_provider(credentials) -> AccessTokenProvider:
    """Wrap google-auth credentials; refresh runs in a worker thread"""

    async def provide() -> str:
        if not credentials.valid:
            await asyncio.to_thread(credentials.refresh, GoogleAuthRequest())
        return credentials.token

    return provide


def load_service_account(settings: Settings):
    if settings.fcm_credentials_json:
        info = json.loads(settings.fcm_credentials_json)
        return service_account.Credentials.from_service_account_info(info, scopes=[FCM_SCOPE])
    if settings.fcm_credentials_file:
        return service_account.Credentials.from_service_account_file(
            settings.fcm_credentials_file, scopes=[FCM_SCOPE]
        )
    return None


class FcmClient:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        project_id: Optional[str] = None,
        token_provider: Optional[AccessTokenProvider] = None,
        batch_size: int = 500,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session_factory = session_factory
        self.project_id = project_id
        self.token_provider = token_provider
        self.batch_size = batch_size
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(
        cls, settings: Settings, session_factory: async_sessionmaker[AsyncSession]
    ) -> "FcmClient":
        """Build a client; a misconfigured push setup yields a disabled client"""
        token_provider = None
        if settings.push_configured:
            try:
                credentials = load_service_account(settings)
                if credentials is not None:
                    token_provider = service_account_token_provider(credentials)
            except (OSError, ValueError) as e:
                logger.error(f"Failed to load FCM service account credentials: {e}")
        else:
            logger.info("Push notifications disabled (FCM not configured)")

        return cls(
            session_factory,
            project_id=settings.fcm_project_id,
            token_provider=token_provider,
            batch_size=settings.fcm_batch_size,
            timeout=settings.fcm_timeout_seconds,
        )

    @property
    def is_enabled(self) -> bool:
        return bool(self.project_id and self.token_provider)

    @property
    def send_url(self) -> str:
        return FCM_SEND_URL.format(project_id=self.project_id)

    # ------------------------------------------------------------------
    # Message building
    # ------------------------------------------------------------------
    @staticmethod
    def stringify_data(data: Optional[Dict[str, Any]]) -> Dict[str, str]:
        """FCM data payloads only carry string values"""
        result = {}
        for key, value in (data or {}).items():
            if value is None:
                continue
            if isinstance(value, str):
                result[key] = value
            elif isinstance(value, bool):
                result[key] = "true" if value else "false"
            elif isinstance(value, (int, float)):
                result[key] = str(value)
            else:
                result[key] = json.dumps(value, default=str)
        return result

    def build_message(
        self, token: str, title: str, body: str, data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        return {
            "message": {
                "token": token,
                "notification": {"title": title, "body": body},
                "data": self.stringify_data(data),
                "android": {"priority": "high", "notification": {"sound": "default"}},
                "apns": {"payload": {"aps": {"sound": "default"}}},
            }
        }

    @staticmethod
    def is_invalid_token_response(response: httpx.Response) -> bool:
        if response.status_code == 404:
            return True
        try:
            body = response.json()
        except ValueError:
            return False
        error = body.get("error") if isinstance(body, dict) else None
        if not isinstance(error, dict):
            return False
        if error.get("status") == "NOT_FOUND":
            return True
        details = error.get("details")
        if not isinstance(details, list):
            return False
        return any(
            isinstance(detail, dict) and detail.get("errorCode") in INVALID_TOKEN_ERRORS
            for detail in details
        )

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------
    async def _send_one(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]],
    ) -> PushResult:
        try:
            response = await client.post(
                self.send_url,
                json=self.build_message(token, title, body, data),
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as e:
            logger.error(f"FCM request failed: {e}")
            return PushResult(failure_count=1)

        if response.is_success:
            return PushResult(success_count=1)

        invalid = self.is_invalid_token_response(response)
        logger.warning(f"FCM rejected token ({response.status_code}): {response.text[:200]}")
        return PushResult(failure_count=1, invalid_tokens=[token] if invalid else [])

    async def _send_batches(
        self, tokens: Sequence[str], title: str, body: str, data: Optional[Dict[str, Any]]
    ) -> PushResult:
        result = PushResult()
        access_token = await self.token_provider()
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            for start in range(0, len(tokens), self.batch_size):
                batch = tokens[start:start + self.batch_size]
                outcomes = await asyncio.gather(
                    *(self._send_one(client, access_token, t, title, body, data) for t in batch)
                )
                for outcome in outcomes:
                    result.merge(outcome)
        return result

    async def send_to_tokens(
        self,
        tokens: Iterable[str],
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> PushResult:
        """Multicast in batches; dead tokens are garbage-collected"""
        tokens = list(dict.fromkeys(t for t in tokens if t))
        if not tokens:
            return PushResult()
        if not self.is_enabled:
            logger.debug("Push skipped: FCM disabled")
            return PushResult()

        try:
            result = await self._send_batches(tokens, title, body, data)
        except Exception as e:
            logger.error(f"Error sending push notification: {e}", exc_info=e)
            return PushResult(failure_count=len(tokens))

        if result.invalid_tokens:
            await self.remove_invalid_tokens(result.invalid_tokens)
        logger.info(
            f"Push sent: {result.success_count} succeeded, {result.failure_count} failed"
        )
        return result

    async def send_to_token(
        self, token: str, title: str, body: str, data: Optional[Dict[str, Any]] = None
    ) -> bool:
        result = await self.send_to_tokens([token], title, body, data)
        return result.success_count == 1

    async def send_to_user(
        self, user_id: int, title: str, body: str, data: Optional[Dict[str, Any]] = None
    ) -> PushResult:
        if not self.is_enabled:
            return PushResult()
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(UserToken.fcm_token).where(UserToken.user_id == user_id)
                )
                tokens = list(result.scalars().all())
        except Exception as e:
            logger.error(f"Failed to load device tokens for user {user_id}: {e}", exc_info=e)
            return PushResult()

        if not tokens:
            logger.debug(f"No device tokens for user {user_id}")
            return PushResult()
        return await self.send_to_tokens(tokens, title, body, data)

    async def send_to_all_users(
        self,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
        exclude_user_ids: Optional[Iterable[int]] = None,
    ) -> PushResult:
        """Broadcast to every device bound to a user"""
        if not self.is_enabled:
            return PushResult()
        excluded = set(exclude_user_ids or ())
        try:
            async with self.session_factory() as session:
                stmt = select(UserToken.fcm_token).where(UserToken.user_id.is_not(None))
                if excluded:
                    stmt = stmt.where(UserToken.user_id.not_in(excluded))
                result = await session.execute(stmt)
                tokens = list(result.scalars().all())
        except Exception as e:
            logger.error(f"Failed to load device tokens for broadcast: {e}", exc_info=e)
            return PushResult()
        return await self.send_to_tokens(tokens, title, body, data)

    async def remove_invalid_tokens(self, tokens: Sequence[str]) -> int:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    delete(UserToken)
                    .where(UserToken.fcm_token.in_(list(tokens)))
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
        except Exception as e:
            logger.error(f"Failed to remove invalid FCM tokens: {e}", exc_info=e)
            return 0
        removed = result.rowcount or 0
        logger.info(f"Removed {removed} invalid FCM token(s)")
        return removed
