"""
Security utilities for authentication

JWT bearer token verification shared by the HTTP API and both Socket.IO
namespaces.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from jose import JWTError, jwt

from app.core.errors import AuthenticationError


def create_access_token(
    user_id: int,
    secret_key: str,
    algorithm: str = "HS256",
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create JWT access token

    Args:
        user_id: User id stored in the ``sub`` claim
        secret_key: Signing key
        algorithm: Signing algorithm
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=60))
    payload = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
        "type": "access",
    }
    return jwt.encode(payload, secret_key, algorithm=algorithm)


class TokenVerifier:
    """Validate bearer credentials and resolve the user id they carry"""

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def decode(self, token: str) -> dict[str, Any]:
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            raise AuthenticationError("Could not validate credentials") from e

    def verify(self, token: Optional[str]) -> int:
        """
        Verify token and extract user ID

        The id is read from ``sub``; tokens issued by the account service
        carry it in ``id`` instead.

        Raises:
            AuthenticationError: missing, invalid or expired token
        """
        if not token:
            raise AuthenticationError("Missing bearer token")

        payload = self.decode(token)
        raw_id = payload.get("sub", payload.get("id"))
        try:
            return int(raw_id)
        except (TypeError, ValueError) as e:
            raise AuthenticationError("Token does not identify a user") from e


def parse_bearer(value: Optional[str]) -> Optional[str]:
    """Extract the credential from an ``Authorization: Bearer <token>`` value"""
    if not value:
        return None
    scheme, _, credential = value.partition(" ")
    if scheme.lower() != "bearer" or not credential.strip():
        return None
    return credential.strip()


def extract_handshake_token(
    auth: Optional[Mapping[str, Any]], environ: Mapping[str, Any]
) -> Optional[str]:
    """
    Find the bearer credential of a Socket.IO handshake.

    The ``auth.token`` field wins over the Authorization header.
    """
    if isinstance(auth, Mapping):
        token = auth.get("token")
        if isinstance(token, str) and token:
            return parse_bearer(token) or token
    return parse_bearer(environ.get("HTTP_AUTHORIZATION"))
