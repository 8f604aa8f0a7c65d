"""
Chat Service

The only writer of Chat/Message state. Enforces participation, keeps the
denormalized last-message/unread fields of a chat in step with its message
log, and hands a notification to the recipient for every message.
"""

from typing import Optional, TYPE_CHECKING

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from app.core.errors import BadRequestError, ForbiddenError, NotFoundError
from app.core.logging import get_logger
from app.core.time import utcnow
from app.models.chat import Chat, ChatStatus, Message
from app.models.notification import NotificationModule
from app.models.product import Product
from app.models.user import User
from app.schemas.notification import NotificationCreate
from app.services.pagination import PageResult, page_window

if TYPE_CHECKING:
    from app.services.notification_service import NotificationDispatcher

logger = get_logger(__name__)

DEFAULT_HEADS_LIMIT = 20
DEFAULT_MESSAGES_LIMIT = 50
PREVIEW_LENGTH = 100
MAX_MESSAGE_LENGTH = 5000


class ChatService:
    def __init__(
        self,
        session: AsyncSession,
        notifier: Optional["NotificationDispatcher"] = None,
        *,
        preview_length: int = PREVIEW_LENGTH,
        max_message_length: int = MAX_MESSAGE_LENGTH,
        heads_limit: int = DEFAULT_HEADS_LIMIT,
        messages_limit: int = DEFAULT_MESSAGES_LIMIT,
    ):
        self.session = session
        self.notifier = notifier
        self.preview_length = preview_length
        self.max_message_length = max_message_length
        self.heads_limit = heads_limit
        self.messages_limit = messages_limit

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @staticmethod
    def _chat_query():
        return (
            select(Chat)
            .options(
                selectinload(Chat.product).selectinload(Product.media),
                selectinload(Chat.user_a),
                selectinload(Chat.user_b),
            )
            .execution_options(populate_existing=True)
        )

    async def _load_chat(self, chat_id: int) -> Optional[Chat]:
        result = await self.session.execute(self._chat_query().where(Chat.id == chat_id))
        return result.scalars().first()

    async def _find_chat(self, product_id: int, user_a_id: int, user_b_id: int) -> Optional[Chat]:
        result = await self.session.execute(
            select(Chat.id).where(
                Chat.product_id == product_id,
                Chat.user_a_id == user_a_id,
                Chat.user_b_id == user_b_id,
            )
        )
        chat_id = result.scalar_one_or_none()
        if chat_id is None:
            return None
        return await self._load_chat(chat_id)

    async def _get_participant_chat(self, chat_id: int, user_id: int, *, load: bool = False) -> Chat:
        """Fetch a chat the user takes part in"""
        if load:
            chat = await self._load_chat(chat_id)
        else:
            chat = await self.session.get(Chat, chat_id, populate_existing=True)

        if chat is None:
            raise NotFoundError("Chat not found")
        if not chat.has_participant(user_id):
            raise ForbiddenError("You are not part of this chat")
        return chat

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    async def initiate_chat(self, product_id: int, user_b_id: int, requester_id: int) -> Chat:
        """
        Return the chat for (product, owner, user_b), creating it on first use.

        userA is always the product owner. Repeated calls never duplicate
        the chat; a concurrent insert losing the unique-constraint race
        resolves to the row that won.
        """
        product = await self.session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found")

        user_b = await self.session.get(User, user_b_id)
        if user_b is None:
            raise NotFoundError("User not found")

        user_a_id = product.user_id
        if user_a_id == user_b_id:
            raise BadRequestError("Cannot initiate chat with yourself")

        if requester_id not in (user_a_id, user_b_id):
            raise ForbiddenError("You are not authorized to initiate this chat")

        chat = await self._find_chat(product_id, user_a_id, user_b_id)
        if chat is not None:
            return chat

        new_chat = Chat(
            product_id=product_id,
            user_a_id=user_a_id,
            user_b_id=user_b_id,
            unread_count_user_a=0,
            unread_count_user_b=0,
            status=ChatStatus.ACTIVE.value,
        )
        self.session.add(new_chat)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            chat = await self._find_chat(product_id, user_a_id, user_b_id)
            if chat is None:
                raise
            return chat

        logger.info(f"Chat {new_chat.id} created for product {product_id} between users {user_a_id} and {user_b_id}")
        return await self._load_chat(new_chat.id)

    async def get_chat_heads(
        self, user_id: int, page: Optional[int] = None, limit: Optional[int] = None
    ) -> PageResult[Chat]:
        """Chats of the user, most recent conversation first; chats without messages last"""
        page, limit, offset = page_window(page, limit, self.heads_limit)
        participant = or_(Chat.user_a_id == user_id, Chat.user_b_id == user_id)

        total = await self.session.scalar(select(func.count(Chat.id)).where(participant))

        stmt = (
            self._chat_query()
            .where(participant)
            .order_by(
                Chat.last_message_at.is_(None),
                Chat.last_message_at.desc(),
                Chat.created_at.desc(),
                Chat.id.desc(),
            )
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return PageResult(list(result.scalars().all()), total or 0, page, limit)

    async def get_messages(
        self, chat_id: int, user_id: int, page: Optional[int] = None, limit: Optional[int] = None
    ) -> PageResult[Message]:
        """
        Page through a chat's history.

        Page 1 holds the most recent messages; each page is returned oldest
        first.
        """
        page, limit, offset = page_window(page, limit, self.messages_limit)
        await self._get_participant_chat(chat_id, user_id)

        total = await self.session.scalar(
            select(func.count(Message.id)).where(Message.chat_id == chat_id)
        )
        result = await self.session.execute(
            select(Message)
            .where(Message.chat_id == chat_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .offset(offset)
            .limit(limit)
        )
        messages = list(result.scalars().all())
        messages.reverse()
        return PageResult(messages, total or 0, page, limit)

    async def send_message(
        self,
        chat_id: int,
        sender_id: int,
        content: str,
        create_in_app_notification: bool = True,
    ) -> Message:
        """
        Persist a message and update the chat in one transaction.

        The recipient's unread counter is incremented in SQL so concurrent
        senders cannot lose updates. The returned message carries the
        participant-checked chat as ``message.chat``.
        """
        chat = await self._get_participant_chat(chat_id, sender_id)

        if not chat.is_active:
            raise BadRequestError("This chat is no longer active")
        if not content or not content.strip():
            raise BadRequestError("Message content is required")
        if len(content) > self.max_message_length:
            raise BadRequestError(f"Message content must be at most {self.max_message_length} characters")

        recipient_counter = (
            Chat.unread_count_user_b if sender_id == chat.user_a_id else Chat.unread_count_user_a
        )
        preview = content[: self.preview_length]
        sent_at = utcnow()

        message = Message(
            chat_id=chat.id,
            sender_id=sender_id,
            content=content,
            is_read=False,
            created_at=sent_at,
            updated_at=sent_at,
        )
        self.session.add(message)
        try:
            await self.session.flush()
            await self.session.execute(
                update(Chat)
                .where(Chat.id == chat.id)
                .values(
                    {
                        recipient_counter: recipient_counter + 1,
                        Chat.last_message: preview,
                        Chat.last_message_at: sent_at,
                    }
                )
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        set_committed_value(chat, "last_message", preview)
        set_committed_value(chat, "last_message_at", sent_at)
        set_committed_value(message, "chat", chat)

        if create_in_app_notification:
            await self._notify_recipient(chat, sender_id, preview)

        return message

    async def _notify_recipient(self, chat: Chat, sender_id: int, preview: str) -> None:
        """Best-effort: the message is already committed"""
        if self.notifier is None:
            return
        try:
            sender = await self.session.get(User, sender_id)
            sender_name = sender.display_name if sender else "Someone"
            self.notifier.dispatch(
                NotificationCreate(
                    user_id=chat.other_participant(sender_id),
                    title="New Message",
                    message=f"You have a new message from {sender_name}",
                    module=NotificationModule.MESSAGE,
                    resource_id=sender_id,
                    payload={
                        "chatId": chat.id,
                        "senderId": sender_id,
                        "senderName": sender_name,
                        "messageContent": preview,
                        "productId": chat.product_id,
                    },
                )
            )
        except Exception as e:
            logger.error(f"Error creating in-app notification for chat {chat.id}: {e}", exc_info=e)

    async def mark_messages_as_read(self, chat_id: int, user_id: int) -> int:
        """
        Mark the other participant's unread messages as read and reset the
        caller's counter. Returns the number of messages flipped.
        """
        chat = await self._get_participant_chat(chat_id, user_id)
        own_counter = (
            Chat.unread_count_user_a if user_id == chat.user_a_id else Chat.unread_count_user_b
        )

        try:
            result = await self.session.execute(
                update(Message)
                .where(
                    Message.chat_id == chat_id,
                    Message.sender_id != user_id,
                    Message.is_read.is_(False),
                )
                .values(is_read=True, read_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await self.session.execute(
                update(Chat)
                .where(Chat.id == chat_id)
                .values({own_counter: 0})
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        return result.rowcount or 0

    async def get_chat_by_id(self, chat_id: int, user_id: int) -> Chat:
        return await self._get_participant_chat(chat_id, user_id, load=True)

    async def get_unread_count(self, user_id: int) -> int:
        """Sum of the role-appropriate unread counter over the user's chats"""
        own_counter = case(
            (Chat.user_a_id == user_id, Chat.unread_count_user_a),
            else_=Chat.unread_count_user_b,
        )
        total = await self.session.scalar(
            select(func.coalesce(func.sum(own_counter), 0)).where(
                or_(Chat.user_a_id == user_id, Chat.user_b_id == user_id)
            )
        )
        return int(total or 0)

    async def deactivate_chats_for_product(self, product_id: int) -> int:
        """Close every chat about a product (called when the product is completed)"""
        result = await self.session.execute(
            update(Chat)
            .where(Chat.product_id == product_id, Chat.status == ChatStatus.ACTIVE.value)
            .values(status=ChatStatus.INACTIVE.value)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        affected = result.rowcount or 0
        if affected:
            logger.info(f"Deactivated {affected} chat(s) for product {product_id}")
        return affected
