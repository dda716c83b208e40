"""Chat application service.

Orchestrates inquiry conversations:
- Chat summaries with unread counts
- Paged message history enriched with senders and replies
- Sending with client-id deduplication
- Monotonic delivery/read receipts
- Realtime fan-out of inserts and updates
- Abuse reports
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.application.realtime import ChatEventHub, event_message, get_event_hub
from storefront.catalog.repository import ProductRepository
from storefront.domain import (
    REPORT_REASONS,
    Chat,
    EmptyMessageError,
    Inquiry,
    Message,
    MessageCreated,
    MessageTooLongError,
    MessageUpdated,
    NotFoundError,
    PermissionDeniedError,
    Product,
    Report,
    ReportStatus,
    User,
    ValidationError,
    new_id,
    utcnow,
)
from storefront.infrastructure.config import settings
from storefront.infrastructure.images import ensure_image_url
from storefront.infrastructure.repositories import (
    ChatRepository,
    InquiryRepository,
    MessageRepository,
    ReportRepository,
    UserRepository,
)

logger = structlog.get_logger()


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class ChatSummary:
    """One row of the chat list."""

    chat: Chat
    inquiry: Inquiry
    other_user: User | None
    product: Product | None
    last_message: Message | None = None
    unread_count: int = 0

    @property
    def last_activity(self) -> datetime:
        """Time of the last message, or chat creation."""
        return self.last_message.created_at if self.last_message else self.chat.created_at


@dataclass
class MessagePage:
    """A page of history in chronological order."""

    messages: list[dict[str, Any]] = field(default_factory=list)
    page: int = 1
    page_size: int = 50
    has_more: bool = False


@dataclass
class SendResult:
    """Result of sending a message."""

    message: Message
    created: bool = True


# ============================================================================
# Chat Service
# ============================================================================


class ChatService:
    """Service for chat operations."""

    def __init__(
        self,
        session: AsyncSession,
        request_id: str | None = None,
        hub: ChatEventHub | None = None,
    ) -> None:
        """Initialize service.

        Args:
            session: Database session.
            request_id: Request ID for correlation.
            hub: Realtime event hub.
        """
        self.session = session
        self.request_id = request_id
        self.chat_repo = ChatRepository(session)
        self.message_repo = MessageRepository(session)
        self.inquiry_repo = InquiryRepository(session)
        self.report_repo = ReportRepository(session)
        self.user_repo = UserRepository(session)
        self.product_repo = ProductRepository(session)
        self.hub = hub or get_event_hub()

    # -------------------------------------------------------------------------
    # Access
    # -------------------------------------------------------------------------

    async def load_chat(
        self, chat_id: str, user: User, write: bool = False
    ) -> tuple[Chat, Inquiry]:
        """Load a chat the user may access.

        Participants may read and write; admins may only read.

        Raises:
            NotFoundError: If the chat does not exist.
            PermissionDeniedError: If the user may not access it.
        """
        chat = await self.chat_repo.get(chat_id)
        inquiry = await self.inquiry_repo.get(chat.inquiry_id) if chat else None
        if chat is None or inquiry is None:
            raise NotFoundError("Chat", chat_id)
        if user.id in inquiry.participants():
            return chat, inquiry
        if user.is_admin and not write:
            return chat, inquiry
        raise PermissionDeniedError(
            "You are not a participant of this chat",
            details={"chat_id": chat_id},
        )

    # -------------------------------------------------------------------------
    # Chat list
    # -------------------------------------------------------------------------

    async def list_chats(self, user: User) -> list[ChatSummary]:
        """The user's chats, most recent activity first."""
        inquiries = {i.id: i for i in await self.inquiry_repo.list_for_user(user.id)}
        summaries = [
            await self._summarize(chat, inquiries[chat.inquiry_id], user)
            for chat in await self.chat_repo.list_for_inquiries(set(inquiries))
        ]
        return sorted(summaries, key=lambda s: s.last_activity, reverse=True)

    async def get_chat(self, chat_id: str, user: User) -> ChatSummary:
        """A single chat summary (deep links, admin view)."""
        chat, inquiry = await self.load_chat(chat_id, user)
        return await self._summarize(chat, inquiry, user)

    async def total_unread(self, user: User) -> int:
        """Unread messages across every chat of the user."""
        return sum(s.unread_count for s in await self.list_chats(user))

    async def _summarize(self, chat: Chat, inquiry: Inquiry, viewer: User) -> ChatSummary:
        other_id = inquiry.other_participant(viewer.id)
        return ChatSummary(
            chat=chat,
            inquiry=inquiry,
            other_user=await self.user_repo.get(other_id),
            product=await self.product_repo.get(inquiry.product_id),
            last_message=await self.message_repo.latest(chat.id),
            unread_count=await self.message_repo.count_unread(chat.id, viewer.id),
        )

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    async def list_messages(self, chat_id: str, user: User, page: int = 1) -> MessagePage:
        """A page of history, fetched newest first and returned oldest first.

        Page 1 holds the latest messages; higher pages go back in time.
        """
        if page < 1:
            raise ValidationError("Page must be >= 1", details={"page": page})
        await self.load_chat(chat_id, user)
        page_size = settings.messages_page_size
        rows = await self.message_repo.page_newest_first(chat_id, page, page_size)
        return MessagePage(
            messages=[await self.enrich(m) for m in reversed(rows)],
            page=page,
            page_size=page_size,
            has_more=len(rows) == page_size,
        )

    async def enrich(self, message: Message) -> dict[str, Any]:
        """Wire format plus sender profile and the replied-to message."""
        data = message.to_dict()
        data["sender"] = await self._sender(message.sender_user_id)
        data["reply_to"] = None
        if message.reply_to_message_id:
            original = await self.message_repo.get(message.reply_to_message_id)
            if original is not None:
                data["reply_to"] = {
                    "id": original.id,
                    "message": original.message,
                    "media_url": original.media_url,
                    "media_type": original.media_type,
                    "sender": await self._sender(original.sender_user_id),
                }
        return data

    async def _sender(self, user_id: str) -> dict[str, Any]:
        sender = await self.user_repo.get(user_id)
        if sender is None:
            return {"id": user_id, "name": "Unknown", "avatar_url": None}
        return sender.public_profile()

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    async def send_message(
        self,
        chat_id: str,
        sender: User,
        text: str | None = None,
        media_url: str | None = None,
        media_type: str | None = None,
        reply_to_message_id: str | None = None,
        client_id: str | None = None,
    ) -> SendResult:
        """Store and broadcast a message.

        A repeated ``client_id`` from the same sender returns the message
        stored the first time.

        Raises:
            EmptyMessageError: If there is neither text nor media.
            MessageTooLongError: If the text exceeds the limit.
            ValidationError: If the reply target is not in this chat.
        """
        chat, inquiry = await self.load_chat(chat_id, sender, write=True)
        if client_id:
            existing = await self.message_repo.get_by_client_id(chat.id, sender.id, client_id)
            if existing is not None:
                logger.info(
                    "Duplicate send ignored",
                    chat_id=chat.id,
                    message_id=existing.id,
                    client_id=client_id,
                    request_id=self.request_id,
                )
                return SendResult(message=existing, created=False)

        message = await self.post(
            chat,
            inquiry,
            sender.id,
            text=text,
            media_url=media_url,
            media_type=media_type,
            reply_to_message_id=reply_to_message_id,
            client_id=client_id,
        )
        return SendResult(message=message)

    async def validate_reply_target(self, chat: Chat, reply_to_message_id: str | None) -> None:
        """Check that a reply points at a message of the same chat.

        Raises:
            ValidationError: If the target is missing or in another chat.
        """
        if not reply_to_message_id:
            return
        original = await self.message_repo.get(reply_to_message_id)
        if original is None or original.chat_id != chat.id:
            raise ValidationError(
                "Reply target is not a message of this chat",
                details={"reply_to_message_id": reply_to_message_id},
                error_code="INVALID_REPLY_TARGET",
            )

    async def post(
        self,
        chat: Chat,
        inquiry: Inquiry,
        sender_user_id: str,
        text: str | None = None,
        media_url: str | None = None,
        media_type: str | None = None,
        reply_to_message_id: str | None = None,
        client_id: str | None = None,
    ) -> Message:
        """Validate, store and publish a message without access checks."""
        body = (text or "").strip()
        if media_url:
            media_url = ensure_image_url(media_url)
            media_type = media_type or "image"
        if not body and not media_url:
            raise EmptyMessageError()
        if len(body) > settings.max_message_length:
            raise MessageTooLongError(len(body), settings.max_message_length)
        await self.validate_reply_target(chat, reply_to_message_id)

        message = Message(
            id=new_id(),
            chat_id=chat.id,
            sender_user_id=sender_user_id,
            message=body,
            media_url=media_url,
            media_type=media_type if media_url else None,
            reply_to_message_id=reply_to_message_id,
            client_id=client_id,
        )
        await self.message_repo.save(message)

        self.hub.publish_chat(
            chat.id,
            event_message(
                MessageCreated(
                    aggregate_id=message.id,
                    aggregate_type="Message",
                    chat_id=chat.id,
                    message=await self.enrich(message),
                )
            ),
        )
        for recipient in inquiry.participants() - {sender_user_id}:
            await self._publish_activity(chat, inquiry, recipient)

        logger.info(
            "Message sent",
            chat_id=chat.id,
            message_id=message.id,
            sender_user_id=sender_user_id,
            has_media=bool(media_url),
            request_id=self.request_id,
        )
        return message

    # -------------------------------------------------------------------------
    # Receipts
    # -------------------------------------------------------------------------

    async def mark_read(self, chat_id: str, user: User) -> int:
        """Mark every incoming message as read.

        Returns:
            Number of messages changed.
        """
        return await self._mark(chat_id, user, read=True)

    async def mark_delivered(self, chat_id: str, user: User) -> int:
        """Mark every incoming message as delivered.

        Returns:
            Number of messages changed.
        """
        return await self._mark(chat_id, user, read=False)

    async def _mark(self, chat_id: str, user: User, read: bool) -> int:
        chat, inquiry = await self.load_chat(chat_id, user)
        if user.id not in inquiry.participants():
            return 0
        now = utcnow()
        changed: list[Message] = []
        for message in await self.message_repo.list_incoming(chat.id, user.id):
            updated = message.mark_read(now) if read else message.mark_delivered(now)
            if updated:
                await self.message_repo.save(message)
                changed.append(message)

        for message in changed:
            self.hub.publish_chat(
                chat.id,
                event_message(
                    MessageUpdated(
                        aggregate_id=message.id,
                        aggregate_type="Message",
                        chat_id=chat.id,
                        message=message.to_dict(),
                    )
                ),
            )
        if changed and read:
            await self._publish_activity(chat, inquiry, user.id)

        if changed:
            logger.info(
                "Receipts updated",
                chat_id=chat.id,
                user_id=user.id,
                receipt="read" if read else "delivered",
                count=len(changed),
                request_id=self.request_id,
            )
        return len(changed)

    async def _publish_activity(self, chat: Chat, inquiry: Inquiry, user_id: str) -> None:
        user = await self.user_repo.get(user_id)
        if user is None:
            return
        summary = await self._summarize(chat, inquiry, user)
        self.hub.publish_user(
            user_id,
            {
                "type": "chat.activity",
                "chat_id": chat.id,
                "unread_count": summary.unread_count,
                "last_message": summary.last_message.to_dict() if summary.last_message else None,
            },
        )

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    async def report_chat(
        self, chat_id: str, reporter: User, reason: str, details: str = ""
    ) -> Report:
        """Report the other participant of a chat.

        Raises:
            ValidationError: If the reason is not one of ``REPORT_REASONS``.
        """
        chat, inquiry = await self.load_chat(chat_id, reporter, write=True)
        if reason not in REPORT_REASONS:
            raise ValidationError(
                "Unknown report reason",
                details={"reason": reason, "allowed": list(REPORT_REASONS)},
                error_code="INVALID_REPORT_REASON",
            )
        report = Report(
            id=new_id(),
            chat_id=chat.id,
            reporter_user_id=reporter.id,
            reported_user_id=inquiry.other_participant(reporter.id),
            reason=reason,
            details=(details or "").strip(),
        )
        await self.report_repo.save(report)
        logger.info(
            "Chat reported",
            report_id=report.id,
            chat_id=chat.id,
            reason=reason,
            request_id=self.request_id,
        )
        return report

    async def list_reports(self, status: ReportStatus | None = None) -> list[Report]:
        """Reports for the admin console."""
        return await self.report_repo.list_reports(status)

    async def resolve_report(
        self,
        report_id: str,
        status: ReportStatus,
        note: str | None = None,
    ) -> Report:
        """Close a report as reviewed or dismissed."""
        report = await self.report_repo.get(report_id)
        if report is None:
            raise NotFoundError("Report", report_id)
        report.resolve(status, note)
        await self.report_repo.save(report)
        logger.info(
            "Report resolved",
            report_id=report_id,
            status=status.value,
            request_id=self.request_id,
        )
        return report


def get_chat_service(session: AsyncSession, request_id: str | None = None) -> ChatService:
    """Get chat service instance.

    Args:
        session: Database session.
        request_id: Request ID for correlation.

    Returns:
        ChatService instance.
    """
    return ChatService(session, request_id=request_id)
