"""Repositories for members, conversations and site content.

Each repository wraps an ``AsyncSession`` and maps the tables of
``storefront.infrastructure.models`` to domain entities. Writes are
flushed, never committed; the caller's session scope owns the transaction.
"""

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.domain import (
    Chat,
    HeroSlide,
    Inquiry,
    InquiryStatus,
    Message,
    OtpChallenge,
    Report,
    ReportStatus,
    Session,
    User,
    WishlistEntry,
)
from storefront.infrastructure.models import (
    AdminModel,
    ChatModel,
    HeroSlideModel,
    InquiryModel,
    MessageModel,
    OtpChallengeModel,
    ReportModel,
    SessionModel,
    UserModel,
    WebsiteSettingModel,
    WishlistModel,
)


# ============================================================================
# Identity
# ============================================================================


class UserRepository:
    """Repository for users and admin membership."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def save(self, user: User) -> User:
        """Insert or update a user; ``is_admin`` maps to an admins row."""
        model = await self.session.merge(UserModel.from_entity(user))
        if user.is_admin and model.admin is None:
            model.admin = AdminModel(user_id=user.id)
        elif not user.is_admin and model.admin is not None:
            model.admin = None
        await self.session.flush()
        return user

    async def get(self, user_id: str) -> User | None:
        """Get user by ID."""
        model = await self.session.get(UserModel, user_id)
        return model.to_entity() if model else None

    async def get_many(self, user_ids: set[str]) -> dict[str, User]:
        """Users keyed by id; unknown ids are left out."""
        if not user_ids:
            return {}
        result = await self.session.execute(
            select(UserModel).where(UserModel.id.in_(user_ids))
        )
        return {model.id: model.to_entity() for model in result.scalars().all()}

    async def get_by_phone(self, phone: str) -> User | None:
        """Get user by normalised phone number."""
        result = await self.session.execute(select(UserModel).where(UserModel.phone == phone))
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def get_by_email(self, email: str) -> User | None:
        """Get user by normalised email."""
        result = await self.session.execute(select(UserModel).where(UserModel.email == email))
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def find_all(self, search: str | None = None) -> list[User]:
        """Users newest first, optionally matching name, phone or email."""
        query = select(UserModel)
        if search:
            search_pattern = f"%{search}%"
            query = query.where(
                or_(
                    UserModel.name.ilike(search_pattern),
                    UserModel.phone.ilike(search_pattern),
                    UserModel.email.ilike(search_pattern),
                )
            )
        query = query.order_by(UserModel.created_at.desc(), UserModel.id)
        result = await self.session.execute(query)
        return [model.to_entity() for model in result.scalars().all()]


class SessionRepository:
    """Repository for sessions and pending OTP challenges."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def save(self, auth_session: Session) -> None:
        """Save a session."""
        await self.session.merge(SessionModel.from_entity(auth_session))
        await self.session.flush()

    async def get(self, token: str) -> Session | None:
        """Get session by token."""
        model = await self.session.get(SessionModel, token)
        return model.to_entity() if model else None

    async def delete(self, token: str) -> None:
        """Delete a session."""
        await self.session.execute(delete(SessionModel).where(SessionModel.token == token))

    async def save_challenge(self, challenge: OtpChallenge) -> None:
        """Save (or replace) the challenge for an identifier."""
        await self.session.merge(OtpChallengeModel.from_entity(challenge))
        await self.session.flush()

    async def get_challenge(self, identifier: str) -> OtpChallenge | None:
        """Get the challenge for an identifier."""
        model = await self.session.get(OtpChallengeModel, identifier)
        return model.to_entity() if model else None

    async def delete_challenge(self, identifier: str) -> None:
        """Delete the challenge for an identifier."""
        model = await self.session.get(OtpChallengeModel, identifier)
        if model is not None:
            await self.session.delete(model)
            await self.session.flush()


# ============================================================================
# Wishlist
# ============================================================================


class WishlistRepository:
    """Repository for wishlist entries."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def save(self, entry: WishlistEntry) -> None:
        """Save an entry."""
        await self.session.merge(WishlistModel.from_entity(entry))
        await self.session.flush()

    async def get(self, user_id: str, product_id: str) -> WishlistEntry | None:
        """Get a user's entry for a product."""
        model = await self._get_model(user_id, product_id)
        return model.to_entity() if model else None

    async def delete(self, user_id: str, product_id: str) -> bool:
        """Delete an entry; returns whether it existed."""
        model = await self._get_model(user_id, product_id)
        if model is None:
            return False
        await self.session.delete(model)
        await self.session.flush()
        return True

    async def list_for_user(self, user_id: str) -> list[WishlistEntry]:
        """A user's entries, newest first."""
        result = await self.session.execute(
            select(WishlistModel)
            .where(WishlistModel.user_id == user_id)
            .order_by(WishlistModel.created_at.desc(), WishlistModel.id)
        )
        return [model.to_entity() for model in result.scalars().all()]

    async def count_for_product(self, product_id: str) -> int:
        """How many users saved a product."""
        result = await self.session.execute(
            select(func.count(WishlistModel.id)).where(WishlistModel.product_id == product_id)
        )
        return result.scalar_one()

    async def delete_for_product(self, product_id: str) -> int:
        """Delete every entry of a product."""
        result = await self.session.execute(
            delete(WishlistModel).where(WishlistModel.product_id == product_id)
        )
        return result.rowcount or 0

    async def _get_model(self, user_id: str, product_id: str) -> WishlistModel | None:
        result = await self.session.execute(
            select(WishlistModel).where(
                and_(WishlistModel.user_id == user_id, WishlistModel.product_id == product_id)
            )
        )
        return result.scalar_one_or_none()


# ============================================================================
# Inquiries, Chats and Messages
# ============================================================================


class InquiryRepository:
    """Repository for rental inquiries."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def save(self, inquiry: Inquiry) -> None:
        """Save an inquiry."""
        await self.session.merge(InquiryModel.from_entity(inquiry))
        await self.session.flush()

    async def get(self, inquiry_id: str) -> Inquiry | None:
        """Get inquiry by ID."""
        model = await self.session.get(InquiryModel, inquiry_id)
        return model.to_entity() if model else None

    async def delete_for_product(self, product_id: str) -> int:
        """Delete every inquiry of a product."""
        result = await self.session.execute(
            delete(InquiryModel).where(InquiryModel.product_id == product_id)
        )
        return result.rowcount or 0

    async def list_for_product(
        self, product_id: str, status: InquiryStatus | None = None
    ) -> list[Inquiry]:
        """Inquiries of a product, optionally by status, oldest first."""
        conditions = [InquiryModel.product_id == product_id]
        if status is not None:
            conditions.append(InquiryModel.status == status.value)
        result = await self.session.execute(
            select(InquiryModel).where(and_(*conditions)).order_by(InquiryModel.created_at)
        )
        return [model.to_entity() for model in result.scalars().all()]

    async def count_for_product(self, product_id: str) -> int:
        """Number of inquiries about a product."""
        result = await self.session.execute(
            select(func.count(InquiryModel.id)).where(InquiryModel.product_id == product_id)
        )
        return result.scalar_one()

    async def list_for_user(self, user_id: str) -> list[Inquiry]:
        """Inquiries where the user is owner or renter, newest first."""
        result = await self.session.execute(
            select(InquiryModel)
            .where(
                or_(
                    InquiryModel.owner_user_id == user_id,
                    InquiryModel.renter_user_id == user_id,
                )
            )
            .order_by(InquiryModel.created_at.desc(), InquiryModel.id)
        )
        return [model.to_entity() for model in result.scalars().all()]


class ChatRepository:
    """Repository for chats."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def save(self, chat: Chat) -> None:
        """Save a chat."""
        await self.session.merge(ChatModel.from_entity(chat))
        await self.session.flush()

    async def get(self, chat_id: str) -> Chat | None:
        """Get chat by ID."""
        model = await self.session.get(ChatModel, chat_id)
        return model.to_entity() if model else None

    async def get_by_inquiry(self, inquiry_id: str) -> Chat | None:
        """Get the chat of an inquiry."""
        result = await self.session.execute(
            select(ChatModel).where(ChatModel.inquiry_id == inquiry_id)
        )
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def list_for_inquiries(self, inquiry_ids: set[str]) -> list[Chat]:
        """Chats belonging to any of the given inquiries."""
        if not inquiry_ids:
            return []
        result = await self.session.execute(
            select(ChatModel).where(ChatModel.inquiry_id.in_(inquiry_ids))
        )
        return [model.to_entity() for model in result.scalars().all()]

    async def delete_many(self, chat_ids: set[str]) -> int:
        """Delete the given chats."""
        if not chat_ids:
            return 0
        result = await self.session.execute(delete(ChatModel).where(ChatModel.id.in_(chat_ids)))
        return result.rowcount or 0


class MessageRepository:
    """Repository for chat messages."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def save(self, message: Message) -> None:
        """Save a message."""
        await self.session.merge(MessageModel.from_entity(message))
        await self.session.flush()

    async def get(self, message_id: str) -> Message | None:
        """Get message by ID."""
        model = await self.session.get(MessageModel, message_id)
        return model.to_entity() if model else None

    async def get_by_client_id(
        self, chat_id: str, sender_user_id: str, client_id: str
    ) -> Message | None:
        """Find a sender's message by its client-generated id."""
        result = await self.session.execute(
            select(MessageModel).where(
                and_(
                    MessageModel.chat_id == chat_id,
                    MessageModel.sender_user_id == sender_user_id,
                    MessageModel.client_id == client_id,
                )
            )
        )
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def latest(self, chat_id: str) -> Message | None:
        """The newest message of a chat."""
        result = await self.session.execute(
            select(MessageModel)
            .where(MessageModel.chat_id == chat_id)
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def count_unread(self, chat_id: str, reader_id: str) -> int:
        """Messages of a chat the reader has not read yet."""
        result = await self.session.execute(
            select(func.count(MessageModel.id)).where(
                and_(
                    MessageModel.chat_id == chat_id,
                    MessageModel.sender_user_id != reader_id,
                    MessageModel.is_read.is_(False),
                )
            )
        )
        return result.scalar_one()

    async def list_incoming(self, chat_id: str, recipient_id: str) -> list[Message]:
        """Messages of a chat sent by anyone but the recipient, oldest first."""
        result = await self.session.execute(
            select(MessageModel)
            .where(
                and_(
                    MessageModel.chat_id == chat_id,
                    MessageModel.sender_user_id != recipient_id,
                )
            )
            .order_by(MessageModel.created_at, MessageModel.id)
        )
        return [model.to_entity() for model in result.scalars().all()]

    async def page_newest_first(self, chat_id: str, page: int, page_size: int) -> list[Message]:
        """One page of a chat's messages counted from the newest."""
        result = await self.session.execute(
            select(MessageModel)
            .where(MessageModel.chat_id == chat_id)
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        return [model.to_entity() for model in result.scalars().all()]

    async def delete_for_chats(self, chat_ids: set[str]) -> int:
        """Delete every message of the given chats."""
        if not chat_ids:
            return 0
        # Replies point at other messages of the same chat
        await self.session.execute(
            update(MessageModel)
            .where(MessageModel.chat_id.in_(chat_ids))
            .values(reply_to_message_id=None)
        )
        result = await self.session.execute(
            delete(MessageModel).where(MessageModel.chat_id.in_(chat_ids))
        )
        return result.rowcount or 0


class ReportRepository:
    """Repository for chat reports."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def save(self, report: Report) -> None:
        """Save a report."""
        await self.session.merge(ReportModel.from_entity(report))
        await self.session.flush()

    async def get(self, report_id: str) -> Report | None:
        """Get report by ID."""
        model = await self.session.get(ReportModel, report_id)
        return model.to_entity() if model else None

    async def list_reports(self, status: ReportStatus | None = None) -> list[Report]:
        """Reports, newest first, optionally by status."""
        query = select(ReportModel)
        if status is not None:
            query = query.where(ReportModel.status == status.value)
        result = await self.session.execute(
            query.order_by(ReportModel.created_at.desc(), ReportModel.id)
        )
        return [model.to_entity() for model in result.scalars().all()]

    async def delete_for_chats(self, chat_ids: set[str]) -> int:
        """Delete every report about the given chats."""
        if not chat_ids:
            return 0
        result = await self.session.execute(
            delete(ReportModel).where(ReportModel.chat_id.in_(chat_ids))
        )
        return result.rowcount or 0


# ============================================================================
# Site Content
# ============================================================================


class SiteContentRepository:
    """Repository for hero slides and website settings."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def save_slide(self, slide: HeroSlide) -> None:
        """Save a slide."""
        await self.session.merge(HeroSlideModel.from_entity(slide))
        await self.session.flush()

    async def get_slide(self, slide_id: str) -> HeroSlide | None:
        """Get slide by ID."""
        model = await self.session.get(HeroSlideModel, slide_id)
        return model.to_entity() if model else None

    async def delete_slide(self, slide_id: str) -> bool:
        """Delete a slide; returns whether it existed."""
        model = await self.session.get(HeroSlideModel, slide_id)
        if model is None:
            return False
        await self.session.delete(model)
        await self.session.flush()
        return True

    async def list_slides(self) -> list[HeroSlide]:
        """Slides in display order."""
        result = await self.session.execute(
            select(HeroSlideModel).order_by(HeroSlideModel.display_order, HeroSlideModel.title)
        )
        return [model.to_entity() for model in result.scalars().all()]

    async def get_setting(self, key: str) -> str | None:
        """Read a website setting."""
        model = await self.session.get(WebsiteSettingModel, key)
        return model.value if model else None

    async def set_setting(self, key: str, value: str) -> None:
        """Write a website setting."""
        await self.session.merge(WebsiteSettingModel(key=key, value=value))
        await self.session.flush()
