"""Identity application service.

Orchestrates member authentication and profiles:
- One-time password challenges by phone or email
- Session tokens
- Profile updates
- Admin user directory
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.catalog.facets import FacetService
from storefront.catalog.repository import ProductRepository
from storefront.domain import (
    AuthenticationError,
    FacetKind,
    NotFoundError,
    OtpChallenge,
    Product,
    RateLimitedError,
    Session,
    User,
    ValidationError,
    new_id,
    normalize_email,
    normalize_phone,
    utcnow,
)
from storefront.infrastructure.config import settings
from storefront.infrastructure.images import ensure_image_url
from storefront.infrastructure.repositories import SessionRepository, UserRepository

logger = structlog.get_logger()


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class OtpRequestResult:
    """Result of requesting a one-time password."""

    identifier: str
    expires_at: datetime
    debug_code: str | None = None


@dataclass
class AuthResult:
    """Result of a successful verification."""

    token: str
    user: User
    expires_at: datetime
    is_new_user: bool = False


@dataclass
class UserDetail:
    """A user together with their listings (admin view)."""

    user: User
    products: list[Product]


# ============================================================================
# Identity Service
# ============================================================================


class IdentityService:
    """Service for authentication, sessions and profiles."""

    def __init__(self, session: AsyncSession, request_id: str | None = None) -> None:
        """Initialize service.

        Args:
            session: Database session.
            request_id: Request ID for correlation.
        """
        self.session = session
        self.request_id = request_id
        self.user_repo = UserRepository(session)
        self.session_repo = SessionRepository(session)
        self.product_repo = ProductRepository(session)
        self.facet_service = FacetService(session, request_id)

    # -------------------------------------------------------------------------
    # OTP
    # -------------------------------------------------------------------------

    async def request_otp(
        self,
        phone: str | None = None,
        email: str | None = None,
    ) -> OtpRequestResult:
        """Issue a one-time password for a phone number or email.

        A new request replaces any outstanding challenge for the identifier.

        Returns:
            Challenge expiry (and the code itself in debug mode).
        """
        identifier = _identifier(phone, email)
        code = "".join(secrets.choice("0123456789") for _ in range(settings.otp_length))
        expires_at = utcnow() + timedelta(seconds=settings.otp_ttl_seconds)
        await self.session_repo.save_challenge(
            OtpChallenge(
                id=identifier,
                code_hash=OtpChallenge.hash_code(code),
                expires_at=expires_at,
            )
        )

        logger.info(
            "OTP issued",
            identifier=_mask(identifier),
            expires_at=expires_at.isoformat(),
            request_id=self.request_id,
        )
        return OtpRequestResult(
            identifier=identifier,
            expires_at=expires_at,
            debug_code=code if settings.debug else None,
        )

    async def verify_otp(
        self,
        code: str,
        phone: str | None = None,
        email: str | None = None,
        name: str | None = None,
    ) -> AuthResult:
        """Exchange a valid code for a session.

        The first verification of an unknown identifier registers the user,
        which requires a name.

        Raises:
            AuthenticationError: If no challenge exists, it expired, or the
                code is wrong.
            RateLimitedError: If the attempt budget was exhausted.
            ValidationError: If a new user supplied no name.
        """
        identifier = _identifier(phone, email)
        challenge = await self.session_repo.get_challenge(identifier)
        if challenge is None:
            raise AuthenticationError(
                "No code was requested for this identifier",
                error_code="OTP_NOT_REQUESTED",
            )
        if challenge.is_expired():
            await self.session_repo.delete_challenge(identifier)
            await self.session.commit()
            raise AuthenticationError("Code expired", error_code="OTP_EXPIRED")

        if not challenge.matches(code or ""):
            challenge.attempts += 1
            if challenge.attempts >= settings.otp_max_attempts:
                await self.session_repo.delete_challenge(identifier)
                await self.session.commit()
                logger.warning(
                    "OTP attempts exhausted",
                    identifier=_mask(identifier),
                    request_id=self.request_id,
                )
                raise RateLimitedError(
                    "Too many wrong codes, request a new one",
                    details={"attempts": challenge.attempts},
                )
            await self.session_repo.save_challenge(challenge)
            await self.session.commit()
            raise AuthenticationError(
                "Invalid code",
                details={"attempts_left": settings.otp_max_attempts - challenge.attempts},
                error_code="INVALID_OTP",
            )

        user, is_new = await self._find_or_register(identifier, name)
        await self.session_repo.delete_challenge(identifier)

        auth_session = Session(
            id=secrets.token_urlsafe(32),
            user_id=user.id,
            expires_at=utcnow() + timedelta(hours=settings.session_ttl_hours),
        )
        await self.session_repo.save(auth_session)

        logger.info(
            "User signed in",
            user_id=user.id,
            is_new_user=is_new,
            request_id=self.request_id,
        )
        return AuthResult(
            token=auth_session.id,
            user=user,
            expires_at=auth_session.expires_at,
            is_new_user=is_new,
        )

    async def _find_or_register(self, identifier: str, name: str | None) -> tuple[User, bool]:
        kind, value = identifier.split(":", 1)
        if kind == "phone":
            user = await self.user_repo.get_by_phone(value)
        else:
            user = await self.user_repo.get_by_email(value)
        if user is not None:
            return user, False

        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError(
                "Name is required to create an account",
                error_code="NAME_REQUIRED",
            )
        user = User(
            id=new_id(),
            name=clean_name,
            phone=value if kind == "phone" else None,
            email=value if kind == "email" else None,
            is_admin=kind == "phone" and value in _bootstrap_admins(),
        )
        await self.user_repo.save(user)
        logger.info(
            "User registered",
            user_id=user.id,
            is_admin=user.is_admin,
            request_id=self.request_id,
        )
        return user, True

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def resolve_session(self, token: str) -> User | None:
        """Get the user behind a session token; expired sessions are dropped."""
        auth_session = await self.session_repo.get(token)
        if auth_session is None:
            return None
        if auth_session.is_expired():
            await self.session_repo.delete(token)
            return None
        return await self.user_repo.get(auth_session.user_id)

    async def logout(self, token: str) -> None:
        """End a session."""
        await self.session_repo.delete(token)
        logger.info("User signed out", request_id=self.request_id)

    # -------------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------------

    async def get_user(self, user_id: str) -> User:
        """Get a user.

        Raises:
            NotFoundError: If the user does not exist.
        """
        user = await self.user_repo.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def update_profile(
        self,
        user: User,
        name: str | None = None,
        email: str | None = None,
        avatar_url: str | None = None,
        city_ids: list[str] | None = None,
    ) -> User:
        """Update the caller's profile.

        Raises:
            ValidationError: If a field is invalid or a city is unknown.
        """
        if name is not None:
            clean_name = name.strip()
            if not clean_name:
                raise ValidationError("Name cannot be blank", details={"field": "name"})
            user.name = clean_name
        if email is not None:
            normalized = normalize_email(email)
            owner = await self.user_repo.get_by_email(normalized)
            if owner is not None and owner.id != user.id:
                raise ValidationError(
                    "Email is already in use",
                    details={"email": normalized},
                    error_code="EMAIL_TAKEN",
                )
            user.email = normalized
        if avatar_url is not None:
            user.avatar_url = ensure_image_url(avatar_url) if avatar_url else None
        if city_ids is not None:
            user.city_ids = await self.facet_service.validate_ids(FacetKind.CITIES, city_ids)
        user._touch()
        await self.user_repo.save(user)

        logger.info("Profile updated", user_id=user.id, request_id=self.request_id)
        return user

    # -------------------------------------------------------------------------
    # Admin directory
    # -------------------------------------------------------------------------

    async def list_users(self, search: str | None = None) -> list[User]:
        """List users, optionally matching a name, phone or email fragment."""
        return await self.user_repo.find_all((search or "").strip() or None)

    async def get_user_detail(self, user_id: str) -> UserDetail:
        """Get a user with their listings."""
        user = await self.get_user(user_id)
        products = await self.product_repo.find_all(owner_user_id=user.id)
        return UserDetail(user=user, products=products)


def _identifier(phone: str | None, email: str | None) -> str:
    if bool(phone) == bool(email):
        raise ValidationError(
            "Provide exactly one of phone or email",
            error_code="IDENTIFIER_REQUIRED",
        )
    if phone:
        return f"phone:{normalize_phone(phone)}"
    return f"email:{normalize_email(email)}"


def _bootstrap_admins() -> set[str]:
    return {normalize_phone(p) for p in settings.bootstrap_admin_phones}


def _mask(identifier: str) -> str:
    kind, value = identifier.split(":", 1)
    return f"{kind}:***{value[-4:]}"


def get_identity_service(
    session: AsyncSession, request_id: str | None = None
) -> IdentityService:
    """Get identity service instance.

    Args:
        session: Database session.
        request_id: Request ID for correlation.

    Returns:
        IdentityService instance.
    """
    return IdentityService(session, request_id=request_id)
