from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.exceptions import MalformedTokenError, TokenInvalidatedError, UserNotActiveError
from app.core.logging_config import logger
from app.core.security import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    create_token,
    decode_token,
    utcnow,
)
from app.models.user import User


@dataclass(frozen=True)
class Identity:
    """Claims of a verified access token."""
    user_id: int
    tenant_id: Optional[int]
    role_slug: Optional[str]
    is_super_admin: bool
    credential_version: int
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int = 0

    def as_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
        }


def _int_claim(payload: dict, name: str) -> int:
    try:
        return int(payload[name])
    except (KeyError, TypeError, ValueError):
        raise MalformedTokenError()


class TokenService:
    """
    Issues, verifies and rotates signed access/refresh token pairs.

    Revocation is stateless: each user has a ``credential_version`` that is
    embedded into every token at issue time. Bumping it invalidates every
    token issued before, without keeping a blacklist.
    """

    def issue(self, user: User, now: Optional[datetime] = None) -> TokenPair:
        """
        Issue a fresh access/refresh pair for a user.

        Args:
            user: User to issue tokens for (role should be loaded)
            now: Issue time, defaults to now

        Returns:
            TokenPair
        """
        now = now or utcnow()
        access_token = create_token(
            {
                "sub": str(user.id),
                "tid": user.tenant_id,
                "role": user.role_slug,
                "sa": bool(user.is_super_admin),
                "cv": user.credential_version,
            },
            ACCESS_TOKEN_TYPE,
            timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            issued_at=now,
        )
        refresh_token = create_token(
            {"sub": str(user.id), "cv": user.credential_version},
            REFRESH_TOKEN_TYPE,
            timedelta(minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES),
            issued_at=now,
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=settings.access_token_expire_seconds,
        )

    def verify(self, access_token: str) -> Identity:
        """
        Verify an access token. Pure computation, no database access.

        Raises:
            TokenExpiredError: If the token expired
            MalformedTokenError: If the token is not a valid access token
        """
        payload = decode_token(access_token, ACCESS_TOKEN_TYPE)
        tenant_id = payload.get("tid")
        return Identity(
            user_id=_int_claim(payload, "sub"),
            tenant_id=int(tenant_id) if tenant_id is not None else None,
            role_slug=payload.get("role"),
            is_super_admin=bool(payload.get("sa", False)),
            credential_version=_int_claim(payload, "cv"),
            issued_at=datetime.fromtimestamp(_int_claim(payload, "iat"), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(_int_claim(payload, "exp"), tz=timezone.utc),
        )

    def refresh(self, db: Session, refresh_token: str) -> TokenPair:
        """
        Exchange a refresh token for a new pair.

        Args:
            db: Database session
            refresh_token: Previously issued refresh token

        Returns:
            New TokenPair

        Raises:
            TokenExpiredError / MalformedTokenError: If the token itself is bad
            TokenInvalidatedError: If the user is gone or changed credentials
            UserNotActiveError: If the user is suspended
        """
        payload = decode_token(refresh_token, REFRESH_TOKEN_TYPE)
        user_id = _int_claim(payload, "sub")
        credential_version = _int_claim(payload, "cv")

        user = db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
        if user is None:
            logger.info(f"Refresh rejected: user_id={user_id} no longer exists")
            raise TokenInvalidatedError()
        if user.credential_version != credential_version:
            logger.info(f"Refresh rejected: stale credential version for user_id={user_id}")
            raise TokenInvalidatedError()
        if user.is_suspended:
            raise UserNotActiveError()

        return self.issue(user)

    def revoke_all(self, db: Session, user: User, commit: bool = True) -> None:
        """
        Invalidate every token issued to a user so far.

        The bump is a single ``UPDATE ... SET v = v + 1`` so concurrent
        credential changes never lose an increment.
        """
        db.execute(
            update(User)
            .where(User.id == user.id)
            .values(credential_version=User.credential_version + 1)
            .execution_options(synchronize_session=False)
        )
        if commit:
            db.commit()
        db.refresh(user)
        logger.info(f"All tokens revoked: user_id={user.id}, credential_version={user.credential_version}")


# Create a singleton instance
token_service = TokenService()
