import secrets
import uuid
from typing import Optional
from datetime import datetime, timedelta, timezone
from jose import ExpiredSignatureError, JWTError, jwt
import bcrypt
from app.core.config import settings
from app.core.exceptions import MalformedTokenError, TokenExpiredError

ALGORITHM = settings.ALGORITHM

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime read back from the database to aware UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt."""
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    password_bytes = plain_password.encode('utf-8')
    hashed_bytes = hashed_password.encode('utf-8')
    return bcrypt.checkpw(password_bytes, hashed_bytes)


def generate_invitation_token() -> str:
    """Random single-use, URL-safe invitation token."""
    return secrets.token_urlsafe(48)


def _secret_for(token_type: str) -> str:
    if token_type == REFRESH_TOKEN_TYPE:
        return settings.REFRESH_SECRET_KEY
    return settings.SECRET_KEY


def create_token(
    data: dict,
    token_type: str,
    expires_delta: timedelta,
    issued_at: Optional[datetime] = None
) -> str:
    """
    Create a signed JWT of the given type.

    Access and refresh tokens are signed with different keys, so one can
    never be replayed as the other even if the ``type`` claim were ignored.

    Args:
        data: Claims to embed (user id, tenant id, credential version, ...)
        token_type: "access" or "refresh"
        expires_delta: Lifetime of the token
        issued_at: Issue time, defaults to now

    Returns:
        Encoded JWT token string
    """
    issued_at = issued_at or utcnow()
    to_encode = data.copy()
    to_encode.update({
        "type": token_type,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + expires_delta).timestamp()),
    })
    if token_type == REFRESH_TOKEN_TYPE:
        to_encode.setdefault("jti", uuid.uuid4().hex)
    return jwt.encode(to_encode, _secret_for(token_type), algorithm=ALGORITHM)


def decode_token(token: str, token_type: str) -> dict:
    """
    Verify and decode a JWT of the expected type.

    Args:
        token: JWT token string
        token_type: Expected "type" claim

    Returns:
        Dictionary containing token claims

    Raises:
        TokenExpiredError: If the signature is valid but the token expired
        MalformedTokenError: If the token can't be decoded or has the wrong type
    """
    try:
        payload = jwt.decode(token, _secret_for(token_type), algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpiredError()
    except JWTError:
        raise MalformedTokenError()

    if payload.get("type") != token_type or payload.get("sub") is None:
        raise MalformedTokenError()
    return payload
