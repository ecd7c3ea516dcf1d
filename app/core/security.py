"""Security utilities for JWT and password hashing."""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import AuthError
from app.db.sessions import get_db
from app.models.user import User


# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Force-passlib to initialize bcrypt backend using a short password so that
# later calls with long passwords don't trigger backend detection using the
# user's long password (which would raise a ValueError when >72 bytes).
DUMMY_PASSWORD_HASH = pwd_context.hash("__init__")

# JWT bearer token scheme; missing headers are reported by get_current_user_id
security = HTTPBearer(auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password."""
    return pwd_context.verify(_truncate_for_bcrypt(plain_password), hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(_truncate_for_bcrypt(password))


def _truncate_for_bcrypt(password: str) -> str:
    """Truncate password to bcrypt's 72-byte limit.

    Bcrypt rejects inputs longer than 72 bytes. We truncate on the UTF-8
    encoded bytes and decode with 'ignore' to avoid splitting multi-byte
    sequences.
    """
    if not isinstance(password, str):
        return password
    b = password.encode("utf-8")[:72]
    return b.decode("utf-8", "ignore")


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def create_user_token(user_id: uuid.UUID) -> str:
    """Issue a bearer token whose subject is the user's id."""
    return create_access_token(
        data={"sub": str(user_id)},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token.

    Expired tokens and tokens signed with another key both surface as
    ``JWTError`` from python-jose and become an ``AuthError``.
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise AuthError("Could not validate credentials")


def authenticate(token: Optional[str]) -> uuid.UUID:
    """Resolve a bearer token to the caller's user id."""
    if not token:
        raise AuthError("Authentication required")

    payload = decode_token(token)

    subject = payload.get("sub")
    if subject is None:
        raise AuthError("Invalid authentication credentials")

    try:
        return uuid.UUID(str(subject))
    except ValueError:
        raise AuthError("Invalid authentication credentials")


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> uuid.UUID:
    """
    Dependency resolving the caller's identity from the Authorization header.

    The user id is threaded explicitly into every owner-scoped query. A valid
    token for a user that no longer exists is rejected like a bad token.

    Usage:
        @router.get("/protected")
        def protected_route(user_id: uuid.UUID = Depends(get_current_user_id)):
            return {"user_id": str(user_id)}
    """
    token = credentials.credentials if credentials else None
    user_id = authenticate(token)

    if db.query(User.id).filter(User.id == user_id).first() is None:
        raise AuthError("User not found")
    return user_id
