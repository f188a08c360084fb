"""
Password hashing and bearer tokens for marketplace accounts.

Tokens carry the user id (``sub``), email and marketplace role so route
guards can authorize without a database round trip.
"""
import enum
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple, Union

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from trademart.core.config import settings
from trademart.core.errors import UnauthenticatedError

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=12,
)
# auto_error=False so a missing header is a 401 in our envelope, not a 403
security = HTTPBearer(auto_error=False)


def get_role_value(role: Union[str, enum.Enum]) -> str:
    """Role as its stored string, whether given as a string or an enum member."""
    if isinstance(role, enum.Enum):
        return role.value
    return str(role)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Unparseable hash (e.g. a disabled account marker) never matches
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "iat": now})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def issue_user_token(user_id: int, email: str, role: Union[str, enum.Enum]) -> Tuple[str, int]:
    """Access token for a marketplace user, with its lifetime in seconds."""
    token = create_access_token({"sub": str(user_id), "email": email, "role": get_role_value(role)})
    return token, settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise UnauthenticatedError("Invalid or expired token")


def bearer_token(credentials: Optional[HTTPAuthorizationCredentials]) -> str:
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError("Unauthorized")
    return credentials.credentials


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> int:
    """Caller's user id from the bearer token; any role."""
    user_id = decode_token(bearer_token(credentials)).get("sub")
    if user_id is None:
        raise UnauthenticatedError("Invalid token payload")
    try:
        return int(user_id)
    except (TypeError, ValueError):
        raise UnauthenticatedError("Invalid token payload")
