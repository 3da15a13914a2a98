"""Password hashing, JWT handling, and credential checks."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError
from sqlalchemy.orm import Session

from .config import get_settings
from .errors import UnauthorizedError
from .models import RoleEnum, User
from .schemas import TokenData

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
settings = get_settings()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(
    user_id: int,
    username: str,
    role: RoleEnum,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode = {"sub": username, "user_id": user_id, "role": RoleEnum(role).value, "exp": expire}
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[TokenData]:
    """Return the identity carried by ``token`` or ``None`` when it is invalid or expired."""

    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    try:
        return TokenData(user_id=payload["user_id"], username=payload["sub"], role=payload["role"])
    except (KeyError, ValidationError):
        return None


def authenticate_user(db: Session, username_or_email: str, password: str) -> User:
    """Check credentials and account state; raise ``UnauthorizedError`` on any failure."""

    user: Optional[User] = (
        db.query(User)
        .filter((User.username == username_or_email) | (User.email == username_or_email))
        .first()
    )
    if not user or not verify_password(password, user.hashed_password):
        raise UnauthorizedError("用户名或密码错误")

    if user.is_locked and not user.lock_active():
        user.is_locked = False
        user.lock_end_time = None
        user.lock_reason = None
        db.commit()
        logger.info("Expired lock cleared for user %s", user.username)

    ensure_account_usable(user)
    return user


def ensure_account_usable(user: User) -> None:
    """Refuse accounts that are under an active lock or disabled."""

    if user.lock_active():
        logger.info("Refused locked user %s", user.username)
        raise UnauthorizedError("账户已被锁定，请联系管理员解锁")
    if not user.is_enabled:
        raise UnauthorizedError("账户已被禁用，请联系管理员")
