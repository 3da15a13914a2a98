"""Reusable FastAPI dependencies for identity and role checks."""
from typing import Callable, Optional

from fastapi import Depends, Security
from fastapi.security import APIKeyHeader
from sqlalchemy.orm import Session

from .auth import decode_access_token, ensure_account_usable
from .config import get_settings
from .database import get_db
from .errors import AppError, ForbiddenError, UnauthorizedError
from .models import RoleEnum, User
from .schemas import TokenData

settings = get_settings()
token_header = APIKeyHeader(name=settings.token_header, auto_error=False)


def extract_token(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    prefix = settings.token_prefix.strip()
    if prefix:
        scheme, _, credentials = raw.strip().partition(" ")
        if scheme.lower() != prefix.lower() or not credentials:
            return None
        return credentials.strip()
    return raw.strip()


def _load_identity(db: Session, raw: Optional[str]) -> Optional[TokenData]:
    """Resolve the bearer against the current user row.

    Returns ``None`` when no token was sent. A bad token, or a user that is
    gone, locked or disabled, raises ``UnauthorizedError``. The role always
    comes from the database so role changes apply immediately.
    """

    token = extract_token(raw)
    if token is None:
        return None
    claims = decode_access_token(token)
    if claims is None:
        raise UnauthorizedError("无效或过期的令牌")
    user = db.get(User, claims.user_id)
    if user is None:
        raise UnauthorizedError("用户不存在或已被删除")
    ensure_account_usable(user)
    return TokenData(user_id=user.id, username=user.username, role=user.role)


def get_optional_identity(
    raw: Optional[str] = Security(token_header), db: Session = Depends(get_db)
) -> Optional[TokenData]:
    try:
        return _load_identity(db, raw)
    except AppError:
        return None


def get_current_identity(
    raw: Optional[str] = Security(token_header), db: Session = Depends(get_db)
) -> TokenData:
    identity = _load_identity(db, raw)
    if identity is None:
        raise UnauthorizedError()
    return identity


def allow_roles(*roles: RoleEnum) -> Callable[[TokenData], TokenData]:
    def dependency(identity: TokenData = Depends(get_current_identity)) -> TokenData:
        if identity.role not in roles:
            raise ForbiddenError()
        return identity

    return dependency


require_admin = allow_roles(RoleEnum.ADMIN, RoleEnum.SYSADMIN)
require_sysadmin = allow_roles(RoleEnum.SYSADMIN)
