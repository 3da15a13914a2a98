"""Accounts: registration, login, profiles and administrative user management."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from .. import auth
from ..config import Settings
from ..errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError, UnauthorizedError
from ..models import (
    ADMIN_ROLES,
    Announcement,
    ClaimApplication,
    FoundItem,
    ItemComment,
    ItemKind,
    LostItem,
    Post,
    PostComment,
    Report,
    RoleEnum,
    User,
)
from ..schemas import (
    AdminUserCreate,
    AdminUserUpdate,
    LoginRequest,
    Page,
    PasswordChange,
    ProfileUpdate,
    RegisterRequest,
    TokenData,
    TokenResponse,
    UserRead,
)
from .pagination import paginate

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("用户不存在")
    return user


def _ensure_unique(db: Session, username: Optional[str], email: Optional[str], exclude_id: Optional[int] = None) -> None:
    query = db.query(User)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if username and query.filter(User.username == username).first():
        raise ConflictError("用户名已存在")
    if email and query.filter(User.email == email).first():
        raise ConflictError("邮箱已被使用")


def create_user(db: Session, payload: RegisterRequest, role: RoleEnum) -> User:
    _ensure_unique(db, payload.username, payload.email)
    user = User(
        username=payload.username,
        email=payload.email,
        hashed_password=auth.get_password_hash(payload.password),
        role=role,
        real_name=payload.real_name,
        phone=payload.phone,
        address=payload.address,
        is_enabled=True,
        is_locked=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created %s account %s (id=%s)", role.value, user.username, user.id)
    return user


def register_resident(db: Session, payload: RegisterRequest) -> User:
    return create_user(db, payload, RoleEnum.RESIDENT)


def login(db: Session, payload: LoginRequest) -> TokenResponse:
    user = auth.authenticate_user(db, payload.username_or_email, payload.password)
    token = auth.create_access_token(user.id, user.username, user.role)
    logger.info("User %s logged in", user.username)
    return TokenResponse(
        token=token,
        id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        avatar=user.avatar,
    )


def update_profile(db: Session, identity: TokenData, payload: ProfileUpdate) -> User:
    user = get_user(db, identity.user_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("email"):
        _ensure_unique(db, None, changes["email"], exclude_id=user.id)
    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return user


def change_password(db: Session, identity: TokenData, payload: PasswordChange) -> None:
    user = get_user(db, identity.user_id)
    if not auth.verify_password(payload.old_password, user.hashed_password):
        raise UnauthorizedError("当前密码不正确")
    user.hashed_password = auth.get_password_hash(payload.new_password)
    db.commit()
    logger.info("User %s changed password", user.username)


def reset_password(db: Session, user_id: int, new_password: str) -> None:
    if not new_password or len(new_password) < 6:
        raise BadRequestError("新密码长度不能少于6个字符")
    user = get_user(db, user_id)
    user.hashed_password = auth.get_password_hash(new_password)
    db.commit()
    logger.info("Password reset for user %s", user.username)


def list_users(
    db: Session,
    page: int,
    size: int,
    keyword: Optional[str] = None,
    roles: Optional[tuple] = None,
    enabled: Optional[bool] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> Page[UserRead]:
    query = db.query(User)
    if keyword:
        pattern = f"%{keyword}%"
        query = query.filter(
            or_(
                User.username.ilike(pattern),
                User.email.ilike(pattern),
                User.real_name.ilike(pattern),
                User.phone.ilike(pattern),
            )
        )
    if roles:
        query = query.filter(User.role.in_(roles))
    if enabled is not None:
        query = query.filter(User.is_enabled == enabled)
    if start_date:
        query = query.filter(User.created_at >= start_date)
    if end_date:
        query = query.filter(User.created_at <= end_date)
    return paginate(query.order_by(User.created_at.desc(), User.id.desc()), page, size, UserRead.model_validate)


def get_user_with_role(db: Session, user_id: int, roles: tuple, message: str) -> User:
    user = get_user(db, user_id)
    if user.role not in roles:
        raise BadRequestError(message)
    return user


def admin_create_user(db: Session, payload: AdminUserCreate) -> User:
    if payload.role not in (RoleEnum.RESIDENT, RoleEnum.ADMIN):
        raise BadRequestError("只能创建居民或小区管理员账户")
    return create_user(db, payload, payload.role)


def update_user(db: Session, user_id: int, payload: AdminUserUpdate) -> User:
    user = get_user(db, user_id)
    changes = payload.model_dump(exclude_unset=True)
    new_role = changes.pop("role", None)
    if new_role is not None and new_role != user.role:
        if user.role == RoleEnum.SYSADMIN:
            raise ForbiddenError("不能修改系统管理员的角色")
        if new_role == RoleEnum.SYSADMIN:
            raise BadRequestError("不能通过此接口授予系统管理员角色")
        user.role = new_role
    if changes.get("email"):
        _ensure_unique(db, None, changes["email"], exclude_id=user.id)
    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return user


def _guard_sysadmin(user: User, message: str) -> None:
    if user.role == RoleEnum.SYSADMIN:
        raise ForbiddenError(message)


def set_enabled(db: Session, user: User, enabled: bool) -> User:
    if not enabled:
        _guard_sysadmin(user, "不能禁用系统管理员账户")
    user.is_enabled = enabled
    db.commit()
    db.refresh(user)
    logger.info("User %s %s", user.username, "enabled" if enabled else "disabled")
    return user


def apply_lock(user: User, days: Optional[int], reason: Optional[str]) -> None:
    """Mark ``user`` locked; the caller owns the transaction."""

    _guard_sysadmin(user, "不能锁定系统管理员账户")
    user.is_locked = True
    user.lock_end_time = datetime.utcnow() + timedelta(days=days) if days else None
    user.lock_reason = reason
    logger.info("User %s locked until %s", user.username, user.lock_end_time or "further notice")


def lock_user(db: Session, user_id: int, days: Optional[int], reason: Optional[str]) -> User:
    user = get_user(db, user_id)
    apply_lock(user, days, reason)
    db.commit()
    db.refresh(user)
    return user


def unlock_user(db: Session, user_id: int) -> User:
    user = get_user(db, user_id)
    user.is_locked = False
    user.lock_end_time = None
    user.lock_reason = None
    db.commit()
    db.refresh(user)
    logger.info("User %s unlocked", user.username)
    return user


def delete_user(db: Session, user: User) -> None:
    """Hard-delete ``user`` together with everything they authored or were reported for."""

    _guard_sysadmin(user, "不能删除系统管理员账户")
    uid, username = user.id, user.username
    lost_ids = select(LostItem.id).where(LostItem.user_id == uid)
    found_ids = select(FoundItem.id).where(FoundItem.user_id == uid)
    post_ids = select(Post.id).where(Post.user_id == uid)

    db.query(Report).filter(or_(Report.reporter_id == uid, Report.reported_user_id == uid)).delete(
        synchronize_session=False
    )
    db.query(Report).filter(Report.resolved_by_admin_id == uid).update(
        {Report.resolved_by_admin_id: None}, synchronize_session=False
    )
    db.query(ClaimApplication).filter(
        or_(ClaimApplication.applicant_id == uid, ClaimApplication.found_item_id.in_(found_ids))
    ).delete(synchronize_session=False)
    db.query(ItemComment).filter(
        or_(
            ItemComment.user_id == uid,
            and_(ItemComment.item_type == ItemKind.LOST, ItemComment.item_id.in_(lost_ids)),
            and_(ItemComment.item_type == ItemKind.FOUND, ItemComment.item_id.in_(found_ids)),
        )
    ).delete(synchronize_session=False)
    db.query(PostComment).filter(or_(PostComment.user_id == uid, PostComment.post_id.in_(post_ids))).delete(
        synchronize_session=False
    )
    db.query(Post).filter(Post.user_id == uid).delete(synchronize_session=False)
    db.query(LostItem).filter(LostItem.user_id == uid).delete(synchronize_session=False)
    db.query(FoundItem).filter(FoundItem.user_id == uid).delete(synchronize_session=False)
    db.query(Announcement).filter(Announcement.admin_id == uid).delete(synchronize_session=False)
    db.delete(user)
    db.commit()
    logger.info("Deleted user %s (id=%s) and their content", username, uid)


def admin_exists(db: Session) -> bool:
    return db.query(User).filter(User.role.in_(ADMIN_ROLES)).first() is not None


def init_admin(db: Session, payload: RegisterRequest, role: RoleEnum) -> User:
    if role not in ADMIN_ROLES:
        raise BadRequestError("初始管理员角色必须是管理员或系统管理员")
    if admin_exists(db):
        raise BadRequestError("系统已初始化，无法创建初始管理员")
    return create_user(db, payload, role)


def ensure_sysadmin(db: Session, settings: Settings) -> Optional[User]:
    """Create the configured default sysadmin when no sysadmin exists yet."""

    if db.query(User).filter(User.role == RoleEnum.SYSADMIN).first():
        return None
    if db.query(User).filter(User.username == settings.default_sysadmin_username).first():
        logger.warning(
            "No sysadmin exists but username %s is taken; skipping bootstrap",
            settings.default_sysadmin_username,
        )
        return None
    user = User(
        username=settings.default_sysadmin_username,
        email=settings.default_sysadmin_email,
        hashed_password=auth.get_password_hash(settings.default_sysadmin_password),
        role=RoleEnum.SYSADMIN,
        real_name="系统管理员",
        is_enabled=True,
        is_locked=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Bootstrapped default sysadmin %s", user.username)
    return user
