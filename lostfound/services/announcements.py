"""Community announcements authored by administrators."""
import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..errors import ForbiddenError, NotFoundError
from ..models import Announcement, AnnouncementStatus, RoleEnum, User
from ..schemas import AnnouncementCreate, AnnouncementRead, AnnouncementUpdate, Page, TokenData
from .pagination import paginate

logger = logging.getLogger(__name__)


def to_announcement_read(announcement: Announcement) -> AnnouncementRead:
    admin = announcement.admin
    return AnnouncementRead(
        id=announcement.id,
        title=announcement.title,
        content=announcement.content,
        status=announcement.status,
        is_sticky=announcement.is_sticky,
        admin_id=announcement.admin_id,
        admin_name=(admin.real_name or admin.username) if admin else None,
        created_at=announcement.created_at,
        updated_at=announcement.updated_at,
    )


def _get(db: Session, announcement_id: int) -> Announcement:
    announcement = db.get(Announcement, announcement_id)
    if not announcement:
        raise NotFoundError("公告不存在")
    return announcement


def get_visible(db: Session, announcement_id: int, identity: Optional[TokenData]) -> AnnouncementRead:
    announcement = _get(db, announcement_id)
    if announcement.status != AnnouncementStatus.PUBLISHED and not (identity and identity.is_admin):
        raise NotFoundError("公告不存在")
    return to_announcement_read(announcement)


def _ordered(query):
    return query.order_by(Announcement.is_sticky.desc(), Announcement.created_at.desc(), Announcement.id.desc())


def list_published(db: Session, page: int, size: int, keyword: Optional[str] = None) -> Page[AnnouncementRead]:
    query = db.query(Announcement).filter(Announcement.status == AnnouncementStatus.PUBLISHED)
    if keyword:
        pattern = f"%{keyword}%"
        query = query.filter(or_(Announcement.title.ilike(pattern), Announcement.content.ilike(pattern)))
    return paginate(_ordered(query), page, size, to_announcement_read)


def list_for_admin(
    db: Session,
    page: int,
    size: int,
    keyword: Optional[str] = None,
    admin_name: Optional[str] = None,
    admin_id: Optional[int] = None,
) -> Page[AnnouncementRead]:
    query = db.query(Announcement)
    if keyword:
        pattern = f"%{keyword}%"
        query = query.filter(or_(Announcement.title.ilike(pattern), Announcement.content.ilike(pattern)))
    if admin_name:
        pattern = f"%{admin_name}%"
        query = query.join(User, Announcement.admin_id == User.id).filter(
            or_(User.username.ilike(pattern), User.real_name.ilike(pattern))
        )
    if admin_id is not None:
        query = query.filter(Announcement.admin_id == admin_id)
    return paginate(_ordered(query), page, size, to_announcement_read)


def create_announcement(db: Session, payload: AnnouncementCreate, identity: TokenData) -> AnnouncementRead:
    announcement = Announcement(**payload.model_dump(), admin_id=identity.user_id)
    db.add(announcement)
    db.commit()
    db.refresh(announcement)
    logger.info("Admin %s created announcement %s (%s)", identity.user_id, announcement.id, announcement.status.value)
    return to_announcement_read(announcement)


def _check_author(announcement: Announcement, identity: TokenData) -> None:
    if announcement.admin_id != identity.user_id and identity.role != RoleEnum.SYSADMIN:
        raise ForbiddenError("您只能修改或删除自己发布的公告")


def update_announcement(
    db: Session, announcement_id: int, payload: AnnouncementUpdate, identity: TokenData
) -> AnnouncementRead:
    announcement = _get(db, announcement_id)
    _check_author(announcement, identity)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(announcement, field, value)
    db.commit()
    db.refresh(announcement)
    return to_announcement_read(announcement)


def delete_announcement(db: Session, announcement_id: int, identity: TokenData) -> None:
    announcement = _get(db, announcement_id)
    _check_author(announcement, identity)
    db.delete(announcement)
    db.commit()
    logger.info("Admin %s deleted announcement %s", identity.user_id, announcement_id)
