"""SQLAlchemy models for users, listings, claims, moderation and forum content."""
from __future__ import annotations

import json
import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from .database import Base

logger = logging.getLogger(__name__)


class RoleEnum(str, Enum):
    RESIDENT = "resident"
    ADMIN = "admin"
    SYSADMIN = "sysadmin"


ADMIN_ROLES = (RoleEnum.ADMIN, RoleEnum.SYSADMIN)


class ItemKind(str, Enum):
    LOST = "lost"
    FOUND = "found"


class LostItemStatus(str, Enum):
    PENDING = "pending"
    FOUND = "found"
    CLOSED = "closed"


class FoundItemStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    CLAIMED = "claimed"
    CLOSED = "closed"


class ClaimStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReportType(str, Enum):
    LOST_ITEM = "LOST_ITEM"
    FOUND_ITEM = "FOUND_ITEM"
    COMMENT = "COMMENT"
    POST = "POST"


class ReportStatus(str, Enum):
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    REJECTED = "REJECTED"


class ActionType(str, Enum):
    NONE = "NONE"
    CONTENT_DELETE = "CONTENT_DELETE"
    USER_WARNING = "USER_WARNING"
    USER_BAN = "USER_BAN"
    USER_LOCK = "USER_LOCK"


class AnnouncementStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


def _enum_column(enum_cls: type[Enum]) -> SqlEnum:
    return SqlEnum(
        enum_cls,
        native_enum=False,
        length=20,
        values_callable=lambda members: [member.value for member in members],
    )


class ImageList(TypeDecorator):
    """Ordered list of image URLs persisted as a JSON array in a text column."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Optional[List[str]], dialect) -> Optional[str]:
        if value is None:
            return None
        return json.dumps(list(value), ensure_ascii=False)

    def process_result_value(self, value: Optional[str], dialect) -> List[str]:
        if not value:
            return []
        try:
            decoded = json.loads(value)
        except ValueError:
            logger.warning("Discarding unparsable image list: %r", value)
            return []
        if not isinstance(decoded, list):
            return [str(decoded)]
        return [str(entry) for entry in decoded]


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    role: Mapped[RoleEnum] = mapped_column(_enum_column(RoleEnum), default=RoleEnum.RESIDENT, index=True)
    real_name: Mapped[Optional[str]] = mapped_column(String(50))
    phone: Mapped[Optional[str]] = mapped_column(String(20))
    address: Mapped[Optional[str]] = mapped_column(String(255))
    avatar: Mapped[Optional[str]] = mapped_column(String(255))
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False)
    lock_end_time: Mapped[Optional[datetime]] = mapped_column(DateTime)
    lock_reason: Mapped[Optional[str]] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def lock_active(self, now: Optional[datetime] = None) -> bool:
        if not self.is_locked:
            return False
        if self.lock_end_time is None:
            return True
        return self.lock_end_time > (now or datetime.utcnow())


class LostItem(Base):
    __tablename__ = "lost_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(100))
    description: Mapped[str] = mapped_column(Text)
    event_date: Mapped[datetime] = mapped_column(DateTime)
    location: Mapped[str] = mapped_column(String(255), index=True)
    category: Mapped[Optional[str]] = mapped_column(String(50), index=True)
    images: Mapped[List[str]] = mapped_column(ImageList, default=list)
    contact_info: Mapped[Optional[str]] = mapped_column(String(255))
    status: Mapped[LostItemStatus] = mapped_column(
        _enum_column(LostItemStatus), default=LostItemStatus.PENDING, index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user: Mapped[User] = relationship()


class FoundItem(Base):
    __tablename__ = "found_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(100))
    description: Mapped[str] = mapped_column(Text)
    event_date: Mapped[datetime] = mapped_column(DateTime)
    location: Mapped[str] = mapped_column(String(255), index=True)
    category: Mapped[Optional[str]] = mapped_column(String(50), index=True)
    images: Mapped[List[str]] = mapped_column(ImageList, default=list)
    contact_info: Mapped[Optional[str]] = mapped_column(String(255))
    status: Mapped[FoundItemStatus] = mapped_column(
        _enum_column(FoundItemStatus), default=FoundItemStatus.PENDING, index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user: Mapped[User] = relationship()
    claims: Mapped[List["ClaimApplication"]] = relationship(
        back_populates="found_item", cascade="all, delete-orphan"
    )


ITEM_MODELS = {ItemKind.LOST: LostItem, ItemKind.FOUND: FoundItem}
ITEM_STATUSES = {ItemKind.LOST: LostItemStatus, ItemKind.FOUND: FoundItemStatus}


class ClaimApplication(Base):
    __tablename__ = "claim_applications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    found_item_id: Mapped[int] = mapped_column(ForeignKey("found_items.id", ondelete="CASCADE"), index=True)
    applicant_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    description: Mapped[str] = mapped_column(Text)
    status: Mapped[ClaimStatus] = mapped_column(_enum_column(ClaimStatus), default=ClaimStatus.PENDING, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    found_item: Mapped[FoundItem] = relationship(back_populates="claims")
    applicant: Mapped[User] = relationship()


class Report(Base):
    __tablename__ = "reports"
    __table_args__ = (
        UniqueConstraint("reporter_id", "report_type", "reported_item_id", name="uq_report_once_per_item"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    report_type: Mapped[ReportType] = mapped_column(_enum_column(ReportType), index=True)
    reported_item_id: Mapped[int] = mapped_column(Integer, index=True)
    reporter_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    reported_user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    reason: Mapped[str] = mapped_column(String(500))
    status: Mapped[ReportStatus] = mapped_column(
        _enum_column(ReportStatus), default=ReportStatus.PENDING, index=True
    )
    resolution_notes: Mapped[Optional[str]] = mapped_column(String(500))
    resolved_by_admin_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    reporter: Mapped[User] = relationship(foreign_keys=[reporter_id])
    reported_user: Mapped[User] = relationship(foreign_keys=[reported_user_id])
    resolved_by: Mapped[Optional[User]] = relationship(foreign_keys=[resolved_by_admin_id])


class ItemComment(Base):
    __tablename__ = "item_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    item_id: Mapped[int] = mapped_column(Integer, index=True)
    item_type: Mapped[ItemKind] = mapped_column(_enum_column(ItemKind), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    content: Mapped[str] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user: Mapped[User] = relationship()


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(100))
    content: Mapped[str] = mapped_column(Text)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user: Mapped[User] = relationship()
    comments: Mapped[List["PostComment"]] = relationship(
        back_populates="post", cascade="all, delete-orphan"
    )


class PostComment(Base):
    __tablename__ = "post_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    post_id: Mapped[int] = mapped_column(ForeignKey("posts.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    content: Mapped[str] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    post: Mapped[Post] = relationship(back_populates="comments")
    user: Mapped[User] = relationship()


class Announcement(Base):
    __tablename__ = "announcements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(100))
    content: Mapped[str] = mapped_column(Text)
    admin_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    status: Mapped[AnnouncementStatus] = mapped_column(
        _enum_column(AnnouncementStatus), default=AnnouncementStatus.DRAFT, index=True
    )
    is_sticky: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    admin: Mapped[User] = relationship()
