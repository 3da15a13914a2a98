"""Pydantic request/response models and the uniform response envelope."""
from __future__ import annotations

from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from .models import (
    ActionType,
    AnnouncementStatus,
    ClaimStatus,
    ItemKind,
    ReportStatus,
    ReportType,
    RoleEnum,
)

T = TypeVar("T")


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ApiResponse(CamelModel, Generic[T]):
    success: bool = True
    message: str = "操作成功"
    data: Optional[T] = None
    code: int = 200


def ok(data=None, message: str = "操作成功", code: int = 200) -> ApiResponse:
    return ApiResponse(success=True, message=message, data=data, code=code)


class Page(CamelModel, Generic[T]):
    items: List[T]
    current_page: int
    page_size: int
    total_items: int
    total_pages: int


class TokenData(BaseModel):
    """Identity decoded from a bearer token and handed to the service layer."""

    user_id: int
    username: str
    role: RoleEnum

    @property
    def is_admin(self) -> bool:
        return self.role in (RoleEnum.ADMIN, RoleEnum.SYSADMIN)


# Users


class RegisterRequest(CamelModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6, max_length=100)
    email: Optional[EmailStr] = None
    real_name: Optional[str] = Field(None, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=255)


class LoginRequest(CamelModel):
    username_or_email: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("usernameOrEmail", "username_or_email", "username"),
    )
    password: str = Field(..., min_length=1)


class TokenResponse(CamelModel):
    token: str
    token_type: str = "Bearer"
    id: int
    username: str
    email: Optional[str] = None
    role: RoleEnum
    avatar: Optional[str] = None


class UserRead(CamelModel):
    id: int
    username: str
    email: Optional[str] = None
    role: RoleEnum
    real_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    avatar: Optional[str] = None
    is_enabled: bool
    is_locked: bool
    lock_end_time: Optional[datetime] = None
    lock_reason: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class ProfileUpdate(CamelModel):
    email: Optional[EmailStr] = None
    real_name: Optional[str] = Field(None, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=255)
    avatar: Optional[str] = Field(None, max_length=255)


class PasswordChange(CamelModel):
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=100)


class PasswordReset(CamelModel):
    new_password: str = Field(..., min_length=6, max_length=100)


class AdminUserCreate(RegisterRequest):
    role: RoleEnum = RoleEnum.RESIDENT


class AdminUserUpdate(ProfileUpdate):
    role: Optional[RoleEnum] = None


class UserStatusUpdate(CamelModel):
    enabled: bool


class UserLockRequest(CamelModel):
    days: Optional[int] = Field(None, ge=1, description="Lock duration; omit for an indefinite lock")
    reason: Optional[str] = Field(None, max_length=500)


class InitAdminRequest(RegisterRequest):
    role: RoleEnum = RoleEnum.SYSADMIN


# Items


class ItemCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=2000)
    event_date: datetime
    location: str = Field(..., min_length=1, max_length=255)
    category: Optional[str] = Field(None, max_length=50)
    images: List[str] = Field(default_factory=list)
    contact_info: Optional[str] = Field(None, max_length=255)


class ItemUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    event_date: Optional[datetime] = None
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = Field(None, max_length=50)
    images: Optional[List[str]] = None
    contact_info: Optional[str] = Field(None, max_length=255)
    status: Optional[str] = None


class ItemStatusUpdate(CamelModel):
    status: str = Field(..., min_length=1)


class ItemRead(CamelModel):
    id: int
    kind: ItemKind
    title: str
    description: str
    event_date: datetime
    location: str
    category: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    contact_info: Optional[str] = None
    status: str
    user_id: int
    username: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


# Claims


class ClaimRequest(CamelModel):
    description: str = Field(..., min_length=10, max_length=500)


class ClaimRead(CamelModel):
    id: int
    found_item_id: int
    found_item_title: Optional[str] = None
    found_item_image: Optional[str] = None
    applicant_id: int
    applicant_name: Optional[str] = None
    applicant_contact: Optional[str] = None
    owner_id: Optional[int] = None
    owner_name: Optional[str] = None
    description: str
    status: ClaimStatus
    created_at: datetime
    updated_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None


# Reports


class ReportCreate(CamelModel):
    report_type: ReportType
    reported_item_id: int = Field(..., ge=1)
    reason: str = Field(..., min_length=5, max_length=500)


class ReportResolution(CamelModel):
    status: ReportStatus
    resolution_notes: Optional[str] = Field(None, max_length=500)
    action_type: ActionType = ActionType.NONE
    action_days: Optional[int] = None


class ReportRead(CamelModel):
    id: int
    report_type: ReportType
    reported_item_id: int
    reported_item_title: Optional[str] = None
    reporter_id: int
    reporter_username: Optional[str] = None
    reported_user_id: int
    reported_username: Optional[str] = None
    reason: str
    status: ReportStatus
    resolution_notes: Optional[str] = None
    resolved_by_admin_id: Optional[int] = None
    resolved_by_admin_username: Optional[str] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None


class ReportPage(Page[ReportRead]):
    pending_reports_count: int = 0


# Comments


class ItemCommentCreate(CamelModel):
    item_id: int = Field(..., ge=1)
    item_type: ItemKind
    content: str = Field(..., min_length=1, max_length=500)


class PostCommentCreate(CamelModel):
    post_id: int = Field(..., ge=1)
    content: str = Field(..., min_length=1, max_length=500)


class CommentRead(CamelModel):
    id: int
    user_id: int
    username: Optional[str] = None
    user_avatar: Optional[str] = None
    content: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class ItemCommentRead(CommentRead):
    item_id: int
    item_type: ItemKind


class PostCommentRead(CommentRead):
    post_id: int


# Posts


class PostCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=100)
    content: str = Field(..., min_length=1, max_length=5000)


class PostUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    content: Optional[str] = Field(None, min_length=1, max_length=5000)


class PostRead(CamelModel):
    id: int
    title: str
    content: str
    user_id: int
    username: Optional[str] = None
    user_avatar: Optional[str] = None
    comment_count: int = 0
    created_at: datetime
    updated_at: Optional[datetime] = None


# Announcements


class AnnouncementCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=100)
    content: str = Field(..., min_length=1)
    status: AnnouncementStatus = AnnouncementStatus.DRAFT
    is_sticky: bool = False


class AnnouncementUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    content: Optional[str] = Field(None, min_length=1)
    status: Optional[AnnouncementStatus] = None
    is_sticky: Optional[bool] = None


class AnnouncementRead(CamelModel):
    id: int
    title: str
    content: str
    status: AnnouncementStatus
    is_sticky: bool
    admin_id: int
    admin_name: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


# Uploads


class UploadResult(CamelModel):
    file_path: str
    file_url: str
    file_size: int
    content_type: Optional[str] = None
    file_type: str
