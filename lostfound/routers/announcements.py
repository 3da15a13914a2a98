from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_optional_identity, require_admin
from ..schemas import (
    AnnouncementCreate,
    AnnouncementRead,
    AnnouncementUpdate,
    ApiResponse,
    Page,
    TokenData,
    ok,
)
from ..services import announcements as announcement_service

router = APIRouter(prefix="/announcements", tags=["announcements"])


@router.get("", response_model=ApiResponse[Page[AnnouncementRead]])
def list_published(
    keyword: Optional[str] = None,
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """
    Published announcements, pinned ones first.
    """
    return ok(announcement_service.list_published(db, page, size, keyword))


@router.get("/admin", response_model=ApiResponse[Page[AnnouncementRead]], dependencies=[Depends(require_admin)])
def list_for_admin(
    keyword: Optional[str] = None,
    admin_name: Optional[str] = Query(None, alias="adminName"),
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return ok(announcement_service.list_for_admin(db, page, size, keyword, admin_name))


@router.get("/admin/mine", response_model=ApiResponse[Page[AnnouncementRead]])
def list_mine(
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    identity: TokenData = Depends(require_admin),
):
    return ok(announcement_service.list_for_admin(db, page, size, admin_id=identity.user_id))


@router.post("/admin", response_model=ApiResponse[AnnouncementRead], status_code=status.HTTP_201_CREATED)
def create_announcement(
    payload: AnnouncementCreate,
    db: Session = Depends(get_db),
    identity: TokenData = Depends(require_admin),
):
    announcement = announcement_service.create_announcement(db, payload, identity)
    return ok(announcement, "公告创建成功", status.HTTP_201_CREATED)


@router.put("/admin/{announcement_id}", response_model=ApiResponse[AnnouncementRead])
def update_announcement(
    announcement_id: int,
    payload: AnnouncementUpdate,
    db: Session = Depends(get_db),
    identity: TokenData = Depends(require_admin),
):
    """
    Authors edit their own announcements; a sysadmin may edit any.
    """
    return ok(announcement_service.update_announcement(db, announcement_id, payload, identity), "公告更新成功")


@router.delete("/admin/{announcement_id}", response_model=ApiResponse[None])
def delete_announcement(
    announcement_id: int,
    db: Session = Depends(get_db),
    identity: TokenData = Depends(require_admin),
):
    announcement_service.delete_announcement(db, announcement_id, identity)
    return ok(message="公告删除成功")


@router.get("/{announcement_id}", response_model=ApiResponse[AnnouncementRead])
def get_announcement(
    announcement_id: int,
    db: Session = Depends(get_db),
    identity: Optional[TokenData] = Depends(get_optional_identity),
):
    return ok(announcement_service.get_visible(db, announcement_id, identity))
