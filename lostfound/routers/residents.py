from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_admin
from ..models import RoleEnum
from ..schemas import AdminUserUpdate, ApiResponse, Page, RegisterRequest, UserRead, UserStatusUpdate, ok
from ..services import users as user_service

router = APIRouter(prefix="/residents", tags=["residents"], dependencies=[Depends(require_admin)])

RESIDENT_ONLY = (RoleEnum.RESIDENT,)
NOT_RESIDENT = "指定用户不是居民"


def _resident(db: Session, user_id: int):
    return user_service.get_user_with_role(db, user_id, RESIDENT_ONLY, NOT_RESIDENT)


@router.post("", response_model=ApiResponse[UserRead], status_code=status.HTTP_201_CREATED)
def create_resident(payload: RegisterRequest, db: Session = Depends(get_db)):
    user = user_service.create_user(db, payload, RoleEnum.RESIDENT)
    return ok(UserRead.model_validate(user), "居民创建成功", status.HTTP_201_CREATED)


@router.get("", response_model=ApiResponse[Page[UserRead]])
def list_residents(
    search: Optional[str] = None,
    enabled: Optional[bool] = None,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return ok(user_service.list_users(db, page, size, search, RESIDENT_ONLY, enabled, start_date, end_date))


@router.get("/{user_id}", response_model=ApiResponse[UserRead])
def get_resident(user_id: int, db: Session = Depends(get_db)):
    return ok(UserRead.model_validate(_resident(db, user_id)))


@router.put("/{user_id}", response_model=ApiResponse[UserRead])
def update_resident(user_id: int, payload: AdminUserUpdate, db: Session = Depends(get_db)):
    """
    Update a resident's profile. Role changes are not accepted here.
    """
    _resident(db, user_id)
    payload.role = None
    return ok(UserRead.model_validate(user_service.update_user(db, user_id, payload)), "居民信息更新成功")


@router.put("/{user_id}/status", response_model=ApiResponse[UserRead])
def set_resident_status(user_id: int, payload: UserStatusUpdate, db: Session = Depends(get_db)):
    user = user_service.set_enabled(db, _resident(db, user_id), payload.enabled)
    return ok(UserRead.model_validate(user), "状态更新成功")


@router.delete("/{user_id}", response_model=ApiResponse[None])
def delete_resident(user_id: int, db: Session = Depends(get_db)):
    user_service.delete_user(db, _resident(db, user_id))
    return ok(message="居民删除成功")
