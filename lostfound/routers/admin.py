from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_sysadmin
from ..models import ADMIN_ROLES, RoleEnum
from ..schemas import (
    AdminUserCreate,
    AdminUserUpdate,
    ApiResponse,
    Page,
    PasswordReset,
    RegisterRequest,
    UserLockRequest,
    UserRead,
    UserStatusUpdate,
    ok,
)
from ..services import users as user_service

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_sysadmin)])

NOT_ADMIN = "指定用户不是管理员"


@router.post("/register-sysadmin", response_model=ApiResponse[UserRead], status_code=status.HTTP_201_CREATED)
def register_sysadmin(payload: RegisterRequest, db: Session = Depends(get_db)):
    user = user_service.create_user(db, payload, RoleEnum.SYSADMIN)
    return ok(UserRead.model_validate(user), "系统管理员创建成功", status.HTTP_201_CREATED)


@router.post("/register-admin", response_model=ApiResponse[UserRead], status_code=status.HTTP_201_CREATED)
def register_admin(payload: RegisterRequest, db: Session = Depends(get_db)):
    user = user_service.create_user(db, payload, RoleEnum.ADMIN)
    return ok(UserRead.model_validate(user), "小区管理员创建成功", status.HTTP_201_CREATED)


@router.get("/admins", response_model=ApiResponse[Page[UserRead]])
def list_admins(
    keyword: Optional[str] = None,
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return ok(user_service.list_users(db, page, size, keyword=keyword, roles=ADMIN_ROLES))


@router.get("/admins/{user_id}", response_model=ApiResponse[UserRead])
def get_admin(user_id: int, db: Session = Depends(get_db)):
    return ok(UserRead.model_validate(user_service.get_user_with_role(db, user_id, ADMIN_ROLES, NOT_ADMIN)))


@router.put("/admins/{user_id}/status", response_model=ApiResponse[UserRead])
def set_admin_status(user_id: int, payload: UserStatusUpdate, db: Session = Depends(get_db)):
    user = user_service.get_user_with_role(db, user_id, ADMIN_ROLES, NOT_ADMIN)
    return ok(UserRead.model_validate(user_service.set_enabled(db, user, payload.enabled)), "状态更新成功")


@router.delete("/admins/{user_id}", response_model=ApiResponse[None])
def delete_admin(user_id: int, db: Session = Depends(get_db)):
    """
    Remove a community admin. System administrators cannot be deleted.
    """
    user = user_service.get_user_with_role(db, user_id, ADMIN_ROLES, NOT_ADMIN)
    user_service.delete_user(db, user)
    return ok(message="管理员删除成功")


@router.get("/users", response_model=ApiResponse[Page[UserRead]])
def list_users(
    search: Optional[str] = None,
    role: Optional[RoleEnum] = None,
    enabled: Optional[bool] = None,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """
    Paginated user listing with keyword, role, status and registration-date filters.
    """
    roles = (role,) if role else None
    return ok(user_service.list_users(db, page, size, search, roles, enabled, start_date, end_date))


@router.get("/users/{user_id}", response_model=ApiResponse[UserRead])
def get_user(user_id: int, db: Session = Depends(get_db)):
    return ok(UserRead.model_validate(user_service.get_user(db, user_id)))


@router.post("/users", response_model=ApiResponse[UserRead], status_code=status.HTTP_201_CREATED)
def create_user(payload: AdminUserCreate, db: Session = Depends(get_db)):
    user = user_service.admin_create_user(db, payload)
    return ok(UserRead.model_validate(user), "用户创建成功", status.HTTP_201_CREATED)


@router.put("/users/{user_id}", response_model=ApiResponse[UserRead])
def update_user(user_id: int, payload: AdminUserUpdate, db: Session = Depends(get_db)):
    return ok(UserRead.model_validate(user_service.update_user(db, user_id, payload)), "用户更新成功")


@router.put("/users/{user_id}/status", response_model=ApiResponse[UserRead])
def set_user_status(user_id: int, payload: UserStatusUpdate, db: Session = Depends(get_db)):
    user = user_service.get_user(db, user_id)
    return ok(UserRead.model_validate(user_service.set_enabled(db, user, payload.enabled)), "状态更新成功")


@router.put("/users/{user_id}/lock", response_model=ApiResponse[UserRead])
def lock_user(user_id: int, payload: UserLockRequest, db: Session = Depends(get_db)):
    user = user_service.lock_user(db, user_id, payload.days, payload.reason)
    return ok(UserRead.model_validate(user), "用户已锁定")


@router.put("/users/{user_id}/unlock", response_model=ApiResponse[UserRead])
def unlock_user(user_id: int, db: Session = Depends(get_db)):
    return ok(UserRead.model_validate(user_service.unlock_user(db, user_id)), "用户已解锁")


@router.put("/users/{user_id}/reset-password", response_model=ApiResponse[None])
def reset_password(user_id: int, payload: PasswordReset, db: Session = Depends(get_db)):
    user_service.reset_password(db, user_id, payload.new_password)
    return ok(message="密码重置成功")


@router.delete("/users/{user_id}", response_model=ApiResponse[None])
def delete_user(user_id: int, db: Session = Depends(get_db)):
    user_service.delete_user(db, user_service.get_user(db, user_id))
    return ok(message="用户删除成功")
