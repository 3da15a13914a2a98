from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas import ApiResponse, InitAdminRequest, UserRead, ok
from ..services import users as user_service

router = APIRouter(prefix="/system", tags=["system"])


@router.post("/init-admin", response_model=ApiResponse[UserRead], status_code=status.HTTP_201_CREATED)
def init_admin(payload: InitAdminRequest, db: Session = Depends(get_db)):
    """
    Create the first administrator of a fresh installation.
    Refused once any admin or sysadmin account exists.
    """
    user = user_service.init_admin(db, payload, payload.role)
    return ok(UserRead.model_validate(user), "初始管理员创建成功", status.HTTP_201_CREATED)
