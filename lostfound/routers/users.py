from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_current_identity
from ..schemas import ApiResponse, PasswordChange, ProfileUpdate, TokenData, UserRead, ok
from ..services import users as user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=ApiResponse[UserRead])
def read_me(db: Session = Depends(get_db), identity: TokenData = Depends(get_current_identity)):
    return ok(UserRead.model_validate(user_service.get_user(db, identity.user_id)))


@router.put("/profile", response_model=ApiResponse[UserRead])
def update_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    identity: TokenData = Depends(get_current_identity),
):
    user = user_service.update_profile(db, identity, payload)
    return ok(UserRead.model_validate(user), "个人信息更新成功")


@router.put("/change-password", response_model=ApiResponse[None])
def change_password(
    payload: PasswordChange,
    db: Session = Depends(get_db),
    identity: TokenData = Depends(get_current_identity),
):
    """
    Change the caller's password after re-checking the current one.
    """
    user_service.change_password(db, identity, payload)
    return ok(message="密码修改成功")
