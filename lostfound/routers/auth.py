from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..rate_limit import limiter
from ..schemas import ApiResponse, LoginRequest, RegisterRequest, TokenResponse, UserRead, ok
from ..services import users as user_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=ApiResponse[UserRead], status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register(request: Request, payload: RegisterRequest, db: Session = Depends(get_db)):
    """
    Self-service registration. New accounts are always residents.
    """
    user = user_service.register_resident(db, payload)
    return ok(UserRead.model_validate(user), "注册成功", status.HTTP_201_CREATED)


@router.post("/login", response_model=ApiResponse[TokenResponse])
@limiter.limit("10/minute")
def login(request: Request, payload: LoginRequest, db: Session = Depends(get_db)):
    """
    Exchange a username (or e-mail) and password for a bearer token.
    Locked and disabled accounts are refused even with valid credentials.
    """
    return ok(user_service.login(db, payload), "登录成功")
