from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_current_identity
from ..schemas import ApiResponse, Page, PostCreate, PostRead, PostUpdate, TokenData, ok
from ..services import posts as post_service

router = APIRouter(prefix="/posts", tags=["posts"])


@router.post("", response_model=ApiResponse[PostRead], status_code=status.HTTP_201_CREATED)
def create_post(
    payload: PostCreate,
    db: Session = Depends(get_db),
    identity: TokenData = Depends(get_current_identity),
):
    return ok(post_service.create_post(db, payload, identity), "帖子发布成功", status.HTTP_201_CREATED)


@router.get("", response_model=ApiResponse[Page[PostRead]])
def list_posts(
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return ok(post_service.list_posts(db, page, size))


@router.get("/search", response_model=ApiResponse[Page[PostRead]])
def search_posts(
    keyword: str = Query(..., min_length=1),
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """
    Match ``keyword`` against post titles and bodies.
    """
    return ok(post_service.list_posts(db, page, size, keyword=keyword))


@router.get("/me", response_model=ApiResponse[Page[PostRead]])
def my_posts(
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    identity: TokenData = Depends(get_current_identity),
):
    return ok(post_service.list_posts(db, page, size, user_id=identity.user_id))


@router.get("/user/{user_id}", response_model=ApiResponse[Page[PostRead]])
def user_posts(
    user_id: int,
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return ok(post_service.list_posts(db, page, size, user_id=user_id))


@router.get("/{post_id}", response_model=ApiResponse[PostRead])
def get_post(post_id: int, db: Session = Depends(get_db)):
    return ok(post_service.to_post_read(db, post_service.get_post(db, post_id)))


@router.put("/{post_id}", response_model=ApiResponse[PostRead])
def update_post(
    post_id: int,
    payload: PostUpdate,
    db: Session = Depends(get_db),
    identity: TokenData = Depends(get_current_identity),
):
    return ok(post_service.update_post(db, post_id, payload, identity), "帖子更新成功")


@router.delete("/{post_id}", response_model=ApiResponse[None])
def delete_post(post_id: int, db: Session = Depends(get_db), identity: TokenData = Depends(get_current_identity)):
    """
    Owner or admin removal; the post's comments go with it.
    """
    post_service.delete_post(db, post_id, identity)
    return ok(message="帖子删除成功")
