from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_current_identity
from ..models import ItemKind
from ..schemas import (
    ApiResponse,
    ItemCommentCreate,
    ItemCommentRead,
    Page,
    PostCommentCreate,
    PostCommentRead,
    TokenData,
    ok,
)
from ..services import comments as comment_service
from ..services.comments import CommentKind

item_comments_router = APIRouter(prefix="/item-comments", tags=["item-comments"])
post_comments_router = APIRouter(prefix="/post-comments", tags=["post-comments"])


@item_comments_router.post("", response_model=ApiResponse[ItemCommentRead], status_code=status.HTTP_201_CREATED)
def add_item_comment(
    payload: ItemCommentCreate,
    db: Session = Depends(get_db),
    identity: TokenData = Depends(get_current_identity),
):
    """
    Comment on a lost-item notice. Found-item listings do not take comments.
    """
    comment = comment_service.add_item_comment(db, payload, identity)
    return ok(comment, "评论发表成功", status.HTTP_201_CREATED)


@item_comments_router.get("", response_model=ApiResponse[Page[ItemCommentRead]])
def list_item_comments(
    item_id: int = Query(..., alias="itemId"),
    item_type: ItemKind = Query(ItemKind.LOST, alias="itemType"),
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return ok(comment_service.list_for_target(db, CommentKind.ITEM, item_id, page, size, item_type))


@item_comments_router.get("/all", response_model=ApiResponse[List[ItemCommentRead]])
def list_all_item_comments(
    item_id: int = Query(..., alias="itemId"),
    item_type: ItemKind = Query(ItemKind.LOST, alias="itemType"),
    db: Session = Depends(get_db),
):
    return ok(comment_service.list_all_for_target(db, CommentKind.ITEM, item_id, item_type))


@item_comments_router.get("/me", response_model=ApiResponse[List[ItemCommentRead]])
def my_item_comments(db: Session = Depends(get_db), identity: TokenData = Depends(get_current_identity)):
    return ok(comment_service.list_for_user(db, CommentKind.ITEM, identity.user_id))


@item_comments_router.get("/user/{user_id}", response_model=ApiResponse[List[ItemCommentRead]])
def user_item_comments(user_id: int, db: Session = Depends(get_db)):
    return ok(comment_service.list_for_user(db, CommentKind.ITEM, user_id))


@item_comments_router.get("/{comment_id}", response_model=ApiResponse[ItemCommentRead])
def get_item_comment(comment_id: int, db: Session = Depends(get_db)):
    return ok(comment_service.to_comment_read(comment_service.get_comment(db, CommentKind.ITEM, comment_id)))


@item_comments_router.delete("/{comment_id}", response_model=ApiResponse[None])
def delete_item_comment(
    comment_id: int,
    db: Session = Depends(get_db),
    identity: TokenData = Depends(get_current_identity),
):
    comment_service.delete_comment(db, CommentKind.ITEM, comment_id, identity)
    return ok(message="评论删除成功")


@post_comments_router.post("", response_model=ApiResponse[PostCommentRead], status_code=status.HTTP_201_CREATED)
def add_post_comment(
    payload: PostCommentCreate,
    db: Session = Depends(get_db),
    identity: TokenData = Depends(get_current_identity),
):
    comment = comment_service.add_post_comment(db, payload, identity)
    return ok(comment, "评论发表成功", status.HTTP_201_CREATED)


@post_comments_router.get("", response_model=ApiResponse[Page[PostCommentRead]])
def list_post_comments(
    post_id: int = Query(..., alias="postId"),
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return ok(comment_service.list_for_target(db, CommentKind.POST, post_id, page, size))


@post_comments_router.get("/all", response_model=ApiResponse[List[PostCommentRead]])
def list_all_post_comments(post_id: int = Query(..., alias="postId"), db: Session = Depends(get_db)):
    return ok(comment_service.list_all_for_target(db, CommentKind.POST, post_id))


@post_comments_router.get("/me", response_model=ApiResponse[List[PostCommentRead]])
def my_post_comments(db: Session = Depends(get_db), identity: TokenData = Depends(get_current_identity)):
    return ok(comment_service.list_for_user(db, CommentKind.POST, identity.user_id))


@post_comments_router.get("/user/{user_id}", response_model=ApiResponse[List[PostCommentRead]])
def user_post_comments(user_id: int, db: Session = Depends(get_db)):
    return ok(comment_service.list_for_user(db, CommentKind.POST, user_id))


@post_comments_router.get("/{comment_id}", response_model=ApiResponse[PostCommentRead])
def get_post_comment(comment_id: int, db: Session = Depends(get_db)):
    return ok(comment_service.to_comment_read(comment_service.get_comment(db, CommentKind.POST, comment_id)))


@post_comments_router.delete("/{comment_id}", response_model=ApiResponse[None])
def delete_post_comment(
    comment_id: int,
    db: Session = Depends(get_db),
    identity: TokenData = Depends(get_current_identity),
):
    comment_service.delete_comment(db, CommentKind.POST, comment_id, identity)
    return ok(message="评论删除成功")
