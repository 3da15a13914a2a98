"""Comments on listings and on forum posts.

Both families share the same shape and rules; ``CommentKind`` picks the table
and the target each comment hangs off.
"""
import html
import logging
from enum import Enum
from typing import List, Union

from sqlalchemy.orm import Session

from ..errors import BadRequestError, ForbiddenError, NotFoundError
from ..models import ItemComment, ItemKind, Post, PostComment
from ..schemas import (
    ItemCommentCreate,
    ItemCommentRead,
    Page,
    PostCommentCreate,
    PostCommentRead,
    TokenData,
)
from . import items as item_service
from .pagination import paginate

logger = logging.getLogger(__name__)

Comment = Union[ItemComment, PostComment]


class CommentKind(str, Enum):
    ITEM = "item"
    POST = "post"


COMMENT_MODELS = {CommentKind.ITEM: ItemComment, CommentKind.POST: PostComment}


def _sanitize(content: str) -> str:
    stripped = content.strip()
    if not stripped:
        raise BadRequestError("评论内容不能为空")
    return html.escape(stripped)


def to_comment_read(comment: Comment):
    user = comment.user
    common = dict(
        id=comment.id,
        user_id=comment.user_id,
        username=user.username if user else None,
        user_avatar=user.avatar if user else None,
        content=comment.content,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
    )
    if isinstance(comment, ItemComment):
        return ItemCommentRead(item_id=comment.item_id, item_type=comment.item_type, **common)
    return PostCommentRead(post_id=comment.post_id, **common)


def get_comment(db: Session, kind: CommentKind, comment_id: int) -> Comment:
    comment = db.get(COMMENT_MODELS[kind], comment_id)
    if not comment:
        raise NotFoundError("评论不存在")
    return comment


def add_item_comment(db: Session, payload: ItemCommentCreate, identity: TokenData) -> ItemCommentRead:
    if payload.item_type is ItemKind.FOUND:
        raise BadRequestError("失物招领不支持评论功能")
    item_service.get_item(db, payload.item_type, payload.item_id)
    comment = ItemComment(
        item_id=payload.item_id,
        item_type=payload.item_type,
        user_id=identity.user_id,
        content=_sanitize(payload.content),
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return to_comment_read(comment)


def add_post_comment(db: Session, payload: PostCommentCreate, identity: TokenData) -> PostCommentRead:
    if not db.get(Post, payload.post_id):
        raise NotFoundError("帖子不存在")
    comment = PostComment(post_id=payload.post_id, user_id=identity.user_id, content=_sanitize(payload.content))
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return to_comment_read(comment)


def _target_query(db: Session, kind: CommentKind, target_id: int, item_type: ItemKind = ItemKind.LOST):
    if kind is CommentKind.ITEM:
        query = db.query(ItemComment).filter(ItemComment.item_id == target_id, ItemComment.item_type == item_type)
        return query.order_by(ItemComment.created_at.asc(), ItemComment.id.asc())
    query = db.query(PostComment).filter(PostComment.post_id == target_id)
    return query.order_by(PostComment.created_at.asc(), PostComment.id.asc())


def list_for_target(
    db: Session, kind: CommentKind, target_id: int, page: int, size: int, item_type: ItemKind = ItemKind.LOST
) -> Page:
    return paginate(_target_query(db, kind, target_id, item_type), page, size, to_comment_read)


def list_all_for_target(db: Session, kind: CommentKind, target_id: int, item_type: ItemKind = ItemKind.LOST) -> List:
    return [to_comment_read(comment) for comment in _target_query(db, kind, target_id, item_type).all()]


def list_for_user(db: Session, kind: CommentKind, user_id: int) -> List:
    model = COMMENT_MODELS[kind]
    comments = db.query(model).filter(model.user_id == user_id).order_by(model.created_at.desc(), model.id.desc())
    return [to_comment_read(comment) for comment in comments.all()]


def delete_comment(db: Session, kind: CommentKind, comment_id: int, identity: TokenData) -> None:
    comment = get_comment(db, kind, comment_id)
    if comment.user_id != identity.user_id and not identity.is_admin:
        raise ForbiddenError("您没有权限删除该评论")
    db.delete(comment)
    db.commit()
    logger.info("User %s deleted %s comment %s", identity.user_id, kind.value, comment_id)
