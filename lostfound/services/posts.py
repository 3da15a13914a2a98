"""Forum posts."""
import logging
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..errors import ForbiddenError, NotFoundError
from ..models import Post, PostComment
from ..schemas import Page, PostCreate, PostRead, PostUpdate, TokenData
from .pagination import paginate

logger = logging.getLogger(__name__)


def to_post_read(db: Session, post: Post) -> PostRead:
    comment_count = db.query(func.count(PostComment.id)).filter(PostComment.post_id == post.id).scalar() or 0
    return PostRead(
        id=post.id,
        title=post.title,
        content=post.content,
        user_id=post.user_id,
        username=post.user.username if post.user else None,
        user_avatar=post.user.avatar if post.user else None,
        comment_count=comment_count,
        created_at=post.created_at,
        updated_at=post.updated_at,
    )


def get_post(db: Session, post_id: int) -> Post:
    post = db.get(Post, post_id)
    if not post:
        raise NotFoundError("帖子不存在")
    return post


def create_post(db: Session, payload: PostCreate, identity: TokenData) -> PostRead:
    post = Post(title=payload.title, content=payload.content, user_id=identity.user_id)
    db.add(post)
    db.commit()
    db.refresh(post)
    logger.info("User %s created post %s", identity.user_id, post.id)
    return to_post_read(db, post)


def list_posts(
    db: Session, page: int, size: int, keyword: Optional[str] = None, user_id: Optional[int] = None
) -> Page[PostRead]:
    query = db.query(Post)
    if keyword:
        pattern = f"%{keyword}%"
        query = query.filter(or_(Post.title.ilike(pattern), Post.content.ilike(pattern)))
    if user_id is not None:
        query = query.filter(Post.user_id == user_id)
    query = query.order_by(Post.created_at.desc(), Post.id.desc())
    return paginate(query, page, size, lambda post: to_post_read(db, post))


def _check_owner(post: Post, identity: TokenData) -> None:
    if post.user_id != identity.user_id and not identity.is_admin:
        raise ForbiddenError("您没有权限修改该帖子")


def update_post(db: Session, post_id: int, payload: PostUpdate, identity: TokenData) -> PostRead:
    post = get_post(db, post_id)
    _check_owner(post, identity)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(post, field, value)
    db.commit()
    db.refresh(post)
    return to_post_read(db, post)


def delete_post(db: Session, post_id: int, identity: TokenData) -> None:
    post = get_post(db, post_id)
    _check_owner(post, identity)
    db.delete(post)
    db.commit()
    logger.info("User %s deleted post %s", identity.user_id, post_id)
