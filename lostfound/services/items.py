"""Lost and found listings, dispatched on ``ItemKind``."""
import logging
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..errors import BadRequestError, ForbiddenError, NotFoundError
from ..models import (
    ITEM_MODELS,
    ITEM_STATUSES,
    ClaimApplication,
    ClaimStatus,
    FoundItem,
    FoundItemStatus,
    ItemComment,
    ItemKind,
    LostItem,
)
from ..schemas import ItemCreate, ItemRead, ItemUpdate, Page, TokenData
from .pagination import paginate

logger = logging.getLogger(__name__)

Item = Union[LostItem, FoundItem]

NOT_FOUND_MESSAGES = {ItemKind.LOST: "寻物启事不存在", ItemKind.FOUND: "失物招领不存在"}
SORT_FIELDS = {"createdAt": "created_at", "updatedAt": "updated_at"}
CLAIM_MANAGED = (FoundItemStatus.PROCESSING, FoundItemStatus.CLAIMED)


def to_item_read(kind: ItemKind, item: Item) -> ItemRead:
    return ItemRead(
        id=item.id,
        kind=kind,
        title=item.title,
        description=item.description,
        event_date=item.event_date,
        location=item.location,
        category=item.category,
        images=list(item.images or []),
        contact_info=item.contact_info,
        status=item.status.value,
        user_id=item.user_id,
        username=item.user.username if item.user else None,
        created_at=item.created_at,
        updated_at=item.updated_at,
    )


def get_item(db: Session, kind: ItemKind, item_id: int) -> Item:
    item = db.get(ITEM_MODELS[kind], item_id)
    if not item:
        raise NotFoundError(NOT_FOUND_MESSAGES[kind])
    return item


def parse_status(kind: ItemKind, value: str):
    try:
        return ITEM_STATUSES[kind](value)
    except ValueError:
        allowed = ", ".join(member.value for member in ITEM_STATUSES[kind])
        raise BadRequestError(f"无效的状态值: {value}，允许的值: {allowed}") from None


def _check_date(event_date: datetime) -> None:
    reference = datetime.now(event_date.tzinfo) if event_date.tzinfo else datetime.utcnow()
    if event_date > reference:
        raise BadRequestError("日期不能是未来时间")


def _check_owner(item: Item, identity: TokenData) -> None:
    if item.user_id != identity.user_id and not identity.is_admin:
        raise ForbiddenError("您没有权限修改该信息")


def _check_status_change(db: Session, kind: ItemKind, item: Item, new_status) -> None:
    """Keep found-item statuses owned by the claim workflow.

    ``processing`` and ``claimed`` are only ever set by claims, and an item
    stays in them while a pending or approved application exists.
    ``closed`` is allowed because it removes the listing outright.
    """

    if kind is not ItemKind.FOUND or new_status == item.status:
        return
    if new_status in CLAIM_MANAGED:
        raise BadRequestError("认领中或已认领状态只能通过认领流程设置")
    if item.status in CLAIM_MANAGED and new_status != FoundItemStatus.CLOSED:
        active = (
            db.query(ClaimApplication)
            .filter(
                ClaimApplication.found_item_id == item.id,
                ClaimApplication.status.in_((ClaimStatus.PENDING, ClaimStatus.APPROVED)),
            )
            .first()
        )
        if active:
            raise BadRequestError("该失物招领存在进行中或已批准的认领申请，无法直接修改状态")


def create_item(db: Session, kind: ItemKind, payload: ItemCreate, identity: TokenData) -> ItemRead:
    _check_date(payload.event_date)
    model = ITEM_MODELS[kind]
    item = model(**payload.model_dump(), status=ITEM_STATUSES[kind].PENDING, user_id=identity.user_id)
    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info("User %s published %s item %s", identity.user_id, kind.value, item.id)
    return to_item_read(kind, item)


def search_items(
    db: Session,
    kind: ItemKind,
    page: int,
    size: int,
    category: Optional[str] = None,
    status: Optional[str] = None,
    keyword: Optional[str] = None,
) -> Page[ItemRead]:
    model = ITEM_MODELS[kind]
    query = db.query(model)
    if category:
        query = query.filter(model.category == category)
    if status:
        query = query.filter(model.status == parse_status(kind, status))
    if keyword:
        pattern = f"%{keyword}%"
        query = query.filter(
            or_(model.title.ilike(pattern), model.description.ilike(pattern), model.location.ilike(pattern))
        )
    query = query.order_by(model.created_at.desc(), model.id.desc())
    return paginate(query, page, size, lambda item: to_item_read(kind, item))


def list_my_items(
    db: Session,
    kind: ItemKind,
    identity: TokenData,
    page: int,
    size: int,
    status: Optional[str] = None,
    sort_by: str = "createdAt",
    sort_direction: str = "desc",
) -> Page[ItemRead]:
    model = ITEM_MODELS[kind]
    query = db.query(model).filter(model.user_id == identity.user_id)
    if status:
        query = query.filter(model.status == parse_status(kind, status))
    column = getattr(model, SORT_FIELDS.get(sort_by, "created_at"))
    ordering = column.asc() if sort_direction.lower() == "asc" else column.desc()
    return paginate(query.order_by(ordering, model.id), page, size, lambda item: to_item_read(kind, item))


def update_item(db: Session, kind: ItemKind, item_id: int, payload: ItemUpdate, identity: TokenData) -> ItemRead:
    item = get_item(db, kind, item_id)
    _check_owner(item, identity)
    changes = payload.model_dump(exclude_unset=True)
    status = changes.pop("status", None)
    new_status = parse_status(kind, status) if status else None
    if new_status is not None:
        _check_status_change(db, kind, item, new_status)
    if changes.get("event_date"):
        _check_date(changes["event_date"])
    for field, value in changes.items():
        if value is None and field in ("title", "description", "event_date", "location"):
            continue
        setattr(item, field, value)
    if new_status is not None:
        item.status = new_status
    db.commit()
    db.refresh(item)
    return to_item_read(kind, item)


def remove_item(db: Session, kind: ItemKind, item: Item) -> None:
    """Delete ``item`` and its comments; found items take their claims with them."""

    db.query(ItemComment).filter(ItemComment.item_type == kind, ItemComment.item_id == item.id).delete(
        synchronize_session=False
    )
    db.delete(item)


def delete_item(db: Session, kind: ItemKind, item_id: int, identity: TokenData) -> None:
    item = get_item(db, kind, item_id)
    _check_owner(item, identity)
    remove_item(db, kind, item)
    db.commit()
    logger.info("User %s deleted %s item %s", identity.user_id, kind.value, item_id)


def update_status(db: Session, kind: ItemKind, item_id: int, value: str, identity: TokenData) -> Optional[ItemRead]:
    """Set a listing's status; closing a listing removes it and returns ``None``."""

    item = get_item(db, kind, item_id)
    _check_owner(item, identity)
    new_status = parse_status(kind, value)
    _check_status_change(db, kind, item, new_status)
    if new_status.value == "closed":
        remove_item(db, kind, item)
        db.commit()
        logger.info("Closed and removed %s item %s", kind.value, item_id)
        return None
    item.status = new_status
    db.commit()
    db.refresh(item)
    return to_item_read(kind, item)
