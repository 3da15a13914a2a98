"""Claim workflow for found items.

State machine::

    FoundItem:        pending -> processing -> claimed
                                      \\-> pending   (rejected)
    ClaimApplication: pending -> approved | rejected

Every transition that touches both rows commits once. The prior status of the
row being moved is part of the UPDATE's WHERE clause, so when two requests race
on the same row only one of them matches and the other gets ``ConflictError``.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from ..models import ClaimApplication, ClaimStatus, FoundItem, FoundItemStatus, ItemKind, User
from ..schemas import ClaimRead, ClaimRequest, Page, TokenData
from .items import get_item
from .pagination import paginate

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (ClaimStatus.PENDING, ClaimStatus.APPROVED)


def to_claim_read(claim: ClaimApplication) -> ClaimRead:
    item = claim.found_item
    applicant = claim.applicant
    owner = item.user if item else None
    return ClaimRead(
        id=claim.id,
        found_item_id=claim.found_item_id,
        found_item_title=item.title if item else None,
        found_item_image=item.images[0] if item and item.images else None,
        applicant_id=claim.applicant_id,
        applicant_name=(applicant.real_name or applicant.username) if applicant else None,
        applicant_contact=(applicant.phone or applicant.email) if applicant else None,
        owner_id=item.user_id if item else None,
        owner_name=(owner.real_name or owner.username) if owner else None,
        description=claim.description,
        status=claim.status,
        created_at=claim.created_at,
        updated_at=claim.updated_at,
        processed_at=claim.processed_at,
    )


def get_claim(db: Session, claim_id: int) -> ClaimApplication:
    claim = db.get(ClaimApplication, claim_id)
    if not claim:
        raise NotFoundError("认领申请不存在")
    return claim


def _transition_item(db: Session, item_id: int, expected: FoundItemStatus, target: FoundItemStatus) -> None:
    result = db.execute(
        update(FoundItem)
        .where(FoundItem.id == item_id, FoundItem.status == expected)
        .values(status=target, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise ConflictError("失物招领状态已被其他操作修改，请刷新后重试")


def _transition_claim(db: Session, claim_id: int, target: ClaimStatus, processed_at: datetime) -> None:
    result = db.execute(
        update(ClaimApplication)
        .where(ClaimApplication.id == claim_id, ClaimApplication.status == ClaimStatus.PENDING)
        .values(status=target, processed_at=processed_at, updated_at=processed_at)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise ConflictError("认领申请已被其他操作处理，请刷新后重试")


def submit(db: Session, found_item_id: int, identity: TokenData, payload: ClaimRequest) -> ClaimRead:
    item = get_item(db, ItemKind.FOUND, found_item_id)
    if item.status != FoundItemStatus.PENDING:
        raise BadRequestError(f"该失物招领当前不可认领，状态: {item.status.value}")
    if item.user_id == identity.user_id:
        raise BadRequestError("不能认领自己发布的失物招领")
    existing = (
        db.query(ClaimApplication)
        .filter(
            ClaimApplication.found_item_id == found_item_id,
            ClaimApplication.applicant_id == identity.user_id,
            ClaimApplication.status.in_(ACTIVE_STATUSES),
        )
        .first()
    )
    if existing:
        raise ConflictError("您已有未处理或已批准的认领申请，请勿重复申请")

    claim = ClaimApplication(
        found_item_id=found_item_id,
        applicant_id=identity.user_id,
        description=payload.description,
        status=ClaimStatus.PENDING,
    )
    db.add(claim)
    _transition_item(db, found_item_id, FoundItemStatus.PENDING, FoundItemStatus.PROCESSING)
    db.commit()
    db.refresh(claim)
    logger.info("User %s submitted claim %s for found item %s", identity.user_id, claim.id, found_item_id)
    return to_claim_read(claim)


def _load_for_decision(db: Session, claim_id: int, identity: TokenData) -> ClaimApplication:
    claim = get_claim(db, claim_id)
    item = claim.found_item
    if item is None:
        raise NotFoundError("失物招领不存在")
    if item.user_id != identity.user_id:
        raise ForbiddenError("您没有权限处理该认领申请")
    if claim.status != ClaimStatus.PENDING:
        raise BadRequestError(f"该认领申请已经被处理过，当前状态: {claim.status.value}")
    if item.status != FoundItemStatus.PROCESSING:
        raise BadRequestError(f"该失物招领状态不是'认领中'，当前状态: {item.status.value}")
    return claim


def approve(db: Session, claim_id: int, identity: TokenData) -> ClaimRead:
    claim = _load_for_decision(db, claim_id, identity)
    already_approved = (
        db.query(ClaimApplication.id)
        .filter(
            ClaimApplication.found_item_id == claim.found_item_id,
            ClaimApplication.status == ClaimStatus.APPROVED,
            ClaimApplication.id != claim.id,
        )
        .first()
    )
    if already_approved:
        raise ConflictError("该失物招领已有已批准的认领申请")
    now = datetime.utcnow()
    _transition_claim(db, claim.id, ClaimStatus.APPROVED, now)
    _transition_item(db, claim.found_item_id, FoundItemStatus.PROCESSING, FoundItemStatus.CLAIMED)
    db.commit()
    db.refresh(claim)
    logger.info("Claim %s approved by owner %s", claim.id, identity.user_id)
    return to_claim_read(claim)


def reject(db: Session, claim_id: int, identity: TokenData) -> ClaimRead:
    claim = _load_for_decision(db, claim_id, identity)
    now = datetime.utcnow()
    _transition_claim(db, claim.id, ClaimStatus.REJECTED, now)
    _transition_item(db, claim.found_item_id, FoundItemStatus.PROCESSING, FoundItemStatus.PENDING)
    db.commit()
    db.refresh(claim)
    logger.info("Claim %s rejected by owner %s", claim.id, identity.user_id)
    return to_claim_read(claim)


def delete_claim(db: Session, claim_id: int) -> None:
    """Administrative removal; the item goes back to ``pending`` if this claim was holding it."""

    claim = get_claim(db, claim_id)
    item = claim.found_item
    holding = {ClaimStatus.APPROVED: FoundItemStatus.CLAIMED, ClaimStatus.PENDING: FoundItemStatus.PROCESSING}
    if item is not None and holding.get(claim.status) == item.status:
        item.status = FoundItemStatus.PENDING
    db.delete(claim)
    db.commit()
    logger.info("Claim %s deleted", claim_id)


def get_claim_for(db: Session, claim_id: int, identity: TokenData) -> ClaimRead:
    claim = get_claim(db, claim_id)
    owner_id = claim.found_item.user_id if claim.found_item else None
    if identity.user_id not in (claim.applicant_id, owner_id) and not identity.is_admin:
        raise ForbiddenError("您没有权限查看该认领申请")
    return to_claim_read(claim)


def _status_filter(value: Optional[str]) -> Optional[ClaimStatus]:
    if not value:
        return None
    try:
        return ClaimStatus(value)
    except ValueError:
        raise BadRequestError(f"无效的认领状态: {value}") from None


def list_my_applications(
    db: Session, identity: TokenData, page: int, size: int, status: Optional[str] = None
) -> Page[ClaimRead]:
    query = db.query(ClaimApplication).filter(ClaimApplication.applicant_id == identity.user_id)
    wanted = _status_filter(status)
    if wanted:
        query = query.filter(ClaimApplication.status == wanted)
    query = query.order_by(ClaimApplication.created_at.desc(), ClaimApplication.id.desc())
    return paginate(query, page, size, to_claim_read)


def list_for_processing(
    db: Session, identity: TokenData, page: int, size: int, status: Optional[str] = None
) -> Page[ClaimRead]:
    query = (
        db.query(ClaimApplication)
        .join(FoundItem, ClaimApplication.found_item_id == FoundItem.id)
        .filter(FoundItem.user_id == identity.user_id)
    )
    wanted = _status_filter(status)
    if wanted:
        query = query.filter(ClaimApplication.status == wanted)
    query = query.order_by(ClaimApplication.created_at.desc(), ClaimApplication.id.desc())
    return paginate(query, page, size, to_claim_read)


def list_by_found_item(db: Session, found_item_id: int, identity: TokenData, page: int, size: int) -> Page[ClaimRead]:
    item = get_item(db, ItemKind.FOUND, found_item_id)
    if item.user_id != identity.user_id and not identity.is_admin:
        raise ForbiddenError("您没有权限查看该失物招领的认领申请")
    query = (
        db.query(ClaimApplication)
        .filter(ClaimApplication.found_item_id == found_item_id)
        .order_by(ClaimApplication.created_at.desc(), ClaimApplication.id.desc())
    )
    return paginate(query, page, size, to_claim_read)


def list_all(
    db: Session,
    page: int,
    size: int,
    status: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    item_title: Optional[str] = None,
    applicant_name: Optional[str] = None,
) -> Page[ClaimRead]:
    query = (
        db.query(ClaimApplication)
        .join(FoundItem, ClaimApplication.found_item_id == FoundItem.id)
        .join(User, ClaimApplication.applicant_id == User.id)
    )
    wanted = _status_filter(status)
    if wanted:
        query = query.filter(ClaimApplication.status == wanted)
    if start_date:
        query = query.filter(ClaimApplication.created_at >= start_date)
    if end_date:
        query = query.filter(ClaimApplication.created_at <= end_date)
    if item_title:
        query = query.filter(FoundItem.title.ilike(f"%{item_title}%"))
    if applicant_name:
        pattern = f"%{applicant_name}%"
        query = query.filter(User.username.ilike(pattern) | User.real_name.ilike(pattern))
    query = query.order_by(ClaimApplication.created_at.desc(), ClaimApplication.id.desc())
    return paginate(query, page, size, to_claim_read)
