"""Content reports and their moderation."""
import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..errors import BadRequestError, ConflictError, NotFoundError
from ..models import (
    ActionType,
    FoundItem,
    ItemComment,
    ItemKind,
    LostItem,
    Post,
    PostComment,
    Report,
    ReportStatus,
    ReportType,
    User,
)
from ..schemas import ReportCreate, ReportPage, ReportRead, ReportResolution, TokenData
from . import items as item_service
from . import users as user_service
from .pagination import build_page, normalize

logger = logging.getLogger(__name__)

_TYPE_LABELS = {
    ReportType.LOST_ITEM: "寻物启事",
    ReportType.FOUND_ITEM: "失物招领",
    ReportType.COMMENT: "评论",
    ReportType.POST: "帖子",
}


def _find_content(db: Session, report_type: ReportType, content_id: int):
    """Return the reported row, or ``None`` when it no longer exists."""

    if report_type is ReportType.LOST_ITEM:
        return db.get(LostItem, content_id)
    if report_type is ReportType.FOUND_ITEM:
        return db.get(FoundItem, content_id)
    if report_type is ReportType.POST:
        return db.get(Post, content_id)
    return db.get(ItemComment, content_id) or db.get(PostComment, content_id)


def _content_title(content) -> str:
    if isinstance(content, (LostItem, FoundItem, Post)):
        return content.title
    text = content.content or ""
    return text if len(text) <= 30 else f"{text[:30]}..."


def _username(db: Session, user_id: Optional[int]) -> Optional[str]:
    if user_id is None:
        return None
    user = db.get(User, user_id)
    return user.username if user else None


def to_report_read(db: Session, report: Report) -> ReportRead:
    """Decorate a report with display names; missing rows degrade to placeholders."""

    content = _find_content(db, report.report_type, report.reported_item_id)
    if content is not None:
        title = _content_title(content)
    else:
        logger.warning("Reported %s %s no longer exists", report.report_type.value, report.reported_item_id)
        title = f"{_TYPE_LABELS[report.report_type]}ID: {report.reported_item_id} (已删除)"
    return ReportRead(
        id=report.id,
        report_type=report.report_type,
        reported_item_id=report.reported_item_id,
        reported_item_title=title,
        reporter_id=report.reporter_id,
        reporter_username=_username(db, report.reporter_id),
        reported_user_id=report.reported_user_id,
        reported_username=_username(db, report.reported_user_id),
        reason=report.reason,
        status=report.status,
        resolution_notes=report.resolution_notes,
        resolved_by_admin_id=report.resolved_by_admin_id,
        resolved_by_admin_username=_username(db, report.resolved_by_admin_id),
        created_at=report.created_at,
        resolved_at=report.resolved_at,
    )


def create_report(db: Session, payload: ReportCreate, identity: TokenData) -> ReportRead:
    content = _find_content(db, payload.report_type, payload.reported_item_id)
    if content is None:
        raise NotFoundError(f"被举报的{_TYPE_LABELS[payload.report_type]}不存在")
    if content.user_id == identity.user_id:
        raise BadRequestError("不能举报自己的内容")
    duplicate = (
        db.query(Report)
        .filter(
            Report.reporter_id == identity.user_id,
            Report.report_type == payload.report_type,
            Report.reported_item_id == payload.reported_item_id,
        )
        .first()
    )
    if duplicate:
        raise ConflictError("你已经举报过该内容")

    report = Report(
        report_type=payload.report_type,
        reported_item_id=payload.reported_item_id,
        reporter_id=identity.user_id,
        reported_user_id=content.user_id,
        reason=payload.reason,
        status=ReportStatus.PENDING,
    )
    db.add(report)
    db.commit()
    db.refresh(report)
    logger.info(
        "User %s reported %s %s (report %s)",
        identity.user_id,
        payload.report_type.value,
        payload.reported_item_id,
        report.id,
    )
    return to_report_read(db, report)


def get_report(db: Session, report_id: int) -> Report:
    report = db.get(Report, report_id)
    if not report:
        raise NotFoundError("举报不存在")
    return report


def _delete_content(db: Session, report_type: ReportType, content_id: int) -> None:
    content = _find_content(db, report_type, content_id)
    if content is None:
        logger.warning("Content %s %s already gone; nothing to delete", report_type.value, content_id)
        return
    if isinstance(content, LostItem):
        item_service.remove_item(db, ItemKind.LOST, content)
    elif isinstance(content, FoundItem):
        item_service.remove_item(db, ItemKind.FOUND, content)
    else:
        db.delete(content)
    logger.info("Deleted reported %s %s", report_type.value, content_id)


def _apply_action(db: Session, report: Report, resolution: ReportResolution) -> None:
    action = resolution.action_type
    if action is ActionType.CONTENT_DELETE:
        _delete_content(db, report.report_type, report.reported_item_id)
    elif action is ActionType.USER_WARNING:
        logger.warning("User %s warned via report %s", report.reported_user_id, report.id)
    elif action in (ActionType.USER_BAN, ActionType.USER_LOCK):
        user = user_service.get_user(db, report.reported_user_id)
        user_service.apply_lock(user, resolution.action_days, resolution.resolution_notes)


def resolve_report(db: Session, report_id: int, resolution: ReportResolution, identity: TokenData) -> ReportRead:
    report = get_report(db, report_id)
    if report.status != ReportStatus.PENDING:
        raise BadRequestError("该举报已经被处理")
    if resolution.status == ReportStatus.PENDING:
        raise BadRequestError("处理结果必须是 RESOLVED 或 REJECTED")
    if (
        resolution.status == ReportStatus.RESOLVED
        and resolution.action_type in (ActionType.USER_BAN, ActionType.USER_LOCK)
        and (not resolution.action_days or resolution.action_days <= 0)
    ):
        raise BadRequestError("封禁或锁定用户时必须指定大于0的天数")

    now = datetime.utcnow()
    result = db.execute(
        update(Report)
        .where(Report.id == report.id, Report.status == ReportStatus.PENDING)
        .values(
            status=resolution.status,
            resolution_notes=resolution.resolution_notes,
            resolved_by_admin_id=identity.user_id,
            resolved_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise ConflictError("该举报已被其他管理员处理")

    if resolution.status == ReportStatus.RESOLVED:
        _apply_action(db, report, resolution)
    db.commit()
    db.refresh(report)
    logger.info(
        "Report %s resolved as %s with action %s by admin %s",
        report.id,
        resolution.status.value,
        resolution.action_type.value,
        identity.user_id,
    )
    return to_report_read(db, report)


def list_my_reports(db: Session, identity: TokenData) -> list:
    reports = (
        db.query(Report)
        .filter(Report.reporter_id == identity.user_id)
        .order_by(Report.created_at.desc(), Report.id.desc())
        .limit(100)
        .all()
    )
    return [to_report_read(db, report) for report in reports]


def list_reports(
    db: Session,
    page: int,
    size: int,
    status: Optional[ReportStatus] = None,
    report_type: Optional[ReportType] = None,
    date_range: Tuple[Optional[datetime], Optional[datetime]] = (None, None),
) -> ReportPage:
    page, size = normalize(page, size)
    query = db.query(Report)
    if status:
        query = query.filter(Report.status == status)
    if report_type:
        query = query.filter(Report.report_type == report_type)
    start_date, end_date = date_range
    if start_date:
        query = query.filter(Report.created_at >= start_date)
    if end_date:
        query = query.filter(Report.created_at <= end_date)
    total = query.count()
    rows = (
        query.order_by(Report.created_at.desc(), Report.id.desc())
        .offset((page - 1) * size)
        .limit(size)
        .all()
    )
    base = build_page([to_report_read(db, row) for row in rows], page, size, total)
    pending = db.query(Report).filter(Report.status == ReportStatus.PENDING).count()
    return ReportPage(**base.model_dump(), pending_reports_count=pending)


def list_for_content(db: Session, report_type: ReportType, content_id: int) -> list:
    reports = (
        db.query(Report)
        .filter(Report.report_type == report_type, Report.reported_item_id == content_id)
        .order_by(Report.created_at.desc())
        .all()
    )
    return [to_report_read(db, report) for report in reports]
