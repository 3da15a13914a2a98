from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_current_identity, require_admin
from ..models import ReportStatus, ReportType
from ..schemas import ApiResponse, ReportCreate, ReportPage, ReportRead, ReportResolution, TokenData, ok
from ..services import reports as report_service

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("", response_model=ApiResponse[ReportRead], status_code=status.HTTP_201_CREATED)
def create_report(
    payload: ReportCreate,
    db: Session = Depends(get_db),
    identity: TokenData = Depends(get_current_identity),
):
    """
    Report a listing, post or comment. Each user may report a piece of content once.
    """
    report = report_service.create_report(db, payload, identity)
    return ok(report, "举报提交成功", status.HTTP_201_CREATED)


@router.get("/my", response_model=ApiResponse[List[ReportRead]])
def my_reports(db: Session = Depends(get_db), identity: TokenData = Depends(get_current_identity)):
    return ok(report_service.list_my_reports(db, identity))


@router.get("/admin", response_model=ApiResponse[ReportPage], dependencies=[Depends(require_admin)])
def list_reports(
    status_filter: Optional[ReportStatus] = Query(None, alias="status"),
    report_type: Optional[ReportType] = Query(None, alias="type"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """
    Moderation queue, newest first, with the number of reports still pending.
    """
    return ok(report_service.list_reports(db, page, size, status_filter, report_type, (start_date, end_date)))


@router.get(
    "/item/{report_type}/{item_id}",
    response_model=ApiResponse[List[ReportRead]],
    dependencies=[Depends(require_admin)],
)
def reports_for_content(report_type: ReportType, item_id: int, db: Session = Depends(get_db)):
    return ok(report_service.list_for_content(db, report_type, item_id))


@router.get("/{report_id}", response_model=ApiResponse[ReportRead], dependencies=[Depends(require_admin)])
def get_report(report_id: int, db: Session = Depends(get_db)):
    return ok(report_service.to_report_read(db, report_service.get_report(db, report_id)))


@router.put("/{report_id}/resolve", response_model=ApiResponse[ReportRead])
def resolve_report(
    report_id: int,
    payload: ReportResolution,
    db: Session = Depends(get_db),
    identity: TokenData = Depends(require_admin),
):
    """
    Close a pending report. Resolving may also delete the content or lock its author.
    """
    return ok(report_service.resolve_report(db, report_id, payload, identity), "举报处理完成")
