from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_current_identity, require_admin
from ..schemas import ApiResponse, ClaimRead, ClaimRequest, Page, TokenData, ok
from ..services import claims as claim_service

router = APIRouter(prefix="/claims", tags=["claims"])


@router.post("/apply/{found_item_id}", response_model=ApiResponse[ClaimRead], status_code=status.HTTP_201_CREATED)
def apply(
    found_item_id: int,
    payload: ClaimRequest,
    db: Session = Depends(get_db),
    identity: TokenData = Depends(get_current_identity),
):
    """
    Ask the finder to hand over an item. The item moves to ``processing``
    until the finder approves or rejects the application.
    """
    claim = claim_service.submit(db, found_item_id, identity, payload)
    return ok(claim, "认领申请提交成功", status.HTTP_201_CREATED)


@router.post("/approve/{claim_id}", response_model=ApiResponse[ClaimRead])
def approve(claim_id: int, db: Session = Depends(get_db), identity: TokenData = Depends(get_current_identity)):
    return ok(claim_service.approve(db, claim_id, identity), "认领申请已批准")


@router.post("/reject/{claim_id}", response_model=ApiResponse[ClaimRead])
def reject(claim_id: int, db: Session = Depends(get_db), identity: TokenData = Depends(get_current_identity)):
    return ok(claim_service.reject(db, claim_id, identity), "认领申请已拒绝")


@router.get("/my-applications", response_model=ApiResponse[Page[ClaimRead]])
def my_applications(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    identity: TokenData = Depends(get_current_identity),
):
    return ok(claim_service.list_my_applications(db, identity, page, size, status_filter))


@router.get("/for-processing", response_model=ApiResponse[Page[ClaimRead]])
def for_processing(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    identity: TokenData = Depends(get_current_identity),
):
    """
    Applications submitted against items the caller found.
    """
    return ok(claim_service.list_for_processing(db, identity, page, size, status_filter))


@router.get("/by-found-item/{found_item_id}", response_model=ApiResponse[Page[ClaimRead]])
def by_found_item(
    found_item_id: int,
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    identity: TokenData = Depends(get_current_identity),
):
    return ok(claim_service.list_by_found_item(db, found_item_id, identity, page, size))


@router.get("/admin/all", response_model=ApiResponse[Page[ClaimRead]], dependencies=[Depends(require_admin)])
def list_all(
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    item_title: Optional[str] = Query(None, alias="itemTitle"),
    applicant_name: Optional[str] = Query(None, alias="applicantName"),
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return ok(
        claim_service.list_all(db, page, size, status_filter, start_date, end_date, item_title, applicant_name)
    )


@router.delete("/admin/{claim_id}", response_model=ApiResponse[None], dependencies=[Depends(require_admin)])
def delete_claim(claim_id: int, db: Session = Depends(get_db)):
    claim_service.delete_claim(db, claim_id)
    return ok(message="认领申请删除成功")


@router.get("/{claim_id}", response_model=ApiResponse[ClaimRead])
def get_claim(claim_id: int, db: Session = Depends(get_db), identity: TokenData = Depends(get_current_identity)):
    return ok(claim_service.get_claim_for(db, claim_id, identity))
