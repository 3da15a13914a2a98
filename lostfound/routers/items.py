from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_current_identity
from ..models import ItemKind
from ..schemas import ApiResponse, ItemCreate, ItemRead, ItemStatusUpdate, ItemUpdate, Page, TokenData, ok
from ..services import items as item_service

LABELS = {ItemKind.LOST: "寻物启事", ItemKind.FOUND: "失物招领"}


def build_item_router(kind: ItemKind) -> APIRouter:
    """Listing endpoints for one kind of item, mounted at ``/<kind>-items``."""

    router = APIRouter(prefix=f"/{kind.value}-items", tags=[f"{kind.value}-items"])
    label = LABELS[kind]

    @router.post("", response_model=ApiResponse[ItemRead], status_code=status.HTTP_201_CREATED)
    def create_item(
        payload: ItemCreate,
        db: Session = Depends(get_db),
        identity: TokenData = Depends(get_current_identity),
    ):
        item = item_service.create_item(db, kind, payload, identity)
        return ok(item, f"{label}发布成功", status.HTTP_201_CREATED)

    @router.get("", response_model=ApiResponse[Page[ItemRead]])
    def search_items(
        category: Optional[str] = None,
        status_filter: Optional[str] = Query(None, alias="status"),
        keyword: Optional[str] = None,
        page: int = Query(1, ge=1),
        size: int = Query(10, ge=1, le=100),
        db: Session = Depends(get_db),
    ):
        """
        Public listing, newest first. ``keyword`` matches title, description and location.
        """
        return ok(item_service.search_items(db, kind, page, size, category, status_filter, keyword))

    @router.get("/my-posts", response_model=ApiResponse[Page[ItemRead]])
    def my_items(
        status_filter: Optional[str] = Query(None, alias="status"),
        sort_by: str = Query("createdAt", alias="sortBy"),
        sort_direction: str = Query("desc", alias="sortDirection"),
        page: int = Query(1, ge=1),
        size: int = Query(10, ge=1, le=100),
        db: Session = Depends(get_db),
        identity: TokenData = Depends(get_current_identity),
    ):
        return ok(
            item_service.list_my_items(db, kind, identity, page, size, status_filter, sort_by, sort_direction)
        )

    @router.get("/{item_id}", response_model=ApiResponse[ItemRead])
    def get_item(item_id: int, db: Session = Depends(get_db)):
        return ok(item_service.to_item_read(kind, item_service.get_item(db, kind, item_id)))

    @router.put("/{item_id}", response_model=ApiResponse[ItemRead])
    def update_item(
        item_id: int,
        payload: ItemUpdate,
        db: Session = Depends(get_db),
        identity: TokenData = Depends(get_current_identity),
    ):
        return ok(item_service.update_item(db, kind, item_id, payload, identity), f"{label}更新成功")

    @router.put("/{item_id}/status", response_model=ApiResponse[ItemRead])
    def update_item_status(
        item_id: int,
        payload: ItemStatusUpdate,
        db: Session = Depends(get_db),
        identity: TokenData = Depends(get_current_identity),
    ):
        """
        Owner or admin status change. Setting ``closed`` removes the listing.
        """
        item = item_service.update_status(db, kind, item_id, payload.status, identity)
        if item is None:
            return ok(message=f"{label}已关闭并删除")
        return ok(item, "状态更新成功")

    @router.delete("/{item_id}", response_model=ApiResponse[None])
    def delete_item(
        item_id: int,
        db: Session = Depends(get_db),
        identity: TokenData = Depends(get_current_identity),
    ):
        item_service.delete_item(db, kind, item_id, identity)
        return ok(message=f"{label}删除成功")

    return router


lost_items_router = build_item_router(ItemKind.LOST)
found_items_router = build_item_router(ItemKind.FOUND)
