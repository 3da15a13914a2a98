from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import get_db
from ..dependencies import get_current_identity
from ..schemas import ApiResponse, TokenData, UploadResult, ok
from ..services import uploads as upload_service
from ..services import users as user_service

router = APIRouter(prefix="/upload", tags=["upload"])


@router.post("", response_model=ApiResponse[UploadResult])
def upload_file(
    request: Request,
    file: UploadFile = File(...),
    file_type: str = Form("general", alias="type"),
    _: TokenData = Depends(get_current_identity),
):
    """
    Store an image for use in listings and posts and return its public URL.
    """
    settings = get_settings()
    result = upload_service.store_file(
        settings,
        file.filename,
        upload_service.read_limited(file.file, settings.max_file_size_mb, file.size),
        file.content_type,
        file_type,
        str(request.base_url),
        settings.allowed_extensions,
        settings.max_file_size_mb,
    )
    return ok(result, "文件上传成功")


@router.post("/avatar", response_model=ApiResponse[UploadResult])
def upload_avatar(
    request: Request,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    identity: TokenData = Depends(get_current_identity),
):
    settings = get_settings()
    result = upload_service.store_file(
        settings,
        file.filename,
        upload_service.read_limited(file.file, settings.avatar_max_size_mb, file.size),
        file.content_type,
        "avatars",
        str(request.base_url),
        upload_service.AVATAR_EXTENSIONS,
        settings.avatar_max_size_mb,
    )
    user = user_service.get_user(db, identity.user_id)
    user.avatar = result.file_url
    db.commit()
    return ok(result, "头像上传成功")
