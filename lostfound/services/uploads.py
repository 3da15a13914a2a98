"""Storage of uploaded files on the local filesystem."""
import logging
import uuid
from pathlib import Path
from typing import BinaryIO, Iterable, Optional

from ..config import Settings
from ..errors import BadRequestError
from ..schemas import UploadResult

logger = logging.getLogger(__name__)

AVATAR_EXTENSIONS = ("jpg", "jpeg", "png", "gif")


def _extension(filename: Optional[str]) -> str:
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].lower()


def _safe_subdir(file_type: str) -> str:
    cleaned = "".join(ch for ch in file_type if ch.isalnum() or ch in "-_")
    return cleaned or "general"


def read_limited(stream: BinaryIO, max_size_mb: int, declared_size: Optional[int] = None) -> bytes:
    """Read an upload without ever holding more than the limit plus one byte."""

    limit = max_size_mb * 1024 * 1024
    if declared_size is not None and declared_size > limit:
        raise BadRequestError(f"文件大小不能超过{max_size_mb}MB")
    content = stream.read(limit + 1)
    if len(content) > limit:
        raise BadRequestError(f"文件大小不能超过{max_size_mb}MB")
    return content


def store_file(
    settings: Settings,
    filename: Optional[str],
    content: bytes,
    content_type: Optional[str],
    file_type: str,
    base_url: str,
    allowed_extensions: Iterable[str],
    max_size_mb: int,
) -> UploadResult:
    """Validate and persist an upload as ``<upload_dir>/<type>/<uuid>.<ext>``."""

    if not content:
        raise BadRequestError("上传文件不能为空")
    extension = _extension(filename)
    allowed = [ext.lower() for ext in allowed_extensions]
    if extension not in allowed:
        raise BadRequestError(f"不支持的文件类型，允许的类型: {', '.join(allowed)}")
    if len(content) > max_size_mb * 1024 * 1024:
        raise BadRequestError(f"文件大小不能超过{max_size_mb}MB")

    subdir = _safe_subdir(file_type)
    target_dir = Path(settings.upload_dir) / subdir
    target_dir.mkdir(parents=True, exist_ok=True)
    stored_name = f"{uuid.uuid4().hex}.{extension}"
    (target_dir / stored_name).write_bytes(content)

    relative = f"{subdir}/{stored_name}"
    prefix = settings.upload_base_url or f"{base_url.rstrip('/')}/{Path(settings.upload_dir).name}"
    logger.info("Stored upload %s (%d bytes)", relative, len(content))
    return UploadResult(
        file_path=relative,
        file_url=f"{prefix.rstrip('/')}/{relative}",
        file_size=len(content),
        content_type=content_type,
        file_type=subdir,
    )
