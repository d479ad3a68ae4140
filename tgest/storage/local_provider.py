"""
Local filesystem storage for checklist photos.
Files land in UPLOAD_DIR and are served by the static mount at /uploads.
"""
import os
import secrets
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Optional

import structlog

from ..config import settings
from ..errors import ValidationError
from .provider import StorageProvider

log = structlog.get_logger(__name__)

ALLOWED_IMAGE_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".webp"}
PUBLIC_PREFIX = "/uploads"
CHUNK_SIZE = 1024 * 1024


def photo_key(original_name: str, prefix: str = "checklist") -> str:
    """Build ``checklist-<ts>-<rand>.<ext>`` after checking the extension."""
    ext = os.path.splitext(original_name or "")[1].lower()
    if ext not in ALLOWED_IMAGE_EXTENSIONS:
        allowed = ", ".join(sorted(e.lstrip(".") for e in ALLOWED_IMAGE_EXTENSIONS))
        raise ValidationError(f"Only images are allowed ({allowed})")
    ts = int(datetime.utcnow().timestamp() * 1000)
    return f"{prefix}-{ts}-{secrets.randbelow(10**9)}{ext}"


class LocalStorageProvider(StorageProvider):
    """Local filesystem storage provider."""

    def __init__(self, base_dir: Optional[str] = None, max_bytes: Optional[int] = None):
        self.base_dir = Path(base_dir or settings.upload_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.max_bytes = max_bytes if max_bytes is not None else settings.max_upload_mb * 1024 * 1024

    def _get_path(self, key: str) -> Path:
        clean_key = key.lstrip("/").replace("..", "").replace("\\", "/")
        return self.base_dir / clean_key

    def save(self, stream: BinaryIO, key: str) -> int:
        path = self._get_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        written = 0
        with open(path, "wb") as f:
            while True:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > self.max_bytes:
                    f.close()
                    path.unlink(missing_ok=True)
                    raise ValidationError(f"File exceeds the {self.max_bytes // (1024 * 1024)} MB limit")
                f.write(chunk)
        log.info("file_stored", key=key, size=written)
        return written

    def public_url(self, key: str) -> Optional[str]:
        return f"{PUBLIC_PREFIX}/{key.lstrip('/')}"

    def exists(self, key: str) -> bool:
        return self._get_path(key).exists()

    def delete(self, key: str) -> None:
        path = self._get_path(key)
        if path.exists():
            path.unlink()


def get_storage() -> StorageProvider:
    return LocalStorageProvider()
