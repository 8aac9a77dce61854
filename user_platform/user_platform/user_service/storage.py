"""
Local-disk file storage for uploaded profile photos.
"""
import io
import logging
import uuid
from pathlib import Path, PurePosixPath
from typing import Optional

from PIL import Image, UnidentifiedImageError

from .errors import BadRequestError, InternalError

logger = logging.getLogger(__name__)


class StorageService:
    def __init__(
        self,
        upload_path: str,
        base_url: str,
        compression_enabled: bool = False,
        compression_quality: int = 80,
    ):
        self.root = Path(upload_path)
        self.upload_path = upload_path
        self.base_url = base_url.rstrip("/")
        self.compression_enabled = compression_enabled
        self.compression_quality = compression_quality

    @classmethod
    def from_settings(cls, settings) -> "StorageService":
        return cls(
            upload_path=settings.UPLOAD_PATH,
            base_url=settings.STORAGE_BASE_URL or settings.BACKEND_DOMAIN,
            compression_enabled=settings.ENABLE_IMAGE_COMPRESSION,
            compression_quality=settings.IMAGE_COMPRESSION_QUALITY,
        )

    def _full_path(self, relative_path: str) -> Path:
        full_path = (self.root / relative_path).resolve()
        if self.root.resolve() not in full_path.parents:
            raise BadRequestError("Invalid file path", errors={"file": "invalid_path"})
        return full_path

    def save_file(self, data: bytes, filename: str, folder: str = "uploads",
                  content_type: Optional[str] = None) -> str:
        """
        Store ``data`` under ``folder`` with a random name and return the path
        relative to the upload root.
        """
        compress = self.compression_enabled and (content_type or "").startswith("image/")
        suffix = ".jpg" if compress else Path(filename or "").suffix.lower()
        relative_path = str(PurePosixPath(folder) / f"{uuid.uuid4().hex}{suffix}")
        full_path = self._full_path(relative_path)

        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            if compress:
                self._compress_image(data, full_path)
            else:
                full_path.write_bytes(data)
        except OSError as exc:
            logger.error("Failed to save file %s: %s", relative_path, exc)
            raise InternalError("Failed to save file") from exc

        logger.info("File saved successfully: %s", relative_path)
        return relative_path

    def _compress_image(self, data: bytes, output_path: Path) -> None:
        try:
            with Image.open(io.BytesIO(data)) as image:
                image.convert("RGB").save(
                    output_path, format="JPEG", quality=self.compression_quality, optimize=True
                )
        except UnidentifiedImageError as exc:
            raise BadRequestError("Uploaded file is not a valid image", errors={"file": "invalid_image"}) from exc

    def delete_file(self, relative_path: str) -> None:
        full_path = self._full_path(relative_path)
        try:
            full_path.unlink(missing_ok=True)
        except OSError as exc:
            logger.error("Failed to delete file %s: %s", relative_path, exc)
            raise InternalError("Failed to delete file") from exc
        logger.info("File deleted successfully: %s", relative_path)

    def file_url(self, relative_path: str) -> str:
        return f"{self.base_url}/{self.upload_path.strip('/')}/{relative_path}"

    def exists(self, relative_path: str) -> bool:
        return self._full_path(relative_path).is_file()
