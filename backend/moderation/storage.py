from __future__ import annotations

import logging
import mimetypes
import os
import secrets
import shutil
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from moderation import config
from moderation.schemas import RawImage

logger = logging.getLogger(__name__)

_EXT_BY_MIME = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


class StorageError(RuntimeError):
    pass


def safe_upload_ext(*, filename: str, content_type: str) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    if ext in {".jpg", ".jpeg", ".png", ".webp"}:
        return ".jpg" if ext == ".jpeg" else ext
    return _EXT_BY_MIME.get((content_type or "").lower()) or mimetypes.guess_extension(content_type or "") or ".bin"


def read_dimensions(data: bytes) -> tuple[int, int] | None:
    try:
        with Image.open(BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError):
        return None


class UploadStorage:
    """
    Filesystem layout for uploads:

        <temp_dir>/<token><ext>                     staged, awaiting a decision
        <properties_dir>/<property_id>/<name>       approved
        <review_dir>/<property_id>/<name>           waiting for a human reviewer

    Paths handed to records are relative to `root` so they can be served from /uploads.
    """

    def __init__(
        self,
        *,
        root: str,
        temp_dir: str | None = None,
        properties_dir: str | None = None,
        review_dir: str | None = None,
        public_base_url: str = "",
    ) -> None:
        self.root = os.path.abspath(root)
        self.temp_dir = os.path.abspath(temp_dir or os.path.join(self.root, "temp"))
        self.properties_dir = os.path.abspath(properties_dir or os.path.join(self.root, "properties"))
        self.review_dir = os.path.abspath(review_dir or os.path.join(self.root, "review"))
        self.public_base_url = (public_base_url or "").rstrip("/")

    @classmethod
    def from_env(cls) -> "UploadStorage":
        return cls(
            root=config.uploads_dir(),
            temp_dir=config.upload_temp_dir(),
            properties_dir=config.upload_properties_dir(),
            review_dir=config.upload_review_dir(),
            public_base_url=config.public_base_url(),
        )

    @staticmethod
    def ensure_dir(path: str) -> None:
        # Concurrent uploads for one property may race to create the same folder.
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create directory {path}: {e}") from e

    def stage(self, *, data: bytes, original_filename: str, content_type: str) -> RawImage:
        self.ensure_dir(self.temp_dir)
        name = secrets.token_hex(16) + safe_upload_ext(filename=original_filename, content_type=content_type)
        path = os.path.join(self.temp_dir, name)
        try:
            with open(path, "xb") as out:
                out.write(data)
        except OSError as e:
            raise StorageError(f"Failed to stage upload: {e}") from e
        return self._raw_image(path, data, original_filename=original_filename, content_type=content_type)

    def load_staged(self, path: str, *, original_filename: str = "", content_type: str = "") -> RawImage:
        """Re-open a file left in staging (e.g. a PENDING upload) for another moderation pass."""
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise StorageError(f"Failed to read staged file {path}: {e}") from e
        return self._raw_image(path, data, original_filename=original_filename, content_type=content_type)

    @staticmethod
    def _raw_image(path: str, data: bytes, *, original_filename: str, content_type: str) -> RawImage:
        dims = read_dimensions(data)
        return RawImage(
            path=path,
            data=data,
            mime_type=content_type,
            original_filename=(original_filename or "").strip(),
            size_bytes=len(data),
            width=dims[0] if dims else None,
            height=dims[1] if dims else None,
        )

    def _move(self, src: str, dest_dir: str) -> str:
        self.ensure_dir(dest_dir)
        dest = os.path.join(dest_dir, os.path.basename(src))
        if os.path.exists(dest):
            raise StorageError(f"Refusing to overwrite existing file {dest}")
        try:
            os.replace(src, dest)
        except OSError:
            # Different filesystem: copy then unlink.
            try:
                shutil.move(src, dest)
            except OSError as e:
                if os.path.exists(dest) and os.path.exists(src):
                    os.unlink(dest)
                raise StorageError(f"Failed to move {src} to {dest_dir}: {e}") from e
        return dest

    def move_to_property(self, src: str, property_id: int) -> str:
        return self._move(src, os.path.join(self.properties_dir, str(int(property_id))))

    def move_to_review(self, src: str, property_id: int) -> str:
        return self._move(src, os.path.join(self.review_dir, str(int(property_id))))

    def move_back(self, src: str, dest_path: str) -> None:
        """Undo a move, used when the record for a moved file cannot be written."""
        try:
            os.replace(src, dest_path)
            return
        except OSError:
            pass
        try:
            shutil.move(src, dest_path)
        except OSError:
            logger.exception("Failed to restore %s to %s", src, dest_path)

    def delete(self, path: str) -> bool:
        try:
            os.unlink(path)
        except FileNotFoundError:
            return True
        except OSError:
            logger.warning("Failed to delete %s", path, exc_info=True)
            return False
        return True

    def relative_path(self, path: str) -> str:
        return os.path.relpath(os.path.abspath(path), self.root).replace(os.sep, "/")

    def absolute_path(self, relative: str) -> str:
        return os.path.join(self.root, *(relative or "").split("/"))

    def public_url(self, path: str) -> str:
        rel = self.relative_path(path) if os.path.isabs(path) else path
        return f"{self.public_base_url}/uploads/{rel}"
