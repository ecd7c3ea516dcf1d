"""Image asset storage for car listings.

Uploaded images are written to a local directory under unique names and
served read-only by the static files mount. Storing a batch is all-or-nothing:
a rejected file discards everything already written for the same request.
Deleting is best-effort and never raises.
"""
import logging
import uuid
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import aiofiles
from fastapi import UploadFile

from app.core.config import settings
from app.core.errors import ValidationError

logger = logging.getLogger(__name__)

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
}

READ_CHUNK_SIZE = 64 * 1024


class AssetManager:
    """Persist uploaded images and map stored references to public URLs.

    Usage:
        assets = AssetManager()
        refs = await assets.store(files)
        urls = assets.resolve_urls(refs)
        assets.discard(refs)
    """

    def __init__(
        self,
        upload_dir: Optional[str] = None,
        base_url: Optional[str] = None,
        url_prefix: Optional[str] = None,
        max_size: Optional[int] = None,
        max_files: Optional[int] = None,
        allowed_types: Optional[Iterable[str]] = None,
    ):
        self.upload_dir = Path(upload_dir or settings.UPLOAD_DIR)
        self.base_url = (base_url if base_url is not None else settings.BASE_URL).rstrip("/")
        self.url_prefix = "/" + (url_prefix or settings.UPLOAD_URL_PREFIX).strip("/")
        self.max_size = max_size or settings.MAX_IMAGE_SIZE
        self.max_files = max_files or settings.MAX_IMAGES_PER_REQUEST
        self.allowed_types = set(allowed_types or settings.ALLOWED_IMAGE_TYPES)

    def ensure_directory(self) -> None:
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, ref: str) -> Path:
        # Only the final path component is honoured so a reference can never escape upload_dir
        return self.upload_dir / Path(ref).name

    async def store(self, files: Optional[Sequence[UploadFile]]) -> List[str]:
        """
        Write uploaded files to disk and return their references.

        Args:
            files: Uploaded files from a multipart request (may be None)

        Returns:
            Stored file names, in upload order

        Raises:
            ValidationError: Too many files, disallowed content type or a file
                over the size limit. Files already written are discarded first.
        """
        uploads = [f for f in (files or []) if f is not None and f.filename]
        if not uploads:
            return []

        if len(uploads) > self.max_files:
            raise ValidationError(f"Too many files. Maximum is {self.max_files} images per request")

        for upload in uploads:
            if upload.content_type not in self.allowed_types:
                raise ValidationError(
                    f"Unsupported file type for {upload.filename}. Only JPEG and PNG images are allowed"
                )

        self.ensure_directory()
        stored: List[str] = []
        try:
            for upload in uploads:
                stored.append(await self._write(upload))
        except Exception:
            self.discard(stored)
            raise

        logger.info("Stored %d image(s)", len(stored))
        return stored

    async def _write(self, upload: UploadFile) -> str:
        ref = f"{uuid.uuid4().hex}{CONTENT_TYPE_EXTENSIONS.get(upload.content_type, '')}"
        path = self.path_for(ref)
        written = 0

        try:
            async with aiofiles.open(path, "wb") as buffer:
                while True:
                    chunk = await upload.read(READ_CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.max_size:
                        raise ValidationError(
                            f"File is too large. Maximum size is {self.max_size // (1024 * 1024)}MB"
                        )
                    await buffer.write(chunk)
        except Exception:
            self.discard([ref])
            raise

        logger.debug("Wrote %s (%d bytes) from %s", ref, written, upload.filename)
        return ref

    def resolve_urls(self, refs: Iterable[str]) -> List[str]:
        """Map stored references to externally fetchable URLs."""
        return [f"{self.base_url}{self.url_prefix}/{ref}" for ref in refs]

    def discard(self, refs: Iterable[str]) -> None:
        """Delete stored files, logging rather than raising on failure."""
        for ref in refs:
            path = self.path_for(ref)
            try:
                path.unlink()
                logger.debug("Deleted image %s", ref)
            except FileNotFoundError:
                logger.debug("Image %s already deleted", ref)
            except OSError as e:
                logger.warning("Error deleting image %s: %s", ref, e)
