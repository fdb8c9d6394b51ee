"""Object storage for uploaded candidate documents.

Objects live on disk under ``<storage_dir>/<bucket>/<path>`` and are served
publicly at ``<public_base_url>/storage/v1/object/public/<bucket>/<path>``,
the same URL layout hosted storage uses, so stored URLs can be resolved
back to a bucket and path.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlparse

from recruitica.config import settings
from recruitica.errors import StoreError

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "/storage/v1/object/public"


class FileStore:
    """Bucketed file store with public URLs."""

    def __init__(self, root: Path | None = None, public_base_url: str | None = None):
        self.root = Path(root or settings.storage_dir)
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")

    def _object_path(self, bucket: str, path: str) -> Path:
        rel = PurePosixPath(path)
        if rel.is_absolute() or ".." in rel.parts or not bucket or "/" in bucket:
            raise StoreError(f"Invalid object path: {bucket}/{path}")
        return self.root / bucket / Path(*rel.parts)

    def upload(self, bucket: str, path: str, data: bytes) -> str:
        """Store ``data`` and return its object path. Existing objects are not overwritten."""
        target = self._object_path(bucket, path)
        if target.exists():
            raise StoreError("The resource already exists")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StoreError(str(exc)) from exc
        logger.info("Uploaded %d bytes to %s/%s", len(data), bucket, path)
        return path

    def download(self, bucket: str, path: str) -> bytes:
        target = self._object_path(bucket, path)
        if not target.is_file():
            raise StoreError("Object not found", not_found=True)
        try:
            return target.read_bytes()
        except OSError as exc:
            raise StoreError(str(exc)) from exc

    def remove(self, bucket: str, path: str) -> bool:
        target = self._object_path(bucket, path)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StoreError(str(exc)) from exc
        logger.info("Removed %s/%s", bucket, path)
        return True

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_base_url}{PUBLIC_PREFIX}/{bucket}/{path}"


def resolve_public_url(url: str) -> tuple[str, str]:
    """Split a public storage URL into ``(bucket, path)``.

    The bucket is the path segment right after ``public``; everything after it
    is the object path.
    """
    parts = unquote(urlparse(url).path).split("/")
    try:
        idx = parts.index("public")
    except ValueError:
        raise StoreError("Invalid file URL format") from None
    if idx + 1 >= len(parts) or not parts[idx + 1]:
        raise StoreError("Invalid file URL format")
    bucket = parts[idx + 1]
    path = "/".join(parts[idx + 2:])
    return bucket, path
