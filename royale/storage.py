"""
Object storage for screenshots and team logos.

A stored object is addressed by its path, "<bucket>/<key>", which is what the
database keeps (MatchRecord.storage_path, Team.logo_path). The public URL is
derived from the path and is what the analysis call and the frontends read.

Two backends: the local filesystem (development, tests) and Cloudinary.
delete() is best-effort: it never raises and returns the paths it could not remove.
"""
from __future__ import annotations

import io
import logging
import re
from pathlib import Path
from typing import Iterable, Protocol

import cloudinary
import cloudinary.uploader
import cloudinary.utils
from cloudinary.exceptions import Error as CloudinaryError

from royale import config
from royale.errors import StorageError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}


def extension_for(content_type: str | None, filename: str | None = None) -> str:
    """File extension for an upload: from the filename if it has one, else from the content type."""
    if filename and "." in filename:
        return filename.rsplit(".", 1)[1].lower()
    return IMAGE_EXTENSIONS.get((content_type or "").lower(), "bin")


class ObjectStorage(Protocol):
    def put(self, path: str, data: bytes, content_type: str | None = None) -> str:
        """Store data at path and return its public URL. Raises StorageError."""
        ...

    def public_url(self, path: str) -> str:
        ...

    def path_for_url(self, url: str) -> str | None:
        """Storage path behind a public URL this backend issued, or None."""
        ...

    def delete(self, paths: Iterable[str]) -> list[str]:
        """Delete each path; return those that failed."""
        ...


# ---------- Local filesystem ----------


class LocalObjectStorage:
    """Files under root/<bucket>/<key>; URLs under base_url."""

    def __init__(self, root: str | Path | None = None, base_url: str | None = None) -> None:
        self.root = Path(root or config.STORAGE_DIR)
        self.base_url = (base_url or config.STORAGE_BASE_URL).rstrip("/")

    def _file(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents:
            raise StorageError(f"Path escapes storage root: {path}", user_message="Invalid storage path")
        return target

    def put(self, path: str, data: bytes, content_type: str | None = None) -> str:
        target = self._file(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Could not write {path}: {e}", user_message="Failed to store file") from e
        return self.public_url(path)

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    def path_for_url(self, url: str) -> str | None:
        prefix = f"{self.base_url}/"
        if not url.startswith(prefix) or len(url) == len(prefix):
            return None
        return url[len(prefix):]

    def exists(self, path: str) -> bool:
        return self._file(path).is_file()

    def delete(self, paths: Iterable[str]) -> list[str]:
        failed: list[str] = []
        for path in paths:
            try:
                self._file(path).unlink(missing_ok=True)
            except (OSError, StorageError) as e:
                logger.warning("Failed to delete stored object %s: %s", path, e)
                failed.append(path)
        return failed


# ---------- Cloudinary ----------


def _public_id(path: str) -> str:
    # Cloudinary public ids carry no extension
    return path.rsplit(".", 1)[0] if "." in path.rsplit("/", 1)[-1] else path


# .../image/upload/[transformations/]v<version>/<public_id>.<ext>
_DELIVERY_URL = re.compile(r"/image/upload/(?:.*?/)?v\d+/(?P<path>[^?#]+)")


class CloudinaryObjectStorage:
    """Images on Cloudinary; the bucket becomes the folder."""

    def __init__(
        self,
        cloud_name: str | None = None,
        api_key: str | None = None,
        api_secret: str | None = None,
    ) -> None:
        cloud_name = cloud_name or config.CLOUDINARY_CLOUD_NAME
        api_key = api_key or config.CLOUDINARY_API_KEY
        api_secret = api_secret or config.CLOUDINARY_API_SECRET
        if not all([cloud_name, api_key, api_secret]):
            raise StorageError("Cloudinary credentials not configured", user_message="Storage is not configured")
        cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)
        logger.info("Cloudinary storage configured for cloud %s", cloud_name)

    def put(self, path: str, data: bytes, content_type: str | None = None) -> str:
        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(data),
                public_id=_public_id(path),
                resource_type="image",
                overwrite=True,
            )
        except CloudinaryError as e:
            raise StorageError(f"Cloudinary upload failed for {path}: {e}", user_message="Failed to store file") from e
        url = result.get("secure_url")
        if not url:
            raise StorageError(f"Invalid Cloudinary response for {path}", user_message="Failed to store file")
        return url

    def public_url(self, path: str) -> str:
        url, _ = cloudinary.utils.cloudinary_url(_public_id(path), secure=True)
        return url

    def path_for_url(self, url: str) -> str | None:
        match = _DELIVERY_URL.search(url)
        return match.group("path") if match else None

    def delete(self, paths: Iterable[str]) -> list[str]:
        failed: list[str] = []
        for path in paths:
            try:
                result = cloudinary.uploader.destroy(_public_id(path))
            except CloudinaryError as e:
                logger.warning("Error deleting stored object %s: %s", path, e)
                failed.append(path)
                continue
            # 'not found' means it is already gone
            if result.get("result") in ("ok", "not found"):
                logger.info("Deleted stored object %s", path)
            else:
                logger.warning("Failed to delete stored object %s: %s", path, result)
                failed.append(path)
        return failed


def get_storage() -> ObjectStorage:
    """Backend selected by STORAGE_BACKEND."""
    if config.STORAGE_BACKEND == "cloudinary":
        return CloudinaryObjectStorage()
    return LocalObjectStorage()
