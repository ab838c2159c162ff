"""File storage for onboarding uploads.

Buckets:
  - `voice-recordings`    public; URLs are stable
  - `employee-documents`  private (license, SSN card, deposit form); only
                          reachable through short-lived signed URLs

The submission stores the object path for private files and the public
URL for public ones.  LocalFileStorage keeps objects on disk under
`settings.storage_root` and signs URLs with the app's JWT key; the
`/files` router serves them back.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import Protocol
from urllib.parse import quote

from app.auth.jwt import create_storage_token, decode_token
from app.config import settings

logger = logging.getLogger(__name__)

PUBLIC_BUCKETS = frozenset({"voice-recordings"})
PRIVATE_BUCKETS = frozenset({"employee-documents"})


class StorageError(Exception):
    pass


class FileStorage(Protocol):
    async def upload(self, bucket: str, path: str, data: bytes) -> str: ...

    def get_signed_url(self, bucket: str, path: str, ttl_seconds: int) -> str: ...


def _safe_path(path: str) -> PurePosixPath:
    parts = PurePosixPath(path.lstrip("/")).parts
    if not parts or any(p in ("..", ".") for p in parts):
        raise StorageError(f"Invalid object path: {path}")
    return PurePosixPath(*parts)


class LocalFileStorage:
    def __init__(self, root: str | Path | None = None, public_base_url: str | None = None):
        self.root = Path(root or settings.storage_root)
        self.public_base_url = (public_base_url or settings.storage_public_base_url).rstrip("/")

    def _check_bucket(self, bucket: str) -> None:
        if bucket not in PUBLIC_BUCKETS | PRIVATE_BUCKETS:
            raise StorageError(f"Unknown bucket: {bucket}")

    def object_path(self, bucket: str, path: str) -> Path:
        self._check_bucket(bucket)
        return self.root / bucket / Path(*_safe_path(path).parts)

    async def upload(self, bucket: str, path: str, data: bytes) -> str:
        """Store `data` and return a URL for it (signed for private buckets)."""
        target = self.object_path(bucket, path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            logger.error("Upload to %s/%s failed: %s", bucket, path, exc)
            raise StorageError(f"Could not store {bucket}/{path}") from exc

        logger.info("Stored %d bytes at %s/%s", len(data), bucket, path)
        if bucket in PRIVATE_BUCKETS:
            return self.get_signed_url(bucket, path, settings.signed_url_ttl_seconds)
        return self.public_url(bucket, path)

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_base_url}/{bucket}/{quote(str(_safe_path(path)))}"

    def get_signed_url(self, bucket: str, path: str, ttl_seconds: int) -> str:
        self._check_bucket(bucket)
        token = create_storage_token(bucket, str(_safe_path(path)), ttl_seconds)
        return f"{self.public_url(bucket, path)}?token={token}"

    def verify_token(self, token: str | None, bucket: str, path: str) -> bool:
        if not token:
            return False
        claims = decode_token(token)
        return (
            claims.get("type") == "storage"
            and claims.get("bucket") == bucket
            and claims.get("path") == str(_safe_path(path))
        )
