"""Serves objects written by LocalFileStorage.

  GET /files/voice-recordings/{path}            → public
  GET /files/employee-documents/{path}?token=…  → signed token required
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse

from app.services.pipeline import get_storage
from app.services.storage import PRIVATE_BUCKETS, LocalFileStorage, StorageError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{bucket}/{path:path}")
async def get_file(
    bucket: str,
    path: str,
    token: str | None = Query(None),
    storage: LocalFileStorage = Depends(get_storage),
):
    try:
        target = storage.object_path(bucket, path)
    except StorageError:
        raise HTTPException(status_code=404, detail="File not found")

    if bucket in PRIVATE_BUCKETS and not storage.verify_token(token, bucket, path):
        logger.warning("Rejected unsigned request for %s/%s", bucket, path)
        raise HTTPException(status_code=403, detail="Link is invalid or has expired")

    if not target.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(target)
