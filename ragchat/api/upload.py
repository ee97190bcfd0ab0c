"""Document upload endpoint.

Handles multipart upload, size checks, streaming ingestion, and indexing.
"""

import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ragchat.api.dependencies import get_upload_service
from ragchat.errors import ValidationError
from ragchat.models.schemas import UploadResponse
from ragchat.orchestrator.upload import UploadService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["upload"])


@router.post("/upload", response_model=UploadResponse)
async def upload_document(
    file: UploadFile | None = File(default=None),
    session_id: str | None = Form(default=None, alias="sessionId"),
    service: UploadService = Depends(get_upload_service),
) -> UploadResponse:
    """Upload and ingest a document.

    Accepts a file (multipart/form-data field ``file``) and an optional
    ``sessionId``. The file is stored, split into fragments slice by slice,
    and indexed for retrieval in that session.

    Returns:
        UploadResponse with the session id, file name, and fragment counts.

    Raises:
        400: No file, or invalid file name or session id.
        413: File exceeds the configured maximum size.
        422: No text could be extracted.
        502: The knowledge base rejected the fragments.
        503: The upload or session could not be stored.
    """
    if file is None:
        raise ValidationError("No file provided")

    try:
        return await service.ingest(
            file,
            file.filename,
            session_id=session_id or None,
            declared_size=file.size,
            content_type=file.content_type,
        )
    finally:
        await file.close()
