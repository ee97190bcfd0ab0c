"""Stored document retrieval endpoint."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from ragchat.api.dependencies import get_file_store
from ragchat.parsing.extraction import guess_media_type
from ragchat.sessions.files import UploadedFileStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{document_id:path}")
async def get_file(
    document_id: str,
    files: UploadedFileStore = Depends(get_file_store),
) -> FileResponse:
    """Stream a stored upload back by its ``sessionId::fileName`` document id.

    The id is validated before any filesystem access.

    Raises:
        400: Malformed id, unsafe file name, or invalid session id.
        404: No such stored file.
    """
    path = files.resolve(document_id)
    logger.info(f"Serving stored file {path.name}")
    return FileResponse(
        path,
        media_type=guess_media_type(path.name),
        headers={
            "Content-Disposition": f'inline; filename="{path.name}"',
            "Cache-Control": "public, max-age=3600",
        },
    )
