# ledger/routes_upload.py
"""
Routes for voice attachments: upload a PDF, delete a stored PDF.

Both keep the response shapes the frontend already relies on:
    POST /api/upload/voice-file  -> {file_url, file_name}
    POST /api/delete/voice-file  -> {ok: true}
Errors come back as {error} (see the exception handlers in main.py).
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, File, Form, UploadFile

from ledger.deps import get_storage
from ledger.errors import ValidationError
from ledger.services.file_storage import FileStorage

logger = logging.getLogger(__name__)

router = APIRouter()


# -------------------------------------------------------------------
# Upload
# -------------------------------------------------------------------

@router.post("/api/upload/voice-file")
def upload_voice_file(
    file: Optional[UploadFile] = File(None),
    voiceId: Optional[str] = Form(None),
    storage: FileStorage = Depends(get_storage),
):
    """
    Store one PDF for a voice.

    Responsibilities:
    - Require voiceId and file (400 otherwise)
    - Require application/pdf (400 otherwise)
    - Save under voices/<voiceId>/<slugified name>, overwriting a
      previous upload with the same slug
    - Return the public URL and the stored name
    """
    if not voiceId:
        raise ValidationError("voiceId is required")
    if file is None:
        raise ValidationError("file is required")

    stored = storage.save(file.file, voiceId, file.filename, file.content_type)
    logger.info("[upload] voice=%s %r -> %s", voiceId, file.filename, stored["file_name"])
    return stored


# -------------------------------------------------------------------
# Delete
# -------------------------------------------------------------------

@router.post("/api/delete/voice-file")
def delete_voice_file(
    payload: Optional[Dict[str, Any]] = Body(None),
    storage: FileStorage = Depends(get_storage),
):
    """
    Delete a stored PDF.

    Deleting a file that isn't there still answers {ok: true}, so the
    call can be repeated safely.
    """
    payload = payload or {}
    voice_id = payload.get("voiceId")
    file_name = payload.get("file_name")

    if not voice_id or not file_name:
        raise ValidationError("voiceId and file_name are required")

    storage.delete(str(voice_id), str(file_name))
    return {"ok": True}
