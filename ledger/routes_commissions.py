# ledger/routes_commissions.py
"""
JSON routes for commissions, phases, voices and voice-file records.

Every mutation goes through CommissionSync, so the response is always the
freshly reloaded commission (with reconciled totals), never a patched copy.
"""

from typing import List

from fastapi import APIRouter, Depends

from ledger.deps import get_repository, get_storage
from ledger.schemas import (
    CommissionCreate,
    CommissionDetailOut,
    CommissionSummaryOut,
    CommissionUpdate,
    PhaseCreate,
    PhaseUpdate,
    VoiceCreate,
    VoiceFileCreate,
    VoiceUpdate,
    detail_out,
    summary_out,
)
from ledger.services.file_storage import FileStorage
from ledger.services.repository import LedgerRepository
from ledger.services.sync import CommissionSync, list_commissions_with_totals

router = APIRouter(prefix="/api/commissions", tags=["commissions"])


def _detail(sync: CommissionSync) -> CommissionDetailOut:
    return detail_out(sync.snapshot, sync.state.value)


def get_sync(
    commission_id: int,
    repository: LedgerRepository = Depends(get_repository),
    storage: FileStorage = Depends(get_storage),
) -> CommissionSync:
    return CommissionSync(repository, commission_id, storage)


# -------------------------------------------------------------------
# Commissions
# -------------------------------------------------------------------

@router.get("", response_model=List[CommissionSummaryOut])
def list_commissions(repository: LedgerRepository = Depends(get_repository)):
    """
    All commissions, newest first, with totals computed from their voices.
    """
    return [summary_out(s) for s in list_commissions_with_totals(repository)]


@router.post("", response_model=CommissionDetailOut, status_code=201)
def create_commission(
    body: CommissionCreate,
    repository: LedgerRepository = Depends(get_repository),
    storage: FileStorage = Depends(get_storage),
):
    commission = repository.create_commission(
        body.title, body.protocol_number_reference, user_id=body.user_id
    )
    sync = CommissionSync(repository, commission.id, storage)
    sync.load()
    return _detail(sync)


@router.get("/{commission_id}", response_model=CommissionDetailOut)
def get_commission(sync: CommissionSync = Depends(get_sync)):
    """
    Commission with phases, voices and files, in creation order.
    Loading also repairs the cached totals if they drifted.
    """
    sync.load()
    return _detail(sync)


@router.patch("/{commission_id}", response_model=CommissionDetailOut)
def update_commission(body: CommissionUpdate, sync: CommissionSync = Depends(get_sync)):
    sync.update_commission(body.model_dump(exclude_unset=True))
    return _detail(sync)


@router.delete("/{commission_id}")
def delete_commission(sync: CommissionSync = Depends(get_sync)):
    removed = sync.delete_commission()
    return {"ok": True, "removed_files": len(removed)}


# -------------------------------------------------------------------
# Phases
# -------------------------------------------------------------------

@router.post("/{commission_id}/phases", response_model=CommissionDetailOut, status_code=201)
def create_phase(body: PhaseCreate, sync: CommissionSync = Depends(get_sync)):
    sync.create_phase(body.title)
    return _detail(sync)


@router.patch("/{commission_id}/phases/{phase_id}", response_model=CommissionDetailOut)
def update_phase(phase_id: int, body: PhaseUpdate, sync: CommissionSync = Depends(get_sync)):
    sync.update_phase(phase_id, body.model_dump(exclude_unset=True))
    return _detail(sync)


@router.delete("/{commission_id}/phases/{phase_id}", response_model=CommissionDetailOut)
def delete_phase(phase_id: int, sync: CommissionSync = Depends(get_sync)):
    """Delete a phase with all its voices (and their attachments)."""
    sync.delete_phase(phase_id)
    return _detail(sync)


# -------------------------------------------------------------------
# Voices
# -------------------------------------------------------------------

@router.post(
    "/{commission_id}/phases/{phase_id}/voices",
    response_model=CommissionDetailOut,
    status_code=201,
)
def create_voice(phase_id: int, body: VoiceCreate, sync: CommissionSync = Depends(get_sync)):
    sync.create_voice(phase_id, body.type, body.amount, body.description)
    return _detail(sync)


@router.patch("/{commission_id}/voices/{voice_id}", response_model=CommissionDetailOut)
def update_voice(voice_id: int, body: VoiceUpdate, sync: CommissionSync = Depends(get_sync)):
    sync.update_voice(voice_id, body.model_dump(exclude_unset=True))
    return _detail(sync)


@router.delete("/{commission_id}/voices/{voice_id}", response_model=CommissionDetailOut)
def delete_voice(voice_id: int, sync: CommissionSync = Depends(get_sync)):
    sync.delete_voice(voice_id)
    return _detail(sync)


# -------------------------------------------------------------------
# Voice files (metadata of uploads made via /api/upload/voice-file)
# -------------------------------------------------------------------

@router.post(
    "/{commission_id}/voices/{voice_id}/files",
    response_model=CommissionDetailOut,
    status_code=201,
)
def attach_voice_file(
    voice_id: int, body: VoiceFileCreate, sync: CommissionSync = Depends(get_sync)
):
    sync.attach_file(voice_id, body.file_url, body.file_name)
    return _detail(sync)


@router.delete("/{commission_id}/files/{file_id}", response_model=CommissionDetailOut)
def detach_voice_file(file_id: int, sync: CommissionSync = Depends(get_sync)):
    """Remove the record and the stored PDF behind it."""
    sync.detach_file(file_id)
    return _detail(sync)
