# ledger/services/sync.py
#
# Commission Sync
# Runs every phase/voice/file mutation of one commission through the
# repository, then reloads the whole hierarchy, reconciles the cached
# totals and publishes the fresh snapshot to subscribers.

"""
Sync controller for a single commission view.

State machine:
    IDLE -> LOADING -> READY
            LOADING -> FAILED

Every mutation is followed by a full reload (commission -> phases ->
voices -> files). Nothing is patched locally: the published snapshot is
always the result of one fresh read.

Known race: reconciliation reads voices, then conditionally writes the
commission totals, without any lock. Two overlapping mutation flows on the
same commission can each compute totals from a snapshot that is already
stale when their write lands. The next reload of that commission puts the
cached totals right again.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ledger.errors import RecordNotFound
from ledger.services.aggregation import Totals, aggregate, aggregate_by_phase, totals_differ
from ledger.services.file_storage import FileStorage
from ledger.services.repository import LedgerRepository
from models import Commission, Phase, Voice, VoiceFile

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class CommissionSnapshot:
    """Everything one reload produced for a commission."""

    commission: Commission
    phases: List[Phase]
    voices: Dict[int, List[Voice]]          # phase_id -> voices
    files: Dict[int, List[VoiceFile]]       # voice_id -> files
    totals: Totals
    phase_totals: Dict[int, Totals] = field(default_factory=dict)

    def voices_for(self, phase_id: int) -> List[Voice]:
        return self.voices.get(phase_id, [])

    def files_for(self, voice_id: int) -> List[VoiceFile]:
        return self.files.get(voice_id, [])

    def all_voices(self) -> List[Voice]:
        return [v for phase in self.phases for v in self.voices_for(phase.id)]


@dataclass(frozen=True)
class CommissionSummary:
    """Commission row for list views, with totals computed from its voices."""

    commission: Commission
    totals: Totals


Subscriber = Callable[["CommissionSync"], None]


class CommissionSync:
    """
    State container for one commission.

    Usage:
        sync = CommissionSync(LedgerRepository(db), commission_id, storage)
        sync.load()
        sync.create_voice(phase_id, "income", "100.00")
        sync.snapshot.totals.net

    On failure the state becomes FAILED, `error` holds the message and the
    exception is re-raised. The last good snapshot is kept as it was.
    """

    def __init__(
        self,
        repository: LedgerRepository,
        commission_id: int,
        storage: Optional[FileStorage] = None,
    ):
        self.repository = repository
        self.commission_id = commission_id
        self.storage = storage

        self._state = SyncState.IDLE
        self._snapshot: Optional[CommissionSnapshot] = None
        self._error: Optional[str] = None
        self._subscribers: List[Subscriber] = []

    # -------------------------------------------------------------------
    # Observable state
    # -------------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def snapshot(self) -> Optional[CommissionSnapshot]:
        return self._snapshot

    @property
    def error(self) -> Optional[str]:
        return self._error

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback run after every state change; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _transition(
        self,
        state: SyncState,
        snapshot: Optional[CommissionSnapshot] = None,
        error: Optional[str] = None,
    ) -> None:
        self._state = state
        self._error = error
        if snapshot is not None:
            self._snapshot = snapshot
        for callback in list(self._subscribers):
            callback(self)

    # -------------------------------------------------------------------
    # Reload
    # -------------------------------------------------------------------

    def load(self) -> CommissionSnapshot:
        self._run("load", lambda: None)
        return self._snapshot

    def _reload(self) -> CommissionSnapshot:
        repo = self.repository

        commission = repo.get_commission(self.commission_id)
        phases = repo.list_phases(self.commission_id)
        voices = repo.list_voices([p.id for p in phases])
        files = repo.list_voice_files([v.id for v in voices])

        voices_by_phase: Dict[int, List[Voice]] = {p.id: [] for p in phases}
        for voice in voices:
            voices_by_phase.setdefault(voice.phase_id, []).append(voice)

        files_by_voice: Dict[int, List[VoiceFile]] = {}
        for voice_file in files:
            files_by_voice.setdefault(voice_file.voice_id, []).append(voice_file)

        totals = aggregate(voices)
        commission = self._reconcile(commission, totals)

        return CommissionSnapshot(
            commission=commission,
            phases=phases,
            voices=voices_by_phase,
            files=files_by_voice,
            totals=totals,
            phase_totals=aggregate_by_phase(voices_by_phase),
        )

    def _reconcile(self, commission: Commission, totals: Totals) -> Commission:
        # Only write when the cache is actually out of date
        if not totals_differ(commission, totals):
            return commission

        logger.info(
            "[sync] commission=%s totals %s/%s -> %s/%s",
            commission.id, commission.income, commission.outcome,
            totals.income, totals.outcome,
        )
        return self.repository.update_commission_totals(
            commission.id, totals.income, totals.outcome
        )

    def _run(self, action: str, mutation: Callable[[], Any]) -> Any:
        """
        LOADING -> mutation -> reload -> READY.
        Any failure along the way -> FAILED, and the error is re-raised.
        """
        self._transition(SyncState.LOADING)
        try:
            result = mutation()
            snapshot = self._reload()
        except Exception as exc:
            logger.error("[sync] %s on commission=%s failed: %s", action, self.commission_id, exc)
            self._transition(SyncState.FAILED, error=str(exc) or exc.__class__.__name__)
            raise

        self._transition(SyncState.READY, snapshot=snapshot)
        return result

    def _purge(self, removed_files: List[VoiceFile]) -> None:
        if self.storage is None:
            return
        for voice_file in removed_files:
            self.storage.delete(voice_file.voice_id, voice_file.file_name)

    # -------------------------------------------------------------------
    # Ownership checks (ids must belong to this commission)
    # -------------------------------------------------------------------

    def _own_phase(self, phase_id: int) -> Phase:
        phase = self.repository.get_phase(phase_id)
        if phase.commission_id != self.commission_id:
            raise RecordNotFound("Phase", phase_id)
        return phase

    def _own_voice(self, voice_id: int) -> Voice:
        voice = self.repository.get_voice(voice_id)
        phase = self.repository.get_phase(voice.phase_id)
        if phase.commission_id != self.commission_id:
            raise RecordNotFound("Voice", voice_id)
        return voice

    def _own_file(self, file_id: int) -> VoiceFile:
        voice_file = self.repository.get_voice_file(file_id)
        try:
            self._own_voice(voice_file.voice_id)
        except RecordNotFound:
            raise RecordNotFound("VoiceFile", file_id)
        return voice_file

    # -------------------------------------------------------------------
    # Commission
    # -------------------------------------------------------------------

    def update_commission(self, changes: Dict[str, Any]) -> Commission:
        return self._run(
            "update commission",
            lambda: self.repository.update_commission(self.commission_id, changes),
        )

    def delete_commission(self) -> List[VoiceFile]:
        """
        Delete the commission (cascade) and its stored attachments.
        The controller goes back to IDLE with no snapshot.
        """
        self._transition(SyncState.LOADING)
        try:
            removed = self.repository.delete_commission(self.commission_id)
            self._purge(removed)
        except Exception as exc:
            logger.error("[sync] delete commission=%s failed: %s", self.commission_id, exc)
            self._transition(SyncState.FAILED, error=str(exc) or exc.__class__.__name__)
            raise

        self._snapshot = None
        self._transition(SyncState.IDLE)
        return removed

    # -------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------

    def create_phase(self, title: str) -> Phase:
        return self._run(
            "create phase",
            lambda: self.repository.create_phase(self.commission_id, title),
        )

    def update_phase(self, phase_id: int, changes: Dict[str, Any]) -> Phase:
        def mutation():
            self._own_phase(phase_id)
            return self.repository.update_phase(phase_id, changes)

        return self._run("update phase", mutation)

    def delete_phase(self, phase_id: int) -> List[VoiceFile]:
        def mutation():
            self._own_phase(phase_id)
            removed = self.repository.delete_phase(phase_id)
            self._purge(removed)
            return removed

        return self._run("delete phase", mutation)

    # -------------------------------------------------------------------
    # Voices
    # -------------------------------------------------------------------

    def create_voice(
        self,
        phase_id: int,
        type: str,
        amount: Any,
        description: Optional[str] = None,
    ) -> Voice:
        def mutation():
            self._own_phase(phase_id)
            return self.repository.create_voice(phase_id, type, amount, description)

        return self._run("create voice", mutation)

    def update_voice(self, voice_id: int, changes: Dict[str, Any]) -> Voice:
        def mutation():
            self._own_voice(voice_id)
            return self.repository.update_voice(voice_id, changes)

        return self._run("update voice", mutation)

    def delete_voice(self, voice_id: int) -> List[VoiceFile]:
        def mutation():
            self._own_voice(voice_id)
            removed = self.repository.delete_voice(voice_id)
            self._purge(removed)
            return removed

        return self._run("delete voice", mutation)

    # -------------------------------------------------------------------
    # Voice files
    # -------------------------------------------------------------------

    def attach_file(self, voice_id: int, file_url: str, file_name: str) -> VoiceFile:
        def mutation():
            self._own_voice(voice_id)
            return self.repository.add_voice_file(voice_id, file_url, file_name)

        return self._run("attach file", mutation)

    def detach_file(self, file_id: int) -> VoiceFile:
        def mutation():
            self._own_file(file_id)
            record = self.repository.delete_voice_file(file_id)
            self._purge([record])
            return record

        return self._run("detach file", mutation)


# -------------------------------------------------------------------
# Commission list
# -------------------------------------------------------------------

def list_commissions_with_totals(repository: LedgerRepository) -> List[CommissionSummary]:
    """
    Every commission (newest first) with totals computed from its voices.

    Uses three reads in total, whatever the number of commissions.
    """
    commissions = repository.list_commissions()
    if not commissions:
        return []

    phases = repository.select(Phase, commission_id=[c.id for c in commissions])
    voices = repository.list_voices([p.id for p in phases])

    commission_of_phase = {p.id: p.commission_id for p in phases}
    voices_by_commission: Dict[int, List[Voice]] = {c.id: [] for c in commissions}
    for voice in voices:
        voices_by_commission[commission_of_phase[voice.phase_id]].append(voice)

    return [
        CommissionSummary(commission=c, totals=aggregate(voices_by_commission[c.id]))
        for c in commissions
    ]
