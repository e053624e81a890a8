# ledger/services/repository.py
#
# Ledger Repository
# CRUD over commissions, phases, voices and voice files, including the
# cascading deletes. Every mutation commits before it returns.

"""
Persistence access for the commission ledger.

All reads of phases and voices come back in creation order (created_at,
then id for rows created in the same instant). There is no ordering column:
what was created first is listed first.

Errors:
- RecordNotFound   when an id doesn't exist
- ValidationError  when input is blank / out of range
- RepositoryFault  when SQLAlchemy fails (the session is rolled back first)
"""

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Type

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ledger.errors import RecordNotFound, RepositoryFault, ValidationError
from ledger.services.currency import validate_amount
from ledger.services.file_storage import clean_path_component
from ledger.services.slugify import slugify
from models import Commission, Phase, Voice, VoiceFile, VoiceType

logger = logging.getLogger(__name__)

_ENTITY_NAMES = {
    Commission: "Commission",
    Phase: "Phase",
    Voice: "Voice",
    VoiceFile: "VoiceFile",
}


# ---- Input cleanup ----

def _require_text(value: Any, field: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"{field} is required")
    return text


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _voice_type(value: Any) -> str:
    try:
        return VoiceType(value).value
    except ValueError:
        raise ValidationError(f"type must be 'income' or 'outcome', got {value!r}")


def _stored_file_name(value: Any) -> str:
    # Only names the storage service produces: a slug that is a single path component
    name = clean_path_component(value, "file_name")
    if slugify(name) != name:
        raise ValidationError(f"file_name {name!r} is not a stored upload name")
    return name


class LedgerRepository:
    """
    Thin data layer on top of one SQLAlchemy session.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _backend(self, action: str):
        try:
            yield
        except IntegrityError as e:
            self.db.rollback()
            logger.error("[repository] %s rejected by the database: %r", action, e)
            raise ValidationError(f"{action} failed: {e.orig}")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("[repository] %s failed: %r", action, e)
            raise RepositoryFault(f"{action} failed: {e}")

    # -------------------------------------------------------------------
    # Generic reads
    # -------------------------------------------------------------------

    def select(
        self,
        model: Type[Any],
        order_by: str = "created_at",
        descending: bool = False,
        **filters: Any,
    ) -> List[Any]:
        """
        Equality-filtered, ordered read.

        A list/tuple/set filter value becomes an IN filter:
            select(Voice, phase_id=[1, 2])  ->  phase_id IN (1, 2)
        An empty IN filter matches nothing and skips the query.
        """
        query = self.db.query(model)

        for field, value in filters.items():
            column = getattr(model, field)
            if isinstance(value, (list, tuple, set, frozenset)):
                if not value:
                    return []
                query = query.filter(column.in_(list(value)))
            else:
                query = query.filter(column == value)

        sort_col = getattr(model, order_by)
        if descending:
            query = query.order_by(sort_col.desc(), model.id.desc())
        else:
            query = query.order_by(sort_col.asc(), model.id.asc())

        with self._backend(f"read {_ENTITY_NAMES.get(model, model.__name__)}"):
            return query.all()

    def _get(self, model: Type[Any], record_id: Any) -> Any:
        with self._backend(f"read {_ENTITY_NAMES[model]}"):
            record = self.db.get(model, record_id)
        if record is None:
            raise RecordNotFound(_ENTITY_NAMES[model], record_id)
        return record

    def _commit(self, action: str, record: Any = None) -> None:
        with self._backend(action):
            self.db.commit()
            if record is not None:
                self.db.refresh(record)

    # -------------------------------------------------------------------
    # Commissions
    # -------------------------------------------------------------------

    def list_commissions(self) -> List[Commission]:
        """All commissions, newest first."""
        return self.select(Commission, descending=True)

    def get_commission(self, commission_id: int) -> Commission:
        return self._get(Commission, commission_id)

    def create_commission(
        self,
        title: str,
        protocol_number_reference: str,
        user_id: Optional[str] = None,
    ) -> Commission:
        commission = Commission(
            title=_require_text(title, "title"),
            protocol_number_reference=_require_text(
                protocol_number_reference, "protocol_number_reference"
            ),
            income=Decimal("0.00"),
            outcome=Decimal("0.00"),
            user_id=user_id,
        )
        with self._backend("create Commission"):
            self.db.add(commission)
        self._commit("create Commission", commission)
        logger.info("[repository] created commission id=%s", commission.id)
        return commission

    def update_commission(self, commission_id: int, changes: Dict[str, Any]) -> Commission:
        """
        Partial update of the user-editable fields (title, protocol reference).
        Cached totals are not editable here; see update_commission_totals.
        """
        commission = self.get_commission(commission_id)

        if "title" in changes:
            commission.title = _require_text(changes["title"], "title")
        if "protocol_number_reference" in changes:
            commission.protocol_number_reference = _require_text(
                changes["protocol_number_reference"], "protocol_number_reference"
            )

        self._commit("update Commission", commission)
        return commission

    def update_commission_totals(
        self, commission_id: int, income: Decimal, outcome: Decimal
    ) -> Commission:
        commission = self.get_commission(commission_id)
        commission.income = income
        commission.outcome = outcome
        self._commit("update Commission totals", commission)
        return commission

    def delete_commission(self, commission_id: int) -> List[VoiceFile]:
        """
        Delete a commission with its phases, voices and voice-file records.

        Returns the VoiceFile records that were removed, so the caller can
        drop the stored objects too.
        """
        commission = self.get_commission(commission_id)
        phase_ids = [p.id for p in self.select(Phase, commission_id=commission_id)]

        with self._backend("delete Commission"):
            removed_files = self._delete_phases(phase_ids)
            self.db.delete(commission)
        self._commit("delete Commission")

        logger.info(
            "[repository] deleted commission id=%s (%d phases, %d files)",
            commission_id, len(phase_ids), len(removed_files),
        )
        return removed_files

    # -------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------

    def list_phases(self, commission_id: int) -> List[Phase]:
        return self.select(Phase, commission_id=commission_id)

    def get_phase(self, phase_id: int) -> Phase:
        return self._get(Phase, phase_id)

    def create_phase(self, commission_id: int, title: str) -> Phase:
        self.get_commission(commission_id)
        phase = Phase(commission_id=commission_id, title=_require_text(title, "title"))
        with self._backend("create Phase"):
            self.db.add(phase)
        self._commit("create Phase", phase)
        return phase

    def update_phase(self, phase_id: int, changes: Dict[str, Any]) -> Phase:
        phase = self.get_phase(phase_id)
        if "title" in changes:
            phase.title = _require_text(changes["title"], "title")
        self._commit("update Phase", phase)
        return phase

    def delete_phase(self, phase_id: int) -> List[VoiceFile]:
        """Delete a phase with its voices and their file records."""
        self.get_phase(phase_id)
        with self._backend("delete Phase"):
            removed_files = self._delete_phases([phase_id])
        self._commit("delete Phase")
        return removed_files

    def _delete_phases(self, phase_ids: List[int]) -> List[VoiceFile]:
        # Bulk delete children first; SQLite doesn't enforce ON DELETE CASCADE
        # unless foreign keys are switched on, so don't rely on it.
        if not phase_ids:
            return []

        voice_ids = [
            row[0] for row in self.db.query(Voice.id).filter(Voice.phase_id.in_(phase_ids)).all()
        ]
        removed_files = self._delete_voices(voice_ids)

        self.db.query(Phase).filter(Phase.id.in_(phase_ids)).delete(synchronize_session="fetch")
        return removed_files

    # -------------------------------------------------------------------
    # Voices
    # -------------------------------------------------------------------

    def list_voices(self, phase_ids: Iterable[int]) -> List[Voice]:
        return self.select(Voice, phase_id=list(phase_ids))

    def get_voice(self, voice_id: int) -> Voice:
        return self._get(Voice, voice_id)

    def create_voice(
        self,
        phase_id: int,
        type: str,
        amount: Any,
        description: Optional[str] = None,
    ) -> Voice:
        self.get_phase(phase_id)
        voice = Voice(
            phase_id=phase_id,
            type=_voice_type(type),
            amount=validate_amount(amount),
            description=_optional_text(description),
        )
        with self._backend("create Voice"):
            self.db.add(voice)
        self._commit("create Voice", voice)
        return voice

    def update_voice(self, voice_id: int, changes: Dict[str, Any]) -> Voice:
        """Partial update of type / amount / description."""
        voice = self.get_voice(voice_id)

        if "type" in changes:
            voice.type = _voice_type(changes["type"])
        if "amount" in changes:
            voice.amount = validate_amount(changes["amount"])
        if "description" in changes:
            voice.description = _optional_text(changes["description"])

        self._commit("update Voice", voice)
        return voice

    def delete_voice(self, voice_id: int) -> List[VoiceFile]:
        """Delete a voice and its file records."""
        self.get_voice(voice_id)
        with self._backend("delete Voice"):
            removed_files = self._delete_voices([voice_id])
        self._commit("delete Voice")
        return removed_files

    def _delete_voices(self, voice_ids: List[int]) -> List[VoiceFile]:
        if not voice_ids:
            return []

        removed_files = (
            self.db.query(VoiceFile).filter(VoiceFile.voice_id.in_(voice_ids)).all()
        )
        self.db.query(VoiceFile).filter(VoiceFile.voice_id.in_(voice_ids)).delete(
            synchronize_session="fetch"
        )
        self.db.query(Voice).filter(Voice.id.in_(voice_ids)).delete(synchronize_session="fetch")
        return removed_files

    # -------------------------------------------------------------------
    # Voice files
    # -------------------------------------------------------------------

    def list_voice_files(self, voice_ids: Iterable[int]) -> List[VoiceFile]:
        return self.select(VoiceFile, voice_id=list(voice_ids))

    def get_voice_file(self, file_id: int) -> VoiceFile:
        return self._get(VoiceFile, file_id)

    def add_voice_file(self, voice_id: int, file_url: str, file_name: str) -> VoiceFile:
        """
        Record an uploaded attachment for a voice.

        The storage service overwrites same-named uploads, so registering a
        file_name the voice already has updates that record instead of
        adding a second one.
        """
        self.get_voice(voice_id)
        file_url = _require_text(file_url, "file_url")
        file_name = _stored_file_name(file_name)

        existing = self.select(VoiceFile, voice_id=voice_id, file_name=file_name)
        if existing:
            record = existing[0]
            record.file_url = file_url
            self._commit("update VoiceFile", record)
            return record

        record = VoiceFile(voice_id=voice_id, file_url=file_url, file_name=file_name)
        with self._backend("create VoiceFile"):
            self.db.add(record)
        self._commit("create VoiceFile", record)
        return record

    def delete_voice_file(self, file_id: int) -> VoiceFile:
        record = self.get_voice_file(file_id)
        with self._backend("delete VoiceFile"):
            self.db.delete(record)
        self._commit("delete VoiceFile")
        return record
