from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from ledger.errors import RecordNotFound, RepositoryFault, ValidationError
from ledger.services.repository import LedgerRepository
from models import Commission, Phase, Voice, VoiceFile


def test_new_commission_starts_with_zero_totals(repo: LedgerRepository) -> None:
    c = repo.create_commission("  Manutenzione  ", "PROT-9", user_id=None)

    assert c.id is not None
    assert c.title == "Manutenzione"
    assert c.income == Decimal("0.00")
    assert c.outcome == Decimal("0.00")
    assert c.user_id is None
    assert c.created_at is not None


@pytest.mark.parametrize("title, protocol", [("", "P-1"), ("   ", "P-1"), ("Titolo", ""), (None, "P-1")])
def test_commission_requires_title_and_protocol(repo: LedgerRepository, title, protocol) -> None:
    with pytest.raises(ValidationError):
        repo.create_commission(title, protocol)


def test_list_commissions_newest_first(repo: LedgerRepository) -> None:
    first = repo.create_commission("A", "P-1")
    second = repo.create_commission("B", "P-2")

    assert [c.id for c in repo.list_commissions()] == [second.id, first.id]


def test_update_commission_only_touches_given_fields(repo: LedgerRepository, commission: Commission) -> None:
    updated = repo.update_commission(commission.id, {"title": "Nuovo titolo"})

    assert updated.title == "Nuovo titolo"
    assert updated.protocol_number_reference == "PROT-2024-001"

    with pytest.raises(ValidationError):
        repo.update_commission(commission.id, {"protocol_number_reference": " "})


def test_unknown_ids_raise_record_not_found(repo: LedgerRepository) -> None:
    with pytest.raises(RecordNotFound, match="Commission 999 not found"):
        repo.get_commission(999)
    with pytest.raises(RecordNotFound):
        repo.create_phase(999, "Fase 1")
    with pytest.raises(RecordNotFound):
        repo.create_voice(999, "income", 10)
    with pytest.raises(RecordNotFound):
        repo.add_voice_file(999, "/files/voices/999/a.pdf", "a.pdf")
    with pytest.raises(RecordNotFound):
        repo.delete_voice_file(999)


def test_phases_and_voices_come_back_in_creation_order(repo: LedgerRepository, commission: Commission) -> None:
    titles = ["Fase 1", "Fase 2", "Fase 3"]
    phases = [repo.create_phase(commission.id, t) for t in titles]

    assert [p.title for p in repo.list_phases(commission.id)] == titles

    v1 = repo.create_voice(phases[1].id, "income", 10)
    v2 = repo.create_voice(phases[0].id, "outcome", 5)
    v3 = repo.create_voice(phases[1].id, "outcome", 1)

    assert [v.id for v in repo.list_voices([p.id for p in phases])] == [v1.id, v2.id, v3.id]


def test_select_supports_in_filters(repo: LedgerRepository, commission: Commission) -> None:
    other = repo.create_commission("Altra", "P-2")
    repo.create_phase(commission.id, "Fase 1")
    repo.create_phase(other.id, "Fase X")

    both = repo.select(Phase, commission_id=[commission.id, other.id])
    only_one = repo.select(Phase, commission_id=other.id)

    assert len(both) == 2
    assert [p.title for p in only_one] == ["Fase X"]
    assert repo.select(Phase, commission_id=[]) == []


def test_voice_amount_bounds(repo: LedgerRepository, commission: Commission) -> None:
    phase = repo.create_phase(commission.id, "Fase 1")

    with pytest.raises(ValidationError):
        repo.create_voice(phase.id, "income", -1)
    with pytest.raises(ValidationError):
        repo.create_voice(phase.id, "income", 1_000_000_000)

    voice = repo.create_voice(phase.id, "income", 999_999_999)
    assert voice.amount == Decimal("999999999.00")

    with pytest.raises(ValidationError):
        repo.update_voice(voice.id, {"amount": 1_000_000_000})


def test_voice_type_must_be_income_or_outcome(repo: LedgerRepository, commission: Commission) -> None:
    phase = repo.create_phase(commission.id, "Fase 1")

    with pytest.raises(ValidationError, match="income"):
        repo.create_voice(phase.id, "refund", 10)


def test_voice_description_is_optional(repo: LedgerRepository, commission: Commission) -> None:
    phase = repo.create_phase(commission.id, "Fase 1")
    voice = repo.create_voice(phase.id, "outcome", "40.00", description="  ")

    assert voice.description is None

    voice = repo.update_voice(voice.id, {"description": "Noleggio gru"})
    assert voice.description == "Noleggio gru"
    assert voice.amount == Decimal("40.00")


def test_delete_phase_cascades_to_voices_and_files(repo: LedgerRepository, commission: Commission) -> None:
    keep = repo.create_phase(commission.id, "Fase 1")
    doomed = repo.create_phase(commission.id, "Fase 2")
    kept_voice = repo.create_voice(keep.id, "income", 10)
    v = repo.create_voice(doomed.id, "outcome", 5)
    repo.add_voice_file(v.id, f"/files/voices/{v.id}/a.pdf", "a.pdf")
    repo.add_voice_file(kept_voice.id, f"/files/voices/{kept_voice.id}/b.pdf", "b.pdf")

    removed = repo.delete_phase(doomed.id)

    assert [(f.voice_id, f.file_name) for f in removed] == [(v.id, "a.pdf")]
    assert [p.id for p in repo.list_phases(commission.id)] == [keep.id]
    assert repo.select(Voice, phase_id=doomed.id) == []
    assert [f.file_name for f in repo.select(VoiceFile)] == ["b.pdf"]


def test_delete_commission_cascades_everything(repo: LedgerRepository, commission: Commission) -> None:
    other = repo.create_commission("Altra", "P-2")
    other_phase = repo.create_phase(other.id, "Fase X")
    repo.create_voice(other_phase.id, "income", 1)

    phase = repo.create_phase(commission.id, "Fase 1")
    voice = repo.create_voice(phase.id, "income", 100)
    repo.add_voice_file(voice.id, f"/files/voices/{voice.id}/a.pdf", "a.pdf")

    removed = repo.delete_commission(commission.id)

    assert [f.file_name for f in removed] == ["a.pdf"]
    assert [c.id for c in repo.list_commissions()] == [other.id]
    assert [p.id for p in repo.select(Phase)] == [other_phase.id]
    assert len(repo.select(Voice)) == 1
    assert repo.select(VoiceFile) == []


def test_same_file_name_updates_the_existing_record(repo: LedgerRepository, commission: Commission) -> None:
    phase = repo.create_phase(commission.id, "Fase 1")
    voice = repo.create_voice(phase.id, "income", 10)

    first = repo.add_voice_file(voice.id, "/files/voices/x/a.pdf", "a.pdf")
    second = repo.add_voice_file(voice.id, f"/files/voices/{voice.id}/a.pdf", "a.pdf")

    assert first.id == second.id
    records = repo.list_voice_files([voice.id])
    assert len(records) == 1
    assert records[0].file_url == f"/files/voices/{voice.id}/a.pdf"


def test_backend_failures_become_repository_faults(
    repo: LedgerRepository, commission: Commission, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken_commit():
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(repo.db, "commit", broken_commit)

    with pytest.raises(RepositoryFault, match="disk I/O error"):
        repo.create_phase(commission.id, "Fase 1")


@pytest.mark.parametrize(
    "file_name",
    ["sub/My File.PDF", "My File.pdf", "..", ".", "a\\b.pdf", "a./etc", ""],
)
def test_voice_file_name_must_be_a_stored_upload_name(
    repo: LedgerRepository, commission: Commission, file_name: str
) -> None:
    phase = repo.create_phase(commission.id, "Fase 1")
    voice = repo.create_voice(phase.id, "income", 10)

    with pytest.raises(ValidationError):
        repo.add_voice_file(voice.id, f"/files/voices/{voice.id}/x", file_name)

    assert repo.list_voice_files([voice.id]) == []
