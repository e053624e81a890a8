from __future__ import annotations

import itertools
from decimal import Decimal
from types import SimpleNamespace

from ledger.services.aggregation import Totals, aggregate, aggregate_by_phase, totals_differ


def _voice(type_: str, amount: str) -> dict:
    return {"type": type_, "amount": Decimal(amount)}


def test_empty_collection_gives_zero_totals() -> None:
    assert aggregate([]) == Totals(Decimal("0.00"), Decimal("0.00"), Decimal("0.00"))


def test_net_is_income_minus_outcome() -> None:
    voices = [
        _voice("income", "100.00"),
        _voice("outcome", "40.00"),
        _voice("income", "0.50"),
        _voice("outcome", "75.25"),
    ]
    totals = aggregate(voices)

    assert totals.income == Decimal("100.50")
    assert totals.outcome == Decimal("115.25")
    assert totals.net == totals.income - totals.outcome == Decimal("-14.75")


def test_result_does_not_depend_on_order() -> None:
    voices = [
        _voice("income", "0.10"),
        _voice("income", "0.20"),
        _voice("outcome", "0.30"),
        _voice("income", "999999999.00"),
        _voice("outcome", "12.34"),
    ]
    expected = aggregate(voices)

    for perm in itertools.permutations(voices):
        assert aggregate(perm) == expected


def test_repeated_aggregation_has_no_drift() -> None:
    voices = [_voice("income", "0.10") for _ in range(10)]

    first = aggregate(voices)
    assert first.income == Decimal("1.00")
    for _ in range(5):
        assert aggregate(voices) == first


def test_accepts_orm_like_objects() -> None:
    voices = [
        SimpleNamespace(type="income", amount=Decimal("10.00")),
        SimpleNamespace(type="outcome", amount=2.5),
    ]
    assert aggregate(voices).net == Decimal("7.50")


def test_aggregate_by_phase_keeps_phase_keys() -> None:
    by_phase = {
        1: [_voice("income", "100.00")],
        2: [_voice("outcome", "40.00")],
        3: [],
    }
    result = aggregate_by_phase(by_phase)

    assert result[1].income == Decimal("100.00")
    assert result[2].outcome == Decimal("40.00")
    assert result[3] == Totals()


def test_totals_differ_only_when_cache_is_stale() -> None:
    totals = Totals(Decimal("100.00"), Decimal("40.00"), Decimal("60.00"))

    assert not totals_differ(SimpleNamespace(income=Decimal("100.00"), outcome=Decimal("40.00")), totals)
    assert not totals_differ(SimpleNamespace(income=100.0, outcome=40), totals)
    assert totals_differ(SimpleNamespace(income=Decimal("0"), outcome=Decimal("40.00")), totals)
    assert totals_differ(SimpleNamespace(income=Decimal("100.00"), outcome=None), totals)


def test_formatted_totals() -> None:
    totals = aggregate([_voice("income", "100"), _voice("outcome", "40")])
    assert totals.formatted() == {
        "income": "100,00\u00a0€",
        "outcome": "40,00\u00a0€",
        "net": "60,00\u00a0€",
    }
