# ledger/services/aggregation.py
#
# Totals
# Derives income / outcome / net from a collection of voices and decides
# whether a commission's cached totals need to be written back.

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List

from ledger.services.currency import format_currency, quantize
from models import VoiceType

_ZERO = Decimal("0.00")


@dataclass(frozen=True)
class Totals:
    income: Decimal = _ZERO
    outcome: Decimal = _ZERO
    net: Decimal = _ZERO

    def as_dict(self) -> Dict[str, Any]:
        return {"income": self.income, "outcome": self.outcome, "net": self.net}

    def formatted(self) -> Dict[str, str]:
        return {
            "income": format_currency(self.income),
            "outcome": format_currency(self.outcome),
            "net": format_currency(self.net),
        }


def _voice_field(voice: Any, name: str) -> Any:
    # Accept ORM rows as well as plain dicts (e.g. JSON payloads)
    if isinstance(voice, dict):
        return voice.get(name)
    return getattr(voice, name)


def aggregate(voices: Iterable[Any]) -> Totals:
    """
    Sum voice amounts by type.

    Decimal addition is exact, so the result doesn't depend on the order
    of the voices and re-running it on the same input always gives the
    same totals.
    """
    income = _ZERO
    outcome = _ZERO

    for voice in voices:
        amount = Decimal(str(_voice_field(voice, "amount")))
        if _voice_field(voice, "type") == VoiceType.INCOME:
            income += amount
        else:
            outcome += amount

    income = quantize(income)
    outcome = quantize(outcome)
    return Totals(income=income, outcome=outcome, net=income - outcome)


def aggregate_by_phase(voices_by_phase: Dict[int, List[Any]]) -> Dict[int, Totals]:
    """Per-phase subtotals, keyed like the input."""
    return {phase_id: aggregate(voices) for phase_id, voices in voices_by_phase.items()}


def totals_differ(commission: Any, totals: Totals) -> bool:
    """
    True when the commission's cached income/outcome don't match `totals`.

    Only then is a write-back worth issuing.
    """
    cached_income = quantize(Decimal(str(commission.income or 0)))
    cached_outcome = quantize(Decimal(str(commission.outcome or 0)))
    return cached_income != totals.income or cached_outcome != totals.outcome
