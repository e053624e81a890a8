# ledger/schemas.py
# Role: Pydantic request/response models for the JSON API,
#       plus helpers turning sync snapshots into response payloads.

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from ledger.services.aggregation import Totals
from ledger.services.currency import MAX_AMOUNT
from ledger.services.sync import CommissionSnapshot, CommissionSummary
from models import VoiceType

# Decimal internally, plain JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# -------------------------------------------------------------------
# Request bodies
# -------------------------------------------------------------------

class CommissionCreate(BaseModel):
    title: str
    protocol_number_reference: str
    user_id: Optional[str] = None


class CommissionUpdate(BaseModel):
    title: Optional[str] = None
    protocol_number_reference: Optional[str] = None


class PhaseCreate(BaseModel):
    title: str


class PhaseUpdate(BaseModel):
    title: Optional[str] = None


class VoiceCreate(BaseModel):
    type: VoiceType
    amount: Decimal = Field(ge=0, le=MAX_AMOUNT)
    description: Optional[str] = None


class VoiceUpdate(BaseModel):
    type: Optional[VoiceType] = None
    amount: Optional[Decimal] = Field(default=None, ge=0, le=MAX_AMOUNT)
    description: Optional[str] = None


class VoiceFileCreate(BaseModel):
    file_url: str
    file_name: str


# -------------------------------------------------------------------
# Responses
# -------------------------------------------------------------------

class TotalsOut(BaseModel):
    income: Money
    outcome: Money
    net: Money


class VoiceFileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    voice_id: int
    file_url: str
    file_name: str
    created_at: datetime


class VoiceOut(BaseModel):
    id: int
    phase_id: int
    type: str
    amount: Money
    description: Optional[str] = None
    created_at: datetime
    files: List[VoiceFileOut] = []


class PhaseOut(BaseModel):
    id: int
    commission_id: int
    title: str
    created_at: datetime
    voices: List[VoiceOut] = []
    totals: TotalsOut


class CommissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    protocol_number_reference: str
    income: Money
    outcome: Money
    created_at: datetime
    user_id: Optional[str] = None


class CommissionSummaryOut(CommissionOut):
    total_income: Money
    total_outcome: Money
    net_total: Money


class CommissionDetailOut(BaseModel):
    state: str
    commission: CommissionOut
    phases: List[PhaseOut]
    totals: TotalsOut
    formatted_totals: Dict[str, str]


# -------------------------------------------------------------------
# Builders
# -------------------------------------------------------------------

def totals_out(totals: Totals) -> TotalsOut:
    return TotalsOut(income=totals.income, outcome=totals.outcome, net=totals.net)


def detail_out(snapshot: CommissionSnapshot, state: str) -> CommissionDetailOut:
    """Nest voices under phases and files under voices, keeping creation order."""
    phases_out: List[PhaseOut] = []

    for phase in snapshot.phases:
        voices_out = [
            VoiceOut(
                id=voice.id,
                phase_id=voice.phase_id,
                type=voice.type,
                amount=voice.amount,
                description=voice.description,
                created_at=voice.created_at,
                files=[VoiceFileOut.model_validate(f) for f in snapshot.files_for(voice.id)],
            )
            for voice in snapshot.voices_for(phase.id)
        ]
        phases_out.append(
            PhaseOut(
                id=phase.id,
                commission_id=phase.commission_id,
                title=phase.title,
                created_at=phase.created_at,
                voices=voices_out,
                totals=totals_out(snapshot.phase_totals.get(phase.id, Totals())),
            )
        )

    return CommissionDetailOut(
        state=state,
        commission=CommissionOut.model_validate(snapshot.commission),
        phases=phases_out,
        totals=totals_out(snapshot.totals),
        formatted_totals=snapshot.totals.formatted(),
    )


def summary_out(summary: CommissionSummary) -> CommissionSummaryOut:
    c = summary.commission
    return CommissionSummaryOut(
        id=c.id,
        title=c.title,
        protocol_number_reference=c.protocol_number_reference,
        income=c.income,
        outcome=c.outcome,
        created_at=c.created_at,
        user_id=c.user_id,
        total_income=summary.totals.income,
        total_outcome=summary.totals.outcome,
        net_total=summary.totals.net,
    )
