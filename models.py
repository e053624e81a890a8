# models.py
# Role: SQLAlchemy ORM models for the commission ledger domain.
#       Commission -> Phase -> Voice -> VoiceFile, each child pointing at its owner.

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)

from db import Base
from ledger.services.currency import MAX_AMOUNT


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VoiceType(str, Enum):
    INCOME = "income"
    OUTCOME = "outcome"


class Commission(Base):
    """
    Top-level financial record.

    income/outcome are cached totals derived from every voice under every
    phase of the commission. They are rewritten by the sync controller
    whenever a reload finds them out of date; never edit them by hand.
    """

    __tablename__ = "commissions"

    id = Column(Integer, primary_key=True, index=True)

    title = Column(String, nullable=False)

    # Reference number of the administrative protocol this commission belongs to
    protocol_number_reference = Column(String, nullable=False)

    # Cached totals (see ledger/services/aggregation.py)
    income = Column(Numeric(14, 2), nullable=False, default=0)
    outcome = Column(Numeric(14, 2), nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    # Owner reference (no user model yet, so just an opaque id)
    user_id = Column(String, nullable=True)


class Phase(Base):
    """
    Named grouping of voices inside a commission.
    Phases have no order column: they are listed by creation time.
    """

    __tablename__ = "phases"

    id = Column(Integer, primary_key=True, index=True)

    commission_id = Column(
        Integer,
        ForeignKey("commissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title = Column(String, nullable=False)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)


class Voice(Base):
    """
    Single income or outcome line item inside a phase.
    """

    __tablename__ = "voices"
    __table_args__ = (
        CheckConstraint("type IN ('income', 'outcome')", name="ck_voices_type"),
        CheckConstraint(
            f"amount >= 0 AND amount <= {MAX_AMOUNT}",
            name="ck_voices_amount_range",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    phase_id = Column(
        Integer,
        ForeignKey("phases.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # "income" or "outcome" (see VoiceType)
    type = Column(String(7), nullable=False)

    # Non-negative amount with 2-decimal currency semantics
    amount = Column(Numeric(12, 2), nullable=False)

    description = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)


class VoiceFile(Base):
    """
    Metadata of a PDF attachment stored by the file storage service.

    file_name is the slug the storage service stored the upload under,
    so one voice never holds two records for the same stored object.
    """

    __tablename__ = "voice_files"
    __table_args__ = (
        UniqueConstraint("voice_id", "file_name", name="uq_voice_files_voice_name"),
    )

    id = Column(Integer, primary_key=True, index=True)

    voice_id = Column(
        Integer,
        ForeignKey("voices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Public URL returned by the upload endpoint
    file_url = Column(String, nullable=False)

    # Slugified file name (last path component of file_url)
    file_name = Column(String, nullable=False)

    created_at = Column(DateTime, nullable=False, default=utcnow)
