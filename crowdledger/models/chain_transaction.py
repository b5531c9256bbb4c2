"""ChainTransaction model - Durable record of submitted mirror writes."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from sqlmodel import Field
from .base import MONEY_DIGITS, MONEY_PLACES, PERCENT_DIGITS, PERCENT_PLACES
from .mixins import UUIDMixin


class ChainTxKind(str, Enum):
    MINT = "mint"
    INVEST = "invest"
    MILESTONE = "milestone"


class ChainTxStatus(str, Enum):
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"
    TIMED_OUT = "timed_out"


class ChainTransaction(UUIDMixin, table=True):
    """One submitted contract write.

    Written as soon as the gateway returns a transaction hash, before any
    confirmation wait, so an interrupted wait can be reconciled later.
    ``subject_id`` points at the investment or milestone the write mirrors
    (None for mints, which are tracked by ``company_id``).

    Investment writes also carry the priced investment (``investor_id``,
    ``amount``, ``ownership_percentage``) so a confirmation seen only by a
    later sweep can still be booked on the ledger.
    """

    __tablename__ = "chain_transactions"

    tx_hash: str = Field(nullable=False, unique=True, index=True)
    kind: str = Field(nullable=False)  # mint, invest, milestone
    status: str = Field(default=ChainTxStatus.SUBMITTED.value, index=True)
    company_id: UUID = Field(foreign_key="companies.id", nullable=False, index=True)
    subject_id: Optional[UUID] = Field(default=None, index=True)
    investor_id: Optional[UUID] = Field(default=None)
    amount: Optional[Decimal] = Field(default=None, max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES)
    ownership_percentage: Optional[Decimal] = Field(
        default=None, max_digits=PERCENT_DIGITS, decimal_places=PERCENT_PLACES
    )
    block_number: Optional[int] = Field(default=None)
    gas_used: Optional[int] = Field(default=None)
    error: Optional[str] = Field(default=None)
    submitted_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    confirmed_at: Optional[datetime] = Field(default=None)
