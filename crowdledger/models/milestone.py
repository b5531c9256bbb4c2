"""Milestone model - Company milestones with a one-time valuation impact."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID
from sqlmodel import Field
from .base import MONEY_DIGITS, MONEY_PLACES
from .mixins import UUIDMixin


class Milestone(UUIDMixin, table=True):
    """Company milestone.

    Created unverified; transitions to verified at most once, and only that
    transition applies ``valuation_impact`` to the company valuation.
    """

    __tablename__ = "milestones"

    company_id: UUID = Field(foreign_key="companies.id", nullable=False, index=True)
    milestone_type: str = Field(nullable=False)  # funding, product, revenue, partnership, ...
    description: str = Field(nullable=False)
    valuation_impact: Decimal = Field(
        default=Decimal("0"), max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES, nullable=False
    )
    verified: bool = Field(default=False, nullable=False)
    verified_at: Optional[datetime] = Field(default=None)
    verified_by: Optional[UUID] = Field(default=None)
    verification_notes: Optional[str] = Field(default=None)
    blockchain_tx_hash: Optional[str] = Field(default=None)
    is_blockchain_verified: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
