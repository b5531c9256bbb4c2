"""Investment model - One investor's contribution to a company."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from sqlmodel import Field
from sqlalchemy import CheckConstraint, Index
from .base import MONEY_DIGITS, MONEY_PLACES, PERCENT_DIGITS, PERCENT_PLACES
from .mixins import UUIDMixin


class InvestmentType(str, Enum):
    TRADITIONAL = "traditional"
    BLOCKCHAIN = "blockchain"


class Investment(UUIDMixin, table=True):
    """Immutable investment record.

    Only ``blockchain_tx_hash``, ``is_blockchain_verified`` and
    ``investment_type`` may change after creation, when a deferred chain
    confirmation is reconciled.
    """

    __tablename__ = "investments"

    company_id: UUID = Field(foreign_key="companies.id", nullable=False, index=True)
    investor_id: UUID = Field(nullable=False, index=True)
    amount: Decimal = Field(max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES, nullable=False)
    ownership_percentage: Decimal = Field(
        max_digits=PERCENT_DIGITS, decimal_places=PERCENT_PLACES, nullable=False
    )
    blockchain_tx_hash: Optional[str] = Field(default=None, index=True)
    is_blockchain_verified: bool = Field(default=False)
    investment_type: str = Field(default=InvestmentType.TRADITIONAL.value)  # traditional, blockchain
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("amount > 0", name="check_investment_amount_positive"),
        CheckConstraint(
            "ownership_percentage > 0 AND ownership_percentage < 100",
            name="check_investment_ownership_bounds",
        ),
        Index("ix_investments_company_investor", "company_id", "investor_id"),
    )
