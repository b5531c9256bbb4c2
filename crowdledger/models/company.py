"""Company model - Aggregate root of the valuation ledger."""

from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from sqlmodel import Field
from sqlalchemy import CheckConstraint
from .base import MONEY_DIGITS, MONEY_PLACES
from .mixins import UUIDMixin, TimestampMixin


class VerificationState(str, Enum):
    """Blockchain linkage state of a company."""

    UNLINKED = "unlinked"
    LINKED_UNVERIFIED = "linked_unverified"
    LINKED_VERIFIED = "linked_verified"


class Company(UUIDMixin, TimestampMixin, table=True):
    """Per-company aggregate investment state.

    ``total_investment``, ``investor_count`` and ``milestone_count`` are only
    written through ``ValuationLedger`` with server-side expressions.
    """

    __tablename__ = "companies"

    owner_id: UUID = Field(nullable=False, index=True)
    name: str = Field(nullable=False, index=True)
    description: Optional[str] = Field(default=None)
    industry: Optional[str] = Field(default=None, index=True)
    valuation: Decimal = Field(max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES, nullable=False)
    total_investment: Decimal = Field(
        default=Decimal("0"), max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES, nullable=False
    )
    investor_count: int = Field(default=0, nullable=False)
    milestone_count: int = Field(default=0, nullable=False)
    revenue: Optional[Decimal] = Field(default=None, max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES)
    email_verified: bool = Field(default=False)
    blockchain_token_id: Optional[str] = Field(default=None, index=True)  # uint256 as decimal string
    blockchain_tx_hash: Optional[str] = Field(default=None)
    is_blockchain_verified: bool = Field(default=False)
    is_active: bool = Field(default=True)

    __table_args__ = (
        CheckConstraint("valuation > 0", name="check_company_valuation_positive"),
        CheckConstraint("total_investment >= 0", name="check_company_total_investment_non_negative"),
        CheckConstraint("investor_count >= 0", name="check_company_investor_count_non_negative"),
    )

    @property
    def verification_state(self) -> VerificationState:
        if not self.blockchain_token_id:
            return VerificationState.UNLINKED
        if self.is_blockchain_verified:
            return VerificationState.LINKED_VERIFIED
        return VerificationState.LINKED_UNVERIFIED

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Acme Robotics",
                "industry": "Manufacturing",
                "valuation": "1000000.00",
                "total_investment": "0",
                "investor_count": 0,
                "is_active": True,
            }
        }
