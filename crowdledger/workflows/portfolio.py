"""Portfolio Service - Investor holdings valued at current company valuations."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlmodel import Session

from crowdledger.domain import CompanyOperations, InvestmentOperations
from crowdledger.models import Company, Investment

logger = logging.getLogger(__name__)

UNCLASSIFIED = "Other"


def current_value(investment: Investment, company: Company) -> Decimal:
    """Holding value: ownership share of the company's current valuation."""
    return investment.ownership_percentage / Decimal(100) * company.valuation


@dataclass
class Holding:
    investment_id: UUID
    company_id: UUID
    company_name: str
    industry: str
    amount: Decimal
    ownership_percentage: Decimal
    current_value: Decimal
    is_blockchain_verified: bool

    @property
    def gain(self) -> Decimal:
        return self.current_value - self.amount

    def to_dict(self) -> dict[str, Any]:
        return {
            "investment_id": str(self.investment_id),
            "company_id": str(self.company_id),
            "company_name": self.company_name,
            "industry": self.industry,
            "amount": str(self.amount),
            "ownership_percentage": str(self.ownership_percentage),
            "current_value": str(self.current_value),
            "gain": str(self.gain),
            "is_blockchain_verified": self.is_blockchain_verified,
        }


@dataclass
class PortfolioSummary:
    investor_id: UUID
    holdings: List[Holding] = field(default_factory=list)
    total_invested: Decimal = Decimal("0")
    current_value: Decimal = Decimal("0")
    industry_breakdown: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def total_return(self) -> Decimal:
        return self.current_value - self.total_invested

    @property
    def return_percentage(self) -> Optional[Decimal]:
        if self.total_invested == 0:
            return None
        return self.total_return / self.total_invested * Decimal(100)

    def to_dict(self) -> dict[str, Any]:
        pct = self.return_percentage
        return {
            "investor_id": str(self.investor_id),
            "total_invested": str(self.total_invested),
            "current_value": str(self.current_value),
            "total_return": str(self.total_return),
            "return_percentage": str(pct) if pct is not None else None,
            "industry_breakdown": {k: str(v) for k, v in self.industry_breakdown.items()},
            "holdings": [h.to_dict() for h in self.holdings],
        }


class PortfolioService:
    """Read-only portfolio view over the ledger."""

    def __init__(self, session: Session):
        self.session = session

    def summarize(self, investor_id: UUID) -> PortfolioSummary:
        """Summarize every investment an investor holds.

        Industry breakdown sums amounts invested, not current values.
        """
        summary = PortfolioSummary(investor_id=investor_id)
        breakdown: Dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
        companies: Dict[UUID, Company] = {}

        for investment in InvestmentOperations.get_by_investor(self.session, investor_id):
            company = companies.get(investment.company_id)
            if company is None:
                company = CompanyOperations.get_by_id(self.session, investment.company_id)
                if company is None:
                    logger.warning(f"Investment {investment.id} references missing company {investment.company_id}")
                    continue
                companies[company.id] = company

            holding = Holding(
                investment_id=investment.id,
                company_id=company.id,
                company_name=company.name,
                industry=company.industry or UNCLASSIFIED,
                amount=investment.amount,
                ownership_percentage=investment.ownership_percentage,
                current_value=current_value(investment, company),
                is_blockchain_verified=investment.is_blockchain_verified,
            )
            summary.holdings.append(holding)
            summary.total_invested += holding.amount
            summary.current_value += holding.current_value
            breakdown[holding.industry] += holding.amount

        summary.industry_breakdown = dict(breakdown)
        return summary
