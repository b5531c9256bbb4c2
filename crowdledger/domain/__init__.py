"""Domain layer - Data access and atomic ledger primitives.

Usage:
    from crowdledger.domain import CompanyOperations, ValuationLedger

    with get_session_context() as session:
        company = CompanyOperations.get_or_raise(session, company_id)
        ValuationLedger.increase_total_investment(session, company.id, Decimal("250"))
        session.commit()
"""

from .valuation_ledger import ValuationLedger, exceeds_ledger_places, require_positive, to_amount
from .company_operations import CompanyOperations
from .investment_operations import InvestmentOperations
from .milestone_operations import MilestoneOperations
from .risk_report_operations import RiskReportOperations
from .verification_operations import VerificationOperations
from .chain_transaction_operations import ChainTransactionOperations

__all__ = [
    "ValuationLedger",
    "exceeds_ledger_places",
    "require_positive",
    "to_amount",
    "CompanyOperations",
    "InvestmentOperations",
    "MilestoneOperations",
    "RiskReportOperations",
    "VerificationOperations",
    "ChainTransactionOperations",
]
