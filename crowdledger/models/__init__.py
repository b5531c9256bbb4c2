"""SQLModel exports for all database tables."""

# Ledger
from .company import Company, VerificationState
from .investment import Investment, InvestmentType
from .milestone import Milestone

# Verification and audit
from .company_verification import CompanyVerification
from .risk_report import RiskAnalysisReport
from .chain_transaction import ChainTransaction, ChainTxKind, ChainTxStatus

__all__ = [
    # Ledger
    "Company",
    "VerificationState",
    "Investment",
    "InvestmentType",
    "Milestone",
    # Verification and audit
    "CompanyVerification",
    "RiskAnalysisReport",
    "ChainTransaction",
    "ChainTxKind",
    "ChainTxStatus",
]
