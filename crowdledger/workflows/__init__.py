"""Ledger workflows - Multi-step operations that own their transactions.

- investment_recorder: Investment recording and aggregate maintenance
- milestone_processor: Milestone creation and one-time valuation impact
- reconciliation: Chain linkage verification and pending-transaction sweep
- risk_scoring: Risk score and report generation
- company_registration: Company onboarding with optional token mint
- portfolio: Investor portfolio valuation
"""

from .chain_writes import ChainWriteOutcome, ChainWriteStatus, run_chain_write
from .investment_recorder import (
    InvestmentRecorder,
    InvestmentResult,
    RecorderConfig,
    compute_ownership_percentage,
)
from .milestone_processor import MilestoneProcessor, MilestoneVerification
from .reconciliation import ChainReconciler, ReconciliationResult, SweepResult, token_uri_for
from .risk_scoring import (
    Deduction,
    RiskAnalysisService,
    RiskAssessment,
    risk_description,
    risk_level,
    score_company,
)
from .company_registration import CompanyRegistration, RegistrationResult
from .portfolio import PortfolioService, PortfolioSummary, Holding

__all__ = [
    "ChainWriteOutcome",
    "ChainWriteStatus",
    "run_chain_write",
    "InvestmentRecorder",
    "InvestmentResult",
    "RecorderConfig",
    "compute_ownership_percentage",
    "MilestoneProcessor",
    "MilestoneVerification",
    "ChainReconciler",
    "ReconciliationResult",
    "SweepResult",
    "token_uri_for",
    "Deduction",
    "RiskAnalysisService",
    "RiskAssessment",
    "risk_description",
    "risk_level",
    "score_company",
    "CompanyRegistration",
    "RegistrationResult",
    "PortfolioService",
    "PortfolioSummary",
    "Holding",
]
