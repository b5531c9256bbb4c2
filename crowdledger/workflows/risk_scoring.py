"""Risk Scoring Engine - Company risk score from ledger and verification state.

Starts at 100 and subtracts independent deductions:

    Registry verification missing        35
    Registration status not active       20   (verification present)
    Company age < 1 / < 3 / < 5 years    15 / 10 / 5   (verification present)
    No director records                  15   (verification present)
    No prior investments                 20
    1 or 2 prior investments             20 - 7 * count
    No reported revenue                  15
    Business email unverified            15

The score is clamped to [0, 100]. Scoring is read-only with respect to the
ledger: reports are appended to ``risk_analysis_reports`` and nothing is
written back to the company.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, List, Optional
from uuid import UUID

from sqlmodel import Session

from crowdledger.domain import (
    CompanyOperations,
    InvestmentOperations,
    RiskReportOperations,
    VerificationOperations,
)
from crowdledger.models import Company, CompanyVerification, RiskAnalysisReport

logger = logging.getLogger(__name__)

STARTING_SCORE = 100
DAYS_PER_YEAR = 365

RISK_DESCRIPTIONS = {
    "LOW": "Well-established company with strong verification and track record",
    "MODERATE": "Established company with some verification gaps or limited history",
    "HIGH": "Company requires additional verification or has limited operational history",
    "VERY HIGH": "Significant verification gaps or concerns identified",
}


@dataclass
class Deduction:
    factor: str
    points: int
    reason: str
    details: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = {"factor": self.factor, "points": self.points, "reason": self.reason}
        if self.details:
            data["details"] = self.details
        return data


@dataclass
class RiskAssessment:
    score: int
    level: str
    deductions: List[Deduction] = field(default_factory=list)

    @property
    def description(self) -> str:
        return risk_description(self.level)


def risk_level(score: int) -> str:
    if score >= 80:
        return "LOW"
    if score >= 60:
        return "MODERATE"
    if score >= 40:
        return "HIGH"
    return "VERY HIGH"


def risk_description(level: str) -> str:
    return RISK_DESCRIPTIONS.get(level, "Risk level could not be determined")


def _as_date(value) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


def company_age_years(company: Company, verification: Optional[CompanyVerification], today: date) -> Optional[float]:
    """Age from the registry incorporation date, else from the ledger creation date."""
    started = _as_date(verification.incorporation_date if verification else None) or _as_date(company.created_at)
    if started is None:
        return None
    return (today - started).days / DAYS_PER_YEAR


def score_company(
    company: Company,
    verification: Optional[CompanyVerification],
    investment_count: int,
    now: Optional[datetime] = None,
) -> RiskAssessment:
    """Score a company. Never raises for missing data; gaps are deductions.

    Args:
        company: Company row (revenue, email_verified, created_at are read)
        verification: Registry verification record, if any
        investment_count: Number of investment records for the company
        now: Reference time for the age check (defaults to utcnow)

    Returns:
        RiskAssessment with score in [0, 100], level, and itemized deductions
    """
    today = (now or datetime.utcnow()).date()
    deductions: List[Deduction] = []

    if verification is None:
        deductions.append(Deduction("CIN Verification", 35, "CIN verification not completed"))
    else:
        status = verification.status
        if (status or "").strip().lower() != "active":
            deductions.append(
                Deduction(
                    "Registration Status",
                    20,
                    "Company not active",
                    f"Current status: {status or 'Unknown'}",
                )
            )

        age = company_age_years(company, verification, today)
        if age is not None:
            if age < 1:
                deductions.append(
                    Deduction("Company Age", 15, "Company is less than 1 year old", f"Age: {round(age * 12)} months")
                )
            elif age < 3:
                deductions.append(
                    Deduction("Company Age", 10, "Company is less than 3 years old", f"Age: {round(age)} years")
                )
            elif age < 5:
                deductions.append(
                    Deduction("Company Age", 5, "Company is less than 5 years old", f"Age: {round(age)} years")
                )

        if not verification.directors:
            deductions.append(Deduction("Directors", 15, "No directors information available"))

    if investment_count <= 0:
        deductions.append(Deduction("Investment History", 20, "No previous investments"))
    elif investment_count < 3:
        deductions.append(
            Deduction(
                "Investment History",
                20 - investment_count * 7,
                "Limited investment history",
                f"{investment_count} previous investment(s)",
            )
        )

    if not company.revenue or company.revenue <= 0:
        deductions.append(Deduction("Financial Metrics", 15, "No revenue reported"))

    if not company.email_verified:
        deductions.append(Deduction("Email Verification", 15, "Business email not verified"))

    score = STARTING_SCORE - sum(d.points for d in deductions)
    score = max(0, min(100, score))
    return RiskAssessment(score=score, level=risk_level(score), deductions=deductions)


class RiskAnalysisService:
    """Computes risk assessments and appends them to the audit trail.

    Usage:
        with get_session_context() as session:
            report = RiskAnalysisService(session).generate_report(company_id)
    """

    def __init__(self, session: Session):
        self.session = session

    def assess(self, company_id: UUID, now: Optional[datetime] = None) -> RiskAssessment:
        """Score a company without persisting anything.

        Raises:
            CompanyNotFoundError: Unknown company
        """
        company = CompanyOperations.get_or_raise(self.session, company_id)
        verification = VerificationOperations.get_for_company(self.session, company_id)
        count = InvestmentOperations.count_by_company(self.session, company_id)
        return score_company(company, verification, count, now=now)

    def generate_report(self, company_id: UUID, now: Optional[datetime] = None) -> RiskAnalysisReport:
        """Score a company and persist the report.

        Raises:
            CompanyNotFoundError: Unknown company
        """
        company = CompanyOperations.get_or_raise(self.session, company_id, refresh=True)
        verification = VerificationOperations.get_for_company(self.session, company_id)
        count = InvestmentOperations.count_by_company(self.session, company_id)
        assessment = score_company(company, verification, count, now=now)

        age = company_age_years(company, verification, (now or datetime.utcnow()).date())
        factors = {
            "description": assessment.description,
            "deductions": [d.to_dict() for d in assessment.deductions],
            "verification_status": {
                "cin_verified": verification is not None,
                "email_verified": bool(company.email_verified),
                "blockchain_verified": bool(company.is_blockchain_verified),
            },
            "metrics": {
                "company_age_years": round(age, 2) if age is not None else None,
                "investor_count": company.investor_count,
                "investment_count": count,
                "total_investment": str(company.total_investment),
                "revenue": str(company.revenue) if company.revenue is not None else None,
            },
        }

        report = RiskAnalysisReport(
            company_id=company.id,
            risk_score=assessment.score,
            risk_level=assessment.level,
            factors=factors,
        )
        RiskReportOperations.create(self.session, report, commit=True)

        logger.info(f"Risk report for {company.id}: {assessment.score} ({assessment.level})")
        return report
