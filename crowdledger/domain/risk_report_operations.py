"""Domain operations for RiskAnalysisReport model - Append-only audit trail."""

from typing import Optional, List
from uuid import UUID
from sqlmodel import Session, select
from crowdledger.models import RiskAnalysisReport


class RiskReportOperations:
    """Insert and read risk reports. Reports are never updated."""

    @staticmethod
    def create(session: Session, report: RiskAnalysisReport, commit: bool = True) -> RiskAnalysisReport:
        session.add(report)

        if commit:
            session.commit()
            session.refresh(report)

        return report

    @staticmethod
    def get_latest(session: Session, company_id: UUID) -> Optional[RiskAnalysisReport]:
        stmt = (
            select(RiskAnalysisReport)
            .where(RiskAnalysisReport.company_id == company_id)
            .order_by(RiskAnalysisReport.created_at.desc())
            .limit(1)
        )
        return session.exec(stmt).first()

    @staticmethod
    def get_history(session: Session, company_id: UUID, limit: int = 20) -> List[RiskAnalysisReport]:
        """Get the most recent reports for a company, newest first."""
        stmt = (
            select(RiskAnalysisReport)
            .where(RiskAnalysisReport.company_id == company_id)
            .order_by(RiskAnalysisReport.created_at.desc())
            .limit(limit)
        )
        return list(session.exec(stmt).all())
