"""RiskAnalysisReport model - Append-only audit trail of risk scores."""

from datetime import datetime
from uuid import UUID
from sqlmodel import Field, Column
from sqlalchemy import CheckConstraint
from .base import JSONType
from .mixins import UUIDMixin


class RiskAnalysisReport(UUIDMixin, table=True):
    """Computed risk score snapshot. Never authoritative for the ledger."""

    __tablename__ = "risk_analysis_reports"

    company_id: UUID = Field(foreign_key="companies.id", nullable=False, index=True)
    risk_score: int = Field(nullable=False)
    risk_level: str = Field(nullable=False)  # LOW, MODERATE, HIGH, VERY HIGH
    factors: dict = Field(default_factory=dict, sa_column=Column(JSONType))
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("risk_score >= 0 AND risk_score <= 100", name="check_risk_score_bounds"),
    )
