"""CompanyVerification model - Registry (CIN) verification record."""

from datetime import date, datetime
from typing import Optional
from uuid import UUID
from sqlmodel import Field, Column
from .base import JSONType
from .mixins import UUIDMixin


class CompanyVerification(UUIDMixin, table=True):
    """Result of the external company-registry lookup for one company."""

    __tablename__ = "company_verifications"

    company_id: UUID = Field(foreign_key="companies.id", nullable=False, unique=True, index=True)
    cin: Optional[str] = Field(default=None, index=True)  # Corporate Identification Number
    status: Optional[str] = Field(default=None)  # Active, Strike Off, Under Liquidation, ...
    incorporation_date: Optional[date] = Field(default=None)
    directors: list = Field(default_factory=list, sa_column=Column(JSONType))
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "cin": "U72900KA2019PTC123456",
                "status": "Active",
                "incorporation_date": "2019-04-01",
                "directors": [{"name": "A. Sharma", "din": "01234567"}],
            }
        }
