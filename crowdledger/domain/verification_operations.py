"""Domain operations for CompanyVerification model."""

from typing import Optional
from uuid import UUID
from sqlmodel import Session, select
from crowdledger.models import CompanyVerification


class VerificationOperations:
    """Registry verification records, one per company."""

    @staticmethod
    def get_for_company(session: Session, company_id: UUID) -> Optional[CompanyVerification]:
        stmt = select(CompanyVerification).where(CompanyVerification.company_id == company_id)
        return session.exec(stmt).first()

    @staticmethod
    def upsert(session: Session, verification: CompanyVerification, commit: bool = True) -> CompanyVerification:
        """Create the company's verification record or replace its fields.

        Args:
            session: Database session
            verification: Record with the lookup result
            commit: If True, commit immediately. If False, caller must commit.

        Returns:
            Created or updated record
        """
        existing = VerificationOperations.get_for_company(session, verification.company_id)

        if existing:
            update_fields = verification.model_dump(
                exclude_unset=True,
                exclude={"id", "company_id", "created_at"},
            )
            for key, value in update_fields.items():
                setattr(existing, key, value)
            target = existing
        else:
            session.add(verification)
            target = verification

        if commit:
            session.commit()
            session.refresh(target)

        return target
