"""Domain operations for Company model - Shared CRUD operations."""

from typing import Optional, List
from uuid import UUID
from sqlmodel import Session, select
from crowdledger.core.exceptions import CompanyNotFoundError
from crowdledger.models import Company


class CompanyOperations:
    """Core CRUD operations for Company model.

    Aggregate columns are not written here - see ValuationLedger.
    """

    @staticmethod
    def get_by_id(session: Session, company_id: UUID) -> Optional[Company]:
        """Get company by UUID.

        Args:
            session: Database session
            company_id: Company UUID

        Returns:
            Company if found, None otherwise
        """
        return session.get(Company, company_id)

    @staticmethod
    def get_or_raise(session: Session, company_id: UUID, refresh: bool = False) -> Company:
        """Get company by UUID or raise.

        Args:
            session: Database session
            company_id: Company UUID
            refresh: Reload the row even if it is already in the session

        Raises:
            CompanyNotFoundError: If no such company exists
        """
        company = session.get(Company, company_id, populate_existing=refresh)
        if company is None:
            raise CompanyNotFoundError(company_id)
        return company

    @staticmethod
    def get_by_owner(session: Session, owner_id: UUID) -> List[Company]:
        stmt = select(Company).where(Company.owner_id == owner_id).order_by(Company.created_at.desc())
        return list(session.exec(stmt).all())

    @staticmethod
    def get_by_token_id(session: Session, token_id: str) -> Optional[Company]:
        stmt = select(Company).where(Company.blockchain_token_id == str(token_id))
        return session.exec(stmt).first()

    @staticmethod
    def get_active(session: Session, industry: Optional[str] = None, limit: Optional[int] = None) -> List[Company]:
        """Get companies accepting investments.

        Args:
            session: Database session
            industry: Optional industry filter
            limit: Optional limit on number of results

        Returns:
            List of active companies
        """
        stmt = select(Company).where(Company.is_active == True)  # noqa: E712

        if industry:
            stmt = stmt.where(Company.industry == industry)

        if limit:
            stmt = stmt.limit(limit)

        return list(session.exec(stmt).all())

    @staticmethod
    def get_linked_unverified(session: Session) -> List[Company]:
        """Companies that have a token linked but not yet verified against the chain."""
        stmt = select(Company).where(
            Company.blockchain_token_id.isnot(None),
            Company.is_blockchain_verified == False,  # noqa: E712
        )
        return list(session.exec(stmt).all())

    @staticmethod
    def create(session: Session, company: Company, commit: bool = True) -> Company:
        """Create a new company.

        Args:
            session: Database session
            company: Company model to create
            commit: If True, commit immediately. If False, caller must commit.

        Returns:
            Created company with populated ID
        """
        session.add(company)

        if commit:
            session.commit()
            session.refresh(company)
        else:
            session.flush()

        return company

    @staticmethod
    def set_active(session: Session, company_id: UUID, active: bool, commit: bool = True) -> bool:
        """Open or close a company for new investments.

        Returns:
            True if company was found and updated, False if not found
        """
        company = session.get(Company, company_id)

        if not company:
            return False

        company.is_active = active

        if commit:
            session.commit()

        return True
