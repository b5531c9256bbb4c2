"""Company Registration - Opens a company on the ledger with zeroed aggregates."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlmodel import Session
from sqlalchemy.exc import SQLAlchemyError

from crowdledger.core.exceptions import BlockchainError, PersistenceError, ValidationError
from crowdledger.domain import CompanyOperations, require_positive
from crowdledger.models import Company
from crowdledger.services import COMPANY_UPDATED, BlockchainMirror, EventBus
from .reconciliation import ChainReconciler, ReconciliationResult

logger = logging.getLogger(__name__)


@dataclass
class RegistrationResult:
    company: Company
    link: Optional[ReconciliationResult] = None
    link_error: Optional[str] = None


class CompanyRegistration:
    """Registers companies and optionally mints their token.

    Usage:
        with get_session_context() as session:
            result = CompanyRegistration(session, mirror).register(
                owner_id, "Acme Robotics", "Industrial robots", "Manufacturing",
                Decimal("1000000"), owner_wallet="0xabc...", mint=True,
            )
    """

    def __init__(
        self,
        session: Session,
        mirror: Optional[BlockchainMirror] = None,
        events: Optional[EventBus] = None,
    ):
        self.session = session
        self.mirror = mirror
        self.events = events or EventBus()

    def register(
        self,
        owner_id: UUID,
        name: str,
        description: Optional[str],
        industry: Optional[str],
        valuation: Decimal,
        owner_wallet: Optional[str] = None,
        mint: bool = False,
        revenue: Optional[Decimal] = None,
    ) -> RegistrationResult:
        """Create a company. Minting is best effort and never undoes the registration.

        Raises:
            ValidationError: Empty name or non-positive valuation
            PersistenceError: Ledger write failed
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Company name is required")
        valuation = require_positive(valuation, "valuation")

        company = Company(
            owner_id=owner_id,
            name=name,
            description=description,
            industry=industry,
            valuation=valuation,
            revenue=revenue,
        )
        try:
            CompanyOperations.create(self.session, company, commit=True)
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to register company {name}: {e}")
            raise PersistenceError(f"Failed to register company: {e}") from e

        logger.info(f"Registered company {company.id} ({name}) at valuation {valuation}")
        self.events.publish(COMPANY_UPDATED, {"company_id": str(company.id), "token_id": None})

        result = RegistrationResult(company=company)
        if not mint:
            return result

        if self.mirror is None or not owner_wallet:
            result.link_error = "blockchain mirror not configured" if self.mirror is None else "owner has no linked wallet"
            logger.info(f"Skipping mint for {company.id}: {result.link_error}")
            return result

        try:
            result.link = ChainReconciler(self.session, self.mirror, self.events).link_company(company.id)
        except BlockchainError as e:
            result.link_error = str(e)
            logger.warning(f"Company {company.id} registered without token: {e}")

        result.company = CompanyOperations.get_or_raise(self.session, company.id, refresh=True)
        return result
