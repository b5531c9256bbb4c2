"""Typed exceptions for the investment ledger.

Hierarchy:

    CrowdLedgerError
    +-- ValidationError            bad input, rejected before any write
    +-- NotFoundError
    |   +-- CompanyNotFoundError
    |   +-- InvestmentNotFoundError
    |   +-- MilestoneNotFoundError
    |   +-- ChainRecordNotFoundError
    +-- ConflictError
    |   +-- SelfInvestmentForbiddenError
    |   +-- CompanyInactiveError
    |   +-- MilestoneAccessDeniedError
    +-- PersistenceError           ledger write failed, nothing committed
    +-- BlockchainError
        +-- BlockchainWriteFailed  (alias: ContractCallFailed)
        +-- BlockchainReadFailed
        +-- ConfirmationTimeoutError
"""

from typing import Optional
from uuid import UUID


class CrowdLedgerError(Exception):
    """Base exception for all ledger errors."""

    code: str = "LEDGER_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CrowdLedgerError):
    """Raised for invalid arguments (non-positive amounts, bad precision)."""

    code = "VALIDATION_ERROR"


InvalidArgument = ValidationError


class NotFoundError(CrowdLedgerError):
    code = "NOT_FOUND"


class CompanyNotFoundError(NotFoundError):
    code = "COMPANY_NOT_FOUND"

    def __init__(self, company_id: UUID):
        super().__init__(f"Company {company_id} not found")
        self.company_id = company_id


class InvestmentNotFoundError(NotFoundError):
    code = "INVESTMENT_NOT_FOUND"

    def __init__(self, investment_id: UUID):
        super().__init__(f"Investment {investment_id} not found")
        self.investment_id = investment_id


class MilestoneNotFoundError(NotFoundError):
    code = "MILESTONE_NOT_FOUND"

    def __init__(self, milestone_id: UUID):
        super().__init__(f"Milestone {milestone_id} not found")
        self.milestone_id = milestone_id


class ChainRecordNotFoundError(NotFoundError):
    """The contract has no record for the requested token."""

    code = "CHAIN_RECORD_NOT_FOUND"

    def __init__(self, token_id: str):
        super().__init__(f"Token {token_id} not found on chain")
        self.token_id = token_id


class ConflictError(CrowdLedgerError):
    code = "CONFLICT"


class SelfInvestmentForbiddenError(ConflictError):
    code = "SELF_INVESTMENT_FORBIDDEN"

    def __init__(self, company_id: UUID):
        super().__init__(f"Owner cannot invest in their own company {company_id}")
        self.company_id = company_id


class CompanyInactiveError(ConflictError):
    code = "COMPANY_INACTIVE"

    def __init__(self, company_id: UUID):
        super().__init__(f"Company {company_id} is not accepting investments")
        self.company_id = company_id


class MilestoneAccessDeniedError(ConflictError):
    code = "MILESTONE_ACCESS_DENIED"

    def __init__(self, company_id: UUID):
        super().__init__(f"Only the owner of company {company_id} may manage its milestones")
        self.company_id = company_id


class PersistenceError(CrowdLedgerError):
    """Ledger write failed. The transaction was rolled back."""

    code = "PERSISTENCE_ERROR"


class BlockchainError(CrowdLedgerError):
    code = "BLOCKCHAIN_ERROR"

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class BlockchainWriteFailed(BlockchainError):
    """Contract write reverted, was rejected, or could not be submitted."""

    code = "BLOCKCHAIN_WRITE_FAILED"


ContractCallFailed = BlockchainWriteFailed


class BlockchainReadFailed(BlockchainError):
    code = "BLOCKCHAIN_READ_FAILED"


class ConfirmationTimeoutError(BlockchainError):
    """Receipt did not arrive in time. The transaction hash is retained."""

    code = "CONFIRMATION_TIMEOUT"

    def __init__(self, tx_hash: str, timeout_seconds: float):
        super().__init__(
            f"Transaction {tx_hash} not confirmed within {timeout_seconds}s",
            tx_hash=tx_hash,
        )
        self.timeout_seconds = timeout_seconds
