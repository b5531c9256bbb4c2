"""Blockchain Mirror - Ledger-level view of the company registry contract.

Translates ledger operations (mint, invest, complete milestone) into
contract writes, and contract reads back into ledger-shaped values.

Writes follow a submit-then-confirm pattern:
1. ``mint_company`` / ``invest`` / ``complete_milestone`` submit and return
   the transaction hash immediately
2. the caller records the hash durably
3. ``wait_for_receipt`` polls for the receipt under a bounded timeout

A write is never reported as successful without a receipt with status 1.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union

from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_delay,
    wait_fixed,
)

from crowdledger.core.exceptions import (
    BlockchainReadFailed,
    BlockchainWriteFailed,
    ChainRecordNotFoundError,
    ConfirmationTimeoutError,
    ValidationError,
)
from .chain_client import ChainClient, ContractGatewayClient
from .fixed_point import from_fixed_point, to_fixed_point
from .http_client import APIError, HTTPClientError

logger = logging.getLogger(__name__)

TokenId = Union[str, int]


class ReceiptStatus(str, Enum):
    CONFIRMED = "confirmed"
    REVERTED = "reverted"


@dataclass
class ChainSubmission:
    """A transaction accepted by the gateway, not yet confirmed."""

    tx_hash: str
    method: str


@dataclass
class ChainReceipt:
    """Mined transaction receipt."""

    tx_hash: str
    status: ReceiptStatus
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    token_id: Optional[str] = None  # set for mints (CompanyCreated event)

    @property
    def succeeded(self) -> bool:
        return self.status == ReceiptStatus.CONFIRMED

    @classmethod
    def from_contract(cls, tx_hash: str, data: dict[str, Any]) -> "ChainReceipt":
        """Create ChainReceipt from a gateway receipt.

        Receipt format:
        {
            "status": 1,
            "blockNumber": 1234567,
            "gasUsed": "84512",
            "events": [{"event": "CompanyCreated", "args": {"tokenId": "7"}}]
        }
        """
        token_id = None
        for event in data.get("events") or []:
            if event.get("event") == "CompanyCreated":
                raw = (event.get("args") or {}).get("tokenId")
                token_id = str(raw) if raw is not None else None
                break

        return cls(
            tx_hash=tx_hash,
            status=ReceiptStatus.CONFIRMED if int(data.get("status", 0)) == 1 else ReceiptStatus.REVERTED,
            block_number=int(data["blockNumber"]) if data.get("blockNumber") is not None else None,
            gas_used=int(data["gasUsed"]) if data.get("gasUsed") is not None else None,
            token_id=token_id,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "status": self.status.value,
            "block_number": self.block_number,
            "gas_used": self.gas_used,
            "token_id": self.token_id,
        }


@dataclass
class CompanySnapshot:
    """On-chain company record."""

    token_id: str
    name: str
    description: str
    industry: str
    valuation: Decimal
    total_investment: Decimal
    milestone_count: int
    owner: str
    created_at: datetime
    is_active: bool

    @classmethod
    def from_contract(cls, data: dict[str, Any]) -> "CompanySnapshot":
        return cls(
            token_id=str(data["tokenId"]),
            name=data.get("name", ""),
            description=data.get("description", ""),
            industry=data.get("industry", ""),
            valuation=from_fixed_point(data["valuation"]),
            total_investment=from_fixed_point(data.get("totalInvestment", 0)),
            milestone_count=int(data.get("milestoneCount", 0)),
            owner=data.get("owner", ""),
            created_at=datetime.utcfromtimestamp(int(data.get("createdAt", 0))),
            is_active=bool(data.get("isActive", False)),
        )


@dataclass
class ChainInvestment:
    """On-chain investment entry."""

    company_token_id: str
    investor: str
    amount: Decimal
    timestamp: datetime
    ownership_percentage: Decimal

    @classmethod
    def from_contract(cls, data: dict[str, Any]) -> "ChainInvestment":
        return cls(
            company_token_id=str(data["companyTokenId"]),
            investor=data["investor"],
            amount=from_fixed_point(data["amount"]),
            timestamp=datetime.utcfromtimestamp(int(data.get("timestamp", 0))),
            ownership_percentage=Decimal(str(data.get("ownershipPercentage", 0))),
        )


@dataclass
class ChainMilestone:
    """On-chain milestone entry."""

    company_token_id: str
    milestone_type: str
    description: str
    timestamp: datetime
    verified: bool
    valuation_impact: Decimal

    @classmethod
    def from_contract(cls, data: dict[str, Any]) -> "ChainMilestone":
        return cls(
            company_token_id=str(data["companyTokenId"]),
            milestone_type=data.get("milestoneType", ""),
            description=data.get("description", ""),
            timestamp=datetime.utcfromtimestamp(int(data.get("timestamp", 0))),
            verified=bool(data.get("verified", False)),
            valuation_impact=from_fixed_point(data.get("valuationImpact", 0)),
        )


@dataclass
class MirrorConfig:
    """Confirmation wait settings."""

    confirmation_timeout_seconds: float = 60.0
    poll_interval_seconds: float = 2.0


class BlockchainMirror:
    """Ledger-level wrapper around an injected chain client.

    Example:
        client = ContractGatewayClient(base_url=..., contract_address=...)
        mirror = BlockchainMirror(client, MirrorConfig(confirmation_timeout_seconds=30))

        submission = mirror.invest("7", Decimal("2500"))
        # persist submission.tx_hash here
        receipt = mirror.wait_for_receipt(submission.tx_hash)
    """

    def __init__(self, client: ChainClient, config: Optional[MirrorConfig] = None):
        self.client = client
        self.config = config or MirrorConfig()

    @classmethod
    def from_settings(cls, settings) -> Optional["BlockchainMirror"]:
        """Build a mirror from application settings.

        Returns:
            Configured mirror, or None when no gateway/contract is configured
        """
        if not settings.CHAIN_GATEWAY_URL or not settings.CHAIN_CONTRACT_ADDRESS:
            logger.info("Blockchain mirror disabled (no gateway or contract configured)")
            return None

        client = ContractGatewayClient(
            base_url=settings.CHAIN_GATEWAY_URL,
            contract_address=settings.CHAIN_CONTRACT_ADDRESS,
            api_key=settings.CHAIN_API_KEY,
            signer_key_id=settings.CHAIN_SIGNER_KEY_ID,
            rate_limit_rps=settings.CHAIN_RATE_LIMIT_RPS,
            timeout_seconds=settings.CHAIN_TIMEOUT_SECONDS,
        )
        return cls(
            client,
            MirrorConfig(
                confirmation_timeout_seconds=settings.CHAIN_CONFIRMATION_TIMEOUT_SECONDS,
                poll_interval_seconds=settings.CHAIN_POLL_INTERVAL_SECONDS,
            ),
        )

    def close(self) -> None:
        close = getattr(self.client, "close", None)
        if close is not None:
            close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _submit(self, method: str, args: list[Any], value: int = 0) -> ChainSubmission:
        try:
            tx_hash = self.client.send_transaction(method, args, value=value)
        except HTTPClientError as e:
            logger.error(f"Contract write {method} failed: {e}")
            raise BlockchainWriteFailed(f"{method} failed: {e}")
        return ChainSubmission(tx_hash=tx_hash, method=method)

    def mint_company(
        self,
        name: str,
        description: str,
        industry: str,
        valuation: Decimal,
        token_uri: str,
    ) -> ChainSubmission:
        """Submit a company token mint.

        The token id is only known once the receipt arrives
        (``ChainReceipt.token_id``).

        Raises:
            BlockchainWriteFailed: If the valuation cannot be encoded or the
                gateway rejects the call
        """
        try:
            fixed_valuation = to_fixed_point(valuation)
        except ValidationError as e:
            raise BlockchainWriteFailed(f"mintCompany failed: {e}")
        return self._submit(
            "mintCompany",
            [name, description or "", industry or "", fixed_valuation, token_uri],
        )

    def invest(self, token_id: TokenId, amount: Decimal) -> ChainSubmission:
        """Submit a payable investment into the company token.

        Raises:
            BlockchainWriteFailed: If the amount cannot be encoded or the
                gateway rejects the call
        """
        try:
            value = to_fixed_point(amount)
        except ValidationError as e:
            raise BlockchainWriteFailed(f"investInCompany failed: {e}")
        return self._submit("investInCompany", [int(token_id)], value=value)

    def complete_milestone(
        self,
        token_id: TokenId,
        milestone_type: str,
        description: str,
        valuation_impact: Decimal,
    ) -> ChainSubmission:
        """Submit a milestone completion.

        Raises:
            BlockchainWriteFailed: If the impact is negative (unsigned on
                chain), cannot be encoded, or the gateway rejects the call
        """
        try:
            fixed_impact = to_fixed_point(valuation_impact)
        except ValidationError as e:
            raise BlockchainWriteFailed(f"completeMilestone failed: {e}")
        return self._submit(
            "completeMilestone",
            [int(token_id), milestone_type, description, fixed_impact],
        )

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    def get_receipt(self, tx_hash: str) -> Optional[ChainReceipt]:
        """Fetch the receipt for a transaction.

        Returns:
            ChainReceipt once mined, None while pending

        Raises:
            BlockchainReadFailed: If the gateway cannot be queried
        """
        try:
            data = self.client.get_receipt(tx_hash)
        except HTTPClientError as e:
            raise BlockchainReadFailed(f"Receipt lookup for {tx_hash} failed: {e}", tx_hash=tx_hash)
        if data is None:
            return None
        return ChainReceipt.from_contract(tx_hash, data)

    def wait_for_receipt(self, tx_hash: str, timeout_seconds: Optional[float] = None) -> ChainReceipt:
        """Poll for a receipt until it arrives or the timeout elapses.

        Transient read failures are retried within the same bound.

        Args:
            tx_hash: Submitted transaction hash
            timeout_seconds: Override of the configured bound

        Returns:
            ChainReceipt (check ``succeeded``; reverted receipts are returned)

        Raises:
            ConfirmationTimeoutError: If no receipt arrived in time
        """
        timeout = self.config.confirmation_timeout_seconds if timeout_seconds is None else timeout_seconds

        retryer = Retrying(
            stop=stop_after_delay(timeout),
            wait=wait_fixed(self.config.poll_interval_seconds),
            retry=retry_if_result(lambda receipt: receipt is None)
            | retry_if_exception_type(BlockchainReadFailed),
            reraise=False,
        )
        try:
            receipt = retryer(self.get_receipt, tx_hash)
        except RetryError:
            logger.warning(f"Transaction {tx_hash} not confirmed within {timeout}s")
            raise ConfirmationTimeoutError(tx_hash, timeout)

        logger.info(
            f"Transaction {tx_hash} {receipt.status.value} "
            f"(block={receipt.block_number}, gas={receipt.gas_used})"
        )
        return receipt

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _call(self, method: str, args: list[Any], token_id: Optional[TokenId] = None) -> Any:
        try:
            return self.client.call(method, args)
        except APIError as e:
            if token_id is not None and e.status_code == 404:
                raise ChainRecordNotFoundError(str(token_id))
            raise BlockchainReadFailed(f"{method} failed: {e}")
        except HTTPClientError as e:
            raise BlockchainReadFailed(f"{method} failed: {e}")

    def get_company(self, token_id: TokenId) -> CompanySnapshot:
        """Read the on-chain company record.

        Raises:
            ChainRecordNotFoundError: If the token does not exist
            BlockchainReadFailed: On network or gateway failure
        """
        data = self._call("getCompany", [int(token_id)], token_id=token_id)
        if not data or str(data.get("tokenId", "0")) == "0":
            raise ChainRecordNotFoundError(str(token_id))
        return CompanySnapshot.from_contract(data)

    def get_company_investments(self, token_id: TokenId) -> list[ChainInvestment]:
        data = self._call("getCompanyInvestments", [int(token_id)], token_id=token_id)
        return [ChainInvestment.from_contract(item) for item in data or []]

    def get_user_investments(self, investor_address: str) -> list[str]:
        """Token ids the address has invested in."""
        data = self._call("getUserInvestments", [investor_address])
        return [str(token_id) for token_id in data or []]

    def get_company_milestones(self, token_id: TokenId) -> list[ChainMilestone]:
        data = self._call("getCompanyMilestones", [int(token_id)], token_id=token_id)
        return [ChainMilestone.from_contract(item) for item in data or []]
