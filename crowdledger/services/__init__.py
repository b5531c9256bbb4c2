"""Ledger services - Single-responsibility integrations.

- http_client: Base HTTP client with retries/rate-limiting
- chain_client: Contract gateway client (ChainClient protocol)
- fixed_point: Exact 18-decimal conversion for contract amounts
- blockchain_mirror: Ledger-level contract writes, receipts, and reads
- events: Fire-and-forget ledger event bus
"""

from .http_client import (
    HTTPClient,
    HTTPClientError,
    RateLimitError,
    APIError,
    TransportError,
)
from .chain_client import (
    ChainClient,
    ContractGatewayClient,
)
from .fixed_point import (
    DECIMALS,
    to_fixed_point,
    from_fixed_point,
)
from .blockchain_mirror import (
    BlockchainMirror,
    MirrorConfig,
    ChainSubmission,
    ChainReceipt,
    ReceiptStatus,
    CompanySnapshot,
    ChainInvestment,
    ChainMilestone,
)
from .events import (
    EventBus,
    LedgerEvent,
    INVESTMENT_CREATED,
    COMPANY_UPDATED,
    MILESTONE_VERIFIED,
)

__all__ = [
    # HTTP client
    "HTTPClient",
    "HTTPClientError",
    "RateLimitError",
    "APIError",
    "TransportError",
    # Chain client
    "ChainClient",
    "ContractGatewayClient",
    # Fixed point
    "DECIMALS",
    "to_fixed_point",
    "from_fixed_point",
    # Mirror
    "BlockchainMirror",
    "MirrorConfig",
    "ChainSubmission",
    "ChainReceipt",
    "ReceiptStatus",
    "CompanySnapshot",
    "ChainInvestment",
    "ChainMilestone",
    # Events
    "EventBus",
    "LedgerEvent",
    "INVESTMENT_CREATED",
    "COMPANY_UPDATED",
    "MILESTONE_VERIFIED",
]
