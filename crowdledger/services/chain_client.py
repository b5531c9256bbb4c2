"""Chain Client - Contract calls through a signing gateway.

The gateway is an HTTP relay in front of the RPC node that holds the signing
keys, encodes calls against the contract ABI, and returns raw contract
values (uint256 as decimal strings). This module only moves JSON; all
ledger-level translation happens in BlockchainMirror.

Gateway endpoints:
- POST /contracts/{address}/transactions  {"method", "args", "value", "signer"} -> {"txHash"}
- POST /contracts/{address}/call          {"method", "args"} -> {"result"}
- GET  /transactions/{tx_hash}/receipt    -> {"receipt": {...} | null}
"""

import logging
from typing import Any, Optional, Protocol

from .http_client import HTTPClient, APIError

logger = logging.getLogger(__name__)


class ChainClient(Protocol):
    """Call surface the BlockchainMirror depends on."""

    def send_transaction(self, method: str, args: list[Any], value: int = 0) -> str:
        ...

    def call(self, method: str, args: list[Any]) -> Any:
        ...

    def get_receipt(self, tx_hash: str) -> Optional[dict[str, Any]]:
        ...


class ContractGatewayClient(HTTPClient):
    """Chain client backed by the contract gateway.

    Example:
        from crowdledger.core.config import settings

        client = ContractGatewayClient(
            base_url=settings.CHAIN_GATEWAY_URL,
            contract_address=settings.CHAIN_CONTRACT_ADDRESS,
            api_key=settings.CHAIN_API_KEY,
            signer_key_id=settings.CHAIN_SIGNER_KEY_ID,
        )
        tx_hash = client.send_transaction("investInCompany", [7], value=10**18)
    """

    def __init__(
        self,
        base_url: str,
        contract_address: str,
        api_key: Optional[str] = None,
        signer_key_id: Optional[str] = None,
        rate_limit_rps: float = 2.0,
        timeout_seconds: int = 30,
    ):
        """Initialize gateway client.

        Args:
            base_url: Gateway base URL
            contract_address: Deployed registry contract address
            api_key: Gateway API key
            signer_key_id: Gateway-held key used to sign writes
            rate_limit_rps: Max requests per second (default: 2.0)
            timeout_seconds: Request timeout in seconds (default: 30)
        """
        super().__init__(
            base_url=base_url,
            api_key=api_key,
            api_key_header="X-API-Key",
            rate_limit_rps=rate_limit_rps,
            timeout_seconds=timeout_seconds,
        )
        self.contract_address = contract_address
        self.signer_key_id = signer_key_id

    def send_transaction(self, method: str, args: list[Any], value: int = 0) -> str:
        """Submit a state-changing contract call.

        Returns as soon as the gateway has broadcast the transaction; it does
        not wait for a receipt.

        Args:
            method: Contract function name
            args: Positional ABI arguments (uint256 values as int)
            value: Attached value in 1e-18 units

        Returns:
            Transaction hash

        Raises:
            HTTPClientError: On transport or gateway failure
        """
        if not self.signer_key_id:
            raise APIError("No signer configured for contract writes")

        payload = {
            "method": method,
            "args": [str(a) if isinstance(a, int) and not isinstance(a, bool) else a for a in args],
            "value": str(value),
            "signer": self.signer_key_id,
        }
        data = self.post(f"/contracts/{self.contract_address}/transactions", payload)

        tx_hash = data.get("txHash")
        if not tx_hash:
            raise APIError(f"Gateway response missing txHash: {data}")

        logger.info(f"Submitted {method} transaction {tx_hash}")
        return tx_hash

    def call(self, method: str, args: list[Any]) -> Any:
        """Run a read-only contract call and return its decoded result."""
        payload = {
            "method": method,
            "args": [str(a) if isinstance(a, int) and not isinstance(a, bool) else a for a in args],
        }
        data = self.post(f"/contracts/{self.contract_address}/call", payload)
        return data.get("result")

    def get_receipt(self, tx_hash: str) -> Optional[dict[str, Any]]:
        """Fetch a transaction receipt, or None while the transaction is pending."""
        data = self.get(f"/transactions/{tx_hash}/receipt")
        return data.get("receipt")
