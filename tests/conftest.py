"""
Pytest fixtures for the ledger test suite.

Provides:
- A file-backed SQLite database per test (tables created from the models)
- Session and session-factory fixtures
- Company / verification factories
- A scripted in-memory chain client standing in for the contract gateway
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID, uuid4

import pytest

from crowdledger.db import build_engine, build_session_factory, create_tables
from crowdledger.domain import CompanyOperations, ValuationLedger, VerificationOperations
from crowdledger.models import Company, CompanyVerification
from crowdledger.services import APIError, BlockchainMirror, EventBus, MirrorConfig


@pytest.fixture(autouse=True)
def _quiet_logging(caplog):
    caplog.set_level(logging.INFO, logger="crowdledger")
    yield


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# Data factories
# =============================================================================


@pytest.fixture
def owner_id() -> UUID:
    return uuid4()


@pytest.fixture
def make_company(session, owner_id):
    """Factory for committed companies. Defaults: 1,000,000 valuation, active, unlinked."""

    def _make(
        valuation: Decimal = Decimal("1000000"),
        owner: Optional[UUID] = None,
        **fields: Any,
    ) -> Company:
        company = Company(
            owner_id=owner or owner_id,
            name=fields.pop("name", "Acme Robotics"),
            industry=fields.pop("industry", "Manufacturing"),
            description=fields.pop("description", "Industrial robots"),
            valuation=Decimal(valuation),
            **fields,
        )
        return CompanyOperations.create(session, company, commit=True)

    return _make


@pytest.fixture
def company(make_company) -> Company:
    return make_company()


@pytest.fixture
def make_verification(session):
    def _make(company_id: UUID, **fields: Any) -> CompanyVerification:
        verification = CompanyVerification(
            company_id=company_id,
            cin=fields.pop("cin", "U72900KA2019PTC123456"),
            status=fields.pop("status", "Active"),
            incorporation_date=fields.pop("incorporation_date", date(2015, 4, 1)),
            directors=fields.pop("directors", [{"name": "A. Sharma", "din": "01234567"}]),
            **fields,
        )
        return VerificationOperations.upsert(session, verification, commit=True)

    return _make


# =============================================================================
# Chain fixtures
# =============================================================================


class FakeChainClient:
    """In-memory stand-in for the contract gateway.

    Knobs:
        fail_send: exception raised by send_transaction
        fail_reads: make call/get_receipt fail like an unreachable gateway
        auto_confirm: mine every submission immediately
        revert: mined submissions carry status 0
    """

    def __init__(self):
        self.sent: list[tuple[str, list[Any], int]] = []
        self.receipts: dict[str, Optional[dict[str, Any]]] = {}
        self.companies: dict[str, dict[str, Any]] = {}
        self.fail_send: Optional[Exception] = None
        self.fail_reads = False
        self.auto_confirm = True
        self.revert = False
        self.closed = False
        self._next_token = 1
        self._nonce = 0
        self._mint_args: dict[str, list[Any]] = {}

    # Gateway surface

    def send_transaction(self, method: str, args: list[Any], value: int = 0) -> str:
        if self.fail_send is not None:
            raise self.fail_send
        self._nonce += 1
        tx_hash = f"0x{self._nonce:064x}"
        self.sent.append((method, list(args), value))
        if method == "mintCompany":
            self._mint_args[tx_hash] = list(args)
        if self.auto_confirm:
            self.confirm(tx_hash, status=0 if self.revert else 1)
        else:
            self.receipts[tx_hash] = None
        return tx_hash

    def call(self, method: str, args: list[Any]) -> Any:
        if self.fail_reads:
            raise APIError("gateway unavailable", status_code=503)
        if method == "getCompany":
            token_id = str(args[0])
            if token_id not in self.companies:
                raise APIError("token not found", status_code=404)
            return self.companies[token_id]
        if method in ("getCompanyInvestments", "getCompanyMilestones"):
            return []
        if method == "getUserInvestments":
            return []
        raise APIError(f"unknown method {method}", status_code=400)

    def get_receipt(self, tx_hash: str) -> Optional[dict[str, Any]]:
        if self.fail_reads:
            raise APIError("gateway unavailable", status_code=503)
        return self.receipts.get(tx_hash)

    def close(self) -> None:
        self.closed = True

    # Test controls

    def confirm(self, tx_hash: str, status: int = 1) -> None:
        """Mine a pending submission."""
        receipt = {"status": status, "blockNumber": 1000 + self._nonce, "gasUsed": "84512", "events": []}
        args = self._mint_args.get(tx_hash)
        if args is not None and status == 1:
            token_id = self.register_token(name=args[0], valuation=args[3])
            receipt["events"].append({"event": "CompanyCreated", "args": {"tokenId": token_id}})
        self.receipts[tx_hash] = receipt

    def register_token(self, name: str = "Acme Robotics", valuation: int = 10 ** 24) -> str:
        token_id = str(self._next_token)
        self._next_token += 1
        self.companies[token_id] = {
            "tokenId": token_id,
            "name": name,
            "description": "",
            "industry": "",
            "valuation": str(valuation),
            "totalInvestment": "0",
            "milestoneCount": "0",
            "owner": "0x0000000000000000000000000000000000000001",
            "createdAt": "1700000000",
            "isActive": True,
        }
        return token_id

    def methods(self) -> list[str]:
        return [method for method, _, _ in self.sent]


@pytest.fixture
def chain() -> FakeChainClient:
    return FakeChainClient()


@pytest.fixture
def mirror(chain) -> BlockchainMirror:
    # Zero bounds: one receipt poll, no sleeping.
    return BlockchainMirror(chain, MirrorConfig(confirmation_timeout_seconds=0, poll_interval_seconds=0))


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def recorded_events(events):
    """Every published event, in order."""
    seen = []
    for name in ("investment.created", "company.updated", "milestone.verified"):
        events.subscribe(name, seen.append)
    return seen


@pytest.fixture
def linked_company(make_company, chain, session):
    """Active company linked to an existing on-chain token, not yet verified."""
    company = make_company()
    token_id = chain.register_token(name=company.name)
    ValuationLedger.set_blockchain_link(session, company.id, token_id, "0xmint")
    session.commit()
    return CompanyOperations.get_or_raise(session, company.id, refresh=True)
