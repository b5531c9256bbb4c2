"""Fixed-point encoding and mirror confirmation / read translation."""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from crowdledger.core.exceptions import (
    BlockchainReadFailed,
    BlockchainWriteFailed,
    ChainRecordNotFoundError,
    ConfirmationTimeoutError,
    ValidationError,
)
from crowdledger.services import (
    APIError,
    BlockchainMirror,
    ChainReceipt,
    MirrorConfig,
    ReceiptStatus,
    from_fixed_point,
    to_fixed_point,
)


class TestFixedPoint:
    @pytest.mark.parametrize(
        "amount,expected",
        [
            (Decimal("1"), 10 ** 18),
            (Decimal("0.1"), 10 ** 17),
            (0.1, 10 ** 17),
            ("2500.50", 2500 * 10 ** 18 + 5 * 10 ** 17),
            (Decimal("0.000000000000000001"), 1),
            (Decimal("123456789012.123456789012345678"), 123456789012123456789012345678),
        ],
    )
    def test_exact_conversion(self, amount, expected):
        assert to_fixed_point(amount) == expected

    def test_rejects_excess_precision(self):
        with pytest.raises(ValidationError):
            to_fixed_point(Decimal("0.0000000000000000001"))

    @pytest.mark.parametrize("amount", [Decimal("-1"), "abc", True, Decimal("Infinity")])
    def test_rejects_invalid(self, amount):
        with pytest.raises(ValidationError):
            to_fixed_point(amount)

    def test_signed(self):
        assert to_fixed_point(Decimal("-1.5"), signed=True) == -15 * 10 ** 17

    def test_from_fixed_point(self):
        assert from_fixed_point(10 ** 24) == Decimal("1000000")
        assert from_fixed_point(str(15 * 10 ** 17)) == Decimal("1.5")
        assert from_fixed_point("1") == Decimal("0.000000000000000001")

    @given(st.decimals(min_value=0, max_value=Decimal("1e15"), places=18, allow_nan=False, allow_infinity=False))
    def test_no_rounding(self, amount):
        assert from_fixed_point(to_fixed_point(amount)) == amount


class TestReceipts:
    def test_mint_receipt_carries_token(self):
        receipt = ChainReceipt.from_contract(
            "0xabc",
            {
                "status": 1,
                "blockNumber": 42,
                "gasUsed": "84512",
                "events": [{"event": "CompanyCreated", "args": {"tokenId": 7}}],
            },
        )
        assert receipt.succeeded
        assert receipt.token_id == "7"
        assert receipt.block_number == 42
        assert receipt.gas_used == 84512

    def test_reverted_receipt(self):
        receipt = ChainReceipt.from_contract("0xabc", {"status": 0})
        assert receipt.status == ReceiptStatus.REVERTED
        assert not receipt.succeeded

    def test_wait_returns_confirmed_receipt(self, mirror, chain):
        submission = mirror.invest("1", Decimal("10"))
        receipt = mirror.wait_for_receipt(submission.tx_hash)
        assert receipt.succeeded
        assert receipt.tx_hash == submission.tx_hash

    def test_wait_times_out_with_hash(self, mirror, chain):
        chain.auto_confirm = False
        submission = mirror.invest("1", Decimal("10"))

        with pytest.raises(ConfirmationTimeoutError) as exc_info:
            mirror.wait_for_receipt(submission.tx_hash)
        assert exc_info.value.tx_hash == submission.tx_hash

    def test_wait_retries_until_mined(self, chain):
        chain.auto_confirm = False
        mirror = BlockchainMirror(chain, MirrorConfig(confirmation_timeout_seconds=5, poll_interval_seconds=0))
        submission = mirror.invest("1", Decimal("10"))

        polls = []
        original = chain.get_receipt

        def mined_on_third_poll(tx_hash):
            polls.append(tx_hash)
            if len(polls) == 1:
                raise APIError("gateway hiccup", status_code=502)
            if len(polls) == 3:
                chain.confirm(tx_hash)
            return original(tx_hash)

        chain.get_receipt = mined_on_third_poll
        receipt = mirror.wait_for_receipt(submission.tx_hash)

        assert receipt.succeeded
        assert len(polls) == 3


class TestWritesAndReads:
    def test_negative_milestone_impact_cannot_be_encoded(self, mirror, chain):
        with pytest.raises(BlockchainWriteFailed):
            mirror.complete_milestone("1", "restructuring", "Closed a division", Decimal("-10"))
        assert chain.sent == []

    def test_rejected_submission(self, mirror, chain):
        chain.fail_send = APIError("insufficient funds", status_code=400)
        with pytest.raises(BlockchainWriteFailed):
            mirror.invest("1", Decimal("10"))

    def test_get_company_snapshot(self, mirror, chain):
        token_id = chain.register_token(name="Acme Robotics", valuation=10 ** 24)
        snapshot = mirror.get_company(token_id)
        assert snapshot.token_id == token_id
        assert snapshot.name == "Acme Robotics"
        assert snapshot.valuation == Decimal("1000000")
        assert snapshot.is_active is True

    def test_unknown_token(self, mirror):
        with pytest.raises(ChainRecordNotFoundError):
            mirror.get_company("404")

    def test_read_failure(self, mirror, chain):
        chain.fail_reads = True
        with pytest.raises(BlockchainReadFailed):
            mirror.get_company("1")
        with pytest.raises(BlockchainReadFailed):
            mirror.get_receipt("0xabc")

    def test_from_settings_disabled_without_gateway(self):
        class Unconfigured:
            CHAIN_GATEWAY_URL = None
            CHAIN_CONTRACT_ADDRESS = None

        assert BlockchainMirror.from_settings(Unconfigured()) is None
