"""Verification state machine, token linking and the pending-transaction sweep."""

from decimal import Decimal
from uuid import uuid4

import pytest

from crowdledger.core.exceptions import (
    BlockchainReadFailed,
    BlockchainWriteFailed,
    ConfirmationTimeoutError,
)
from crowdledger.domain import (
    ChainTransactionOperations,
    CompanyOperations,
    InvestmentOperations,
)
from crowdledger.models import ChainTxStatus, InvestmentType, VerificationState
from crowdledger.services import APIError
from crowdledger.workflows import ChainReconciler, InvestmentRecorder, RecorderConfig, token_uri_for


def _company(session, company_id):
    return CompanyOperations.get_or_raise(session, company_id, refresh=True)


class TestVerifyCompany:
    def test_linked_unverified_becomes_verified(self, session, linked_company, mirror, events, recorded_events):
        result = ChainReconciler(session, mirror, events).verify_company(linked_company.id)

        assert result.changed is True
        assert result.state == VerificationState.LINKED_VERIFIED
        assert result.snapshot.token_id == linked_company.blockchain_token_id
        assert _company(session, linked_company.id).is_blockchain_verified is True
        assert [e.name for e in recorded_events] == ["company.updated"]

    def test_already_verified_is_noop(self, session, linked_company, mirror, chain, events, recorded_events):
        reconciler = ChainReconciler(session, mirror, events)
        reconciler.verify_company(linked_company.id)
        reads_before = len(recorded_events)

        # A second request must not touch the chain at all
        chain.fail_reads = True
        result = reconciler.verify_company(linked_company.id)

        assert result.changed is False
        assert result.state == VerificationState.LINKED_VERIFIED
        assert len(recorded_events) == reads_before

    def test_read_failure_leaves_state_unchanged(self, session, linked_company, mirror, chain):
        chain.fail_reads = True

        with pytest.raises(BlockchainReadFailed):
            ChainReconciler(session, mirror).verify_company(linked_company.id)

        assert _company(session, linked_company.id).verification_state == VerificationState.LINKED_UNVERIFIED

    def test_unknown_token_stays_unverified(self, session, linked_company, mirror, chain):
        chain.companies.clear()

        result = ChainReconciler(session, mirror).verify_company(linked_company.id)

        assert result.changed is False
        assert result.state == VerificationState.LINKED_UNVERIFIED

    def test_unlinked_is_reported(self, session, company, mirror, chain):
        result = ChainReconciler(session, mirror).verify_company(company.id)
        assert result.state == VerificationState.UNLINKED
        assert chain.sent == []


class TestLinkCompany:
    def test_mint_links_and_verifies(self, session, company, mirror, chain):
        result = ChainReconciler(session, mirror).link_company(company.id)

        method, args, _ = chain.sent[-1]
        assert method == "mintCompany"
        assert args[3] == 1_000_000 * 10 ** 18
        assert args[4] == token_uri_for("Acme Robotics")

        stored = _company(session, company.id)
        assert stored.blockchain_token_id == result.token_id
        assert stored.blockchain_tx_hash is not None
        assert stored.verification_state == VerificationState.LINKED_VERIFIED

    def test_mint_confirmed_but_read_down(self, session, company, mirror, chain):
        original_call = chain.call

        def failing_call(method, args):
            raise APIError("gateway unavailable", status_code=503)

        chain.call = failing_call
        try:
            result = ChainReconciler(session, mirror).link_company(company.id)
        finally:
            chain.call = original_call

        assert result.changed is True
        assert result.state == VerificationState.LINKED_UNVERIFIED
        assert _company(session, company.id).verification_state == VerificationState.LINKED_UNVERIFIED

    def test_reverted_mint_raises(self, session, company, mirror, chain):
        chain.revert = True
        with pytest.raises(BlockchainWriteFailed):
            ChainReconciler(session, mirror).link_company(company.id)
        assert _company(session, company.id).verification_state == VerificationState.UNLINKED

    def test_pending_mint_raises_timeout(self, session, company, mirror, chain):
        chain.auto_confirm = False
        with pytest.raises(ConfirmationTimeoutError) as exc_info:
            ChainReconciler(session, mirror).link_company(company.id)

        tx = ChainTransactionOperations.get_by_hash(session, exc_info.value.tx_hash)
        assert tx.status == ChainTxStatus.TIMED_OUT.value

    def test_linked_company_is_only_verified(self, session, linked_company, mirror, chain):
        result = ChainReconciler(session, mirror).link_company(linked_company.id)
        assert "mintCompany" not in chain.methods()
        assert result.state == VerificationState.LINKED_VERIFIED


class TestSweepPending:
    def test_confirms_late_investment(self, session, linked_company, mirror, chain):
        chain.auto_confirm = False
        result = InvestmentRecorder(session, mirror=mirror).record_investment(
            linked_company.id, uuid4(), Decimal("100"), use_blockchain=True, investor_wallet="0xabc"
        )
        tx_hash = result.investment.blockchain_tx_hash
        chain.confirm(tx_hash)

        sweep = ChainReconciler(session, mirror).sweep_pending()

        assert sweep.total == 1
        assert sweep.confirmed == 1
        investment = InvestmentOperations.get_by_id(session, result.investment.id)
        session.refresh(investment)
        assert investment.is_blockchain_verified is True
        assert ChainTransactionOperations.get_by_hash(session, tx_hash).status == ChainTxStatus.CONFIRMED.value

    def test_books_mandatory_investment_confirmed_late(
        self, session, linked_company, mirror, chain, events, recorded_events
    ):
        chain.auto_confirm = False
        investor = uuid4()
        recorder = InvestmentRecorder(session, mirror=mirror, config=RecorderConfig(blockchain_mandatory=True))
        with pytest.raises(ConfirmationTimeoutError) as exc_info:
            recorder.record_investment(
                linked_company.id, investor, Decimal("100"), use_blockchain=True, investor_wallet="0xabc"
            )
        tx_hash = exc_info.value.tx_hash
        assert _company(session, linked_company.id).total_investment == Decimal("0")
        chain.confirm(tx_hash)

        sweep = ChainReconciler(session, mirror, events=events).sweep_pending()

        assert sweep.confirmed == 1
        assert sweep.booked == 1
        stored = _company(session, linked_company.id)
        assert stored.total_investment == Decimal("100")
        assert stored.investor_count == 1
        assert stored.total_investment == InvestmentOperations.sum_by_company(session, linked_company.id)

        investment = InvestmentOperations.get_by_tx_hash(session, tx_hash)
        assert investment.investor_id == investor
        assert investment.is_blockchain_verified is True
        assert investment.investment_type == InvestmentType.BLOCKCHAIN.value
        tx = ChainTransactionOperations.get_by_hash(session, tx_hash)
        assert tx.status == ChainTxStatus.CONFIRMED.value
        assert tx.subject_id == investment.id
        assert [e.name for e in recorded_events] == ["investment.created"]

        # A second sweep finds nothing left to book
        again = ChainReconciler(session, mirror).sweep_pending()
        assert again.total == 0
        assert InvestmentOperations.count_by_company(session, linked_company.id) == 1

    def test_mandatory_investment_reverted_late_books_nothing(self, session, linked_company, mirror, chain):
        chain.auto_confirm = False
        recorder = InvestmentRecorder(session, mirror=mirror, config=RecorderConfig(blockchain_mandatory=True))
        with pytest.raises(ConfirmationTimeoutError) as exc_info:
            recorder.record_investment(
                linked_company.id, uuid4(), Decimal("100"), use_blockchain=True, investor_wallet="0xabc"
            )
        chain.confirm(exc_info.value.tx_hash, status=0)

        sweep = ChainReconciler(session, mirror).sweep_pending()

        assert sweep.reverted == 1
        assert sweep.booked == 0
        assert InvestmentOperations.count_by_company(session, linked_company.id) == 0
        assert _company(session, linked_company.id).total_investment == Decimal("0")

    def test_reverted_investment_demoted(self, session, linked_company, mirror, chain):
        chain.auto_confirm = False
        result = InvestmentRecorder(session, mirror=mirror).record_investment(
            linked_company.id, uuid4(), Decimal("100"), use_blockchain=True, investor_wallet="0xabc"
        )
        chain.confirm(result.investment.blockchain_tx_hash, status=0)

        sweep = ChainReconciler(session, mirror).sweep_pending()

        assert sweep.reverted == 1
        investment = InvestmentOperations.get_by_id(session, result.investment.id)
        session.refresh(investment)
        assert investment.investment_type == InvestmentType.TRADITIONAL.value
        assert investment.is_blockchain_verified is False
        # Ledger aggregates keep the investment
        assert _company(session, linked_company.id).total_investment == Decimal("100")

    def test_late_mint_links_company(self, session, company, mirror, chain):
        chain.auto_confirm = False
        with pytest.raises(ConfirmationTimeoutError) as exc_info:
            ChainReconciler(session, mirror).link_company(company.id)
        chain.confirm(exc_info.value.tx_hash)

        sweep = ChainReconciler(session, mirror).sweep_pending()

        assert sweep.confirmed == 1
        assert _company(session, company.id).verification_state == VerificationState.LINKED_UNVERIFIED

    def test_still_pending_and_read_failures(self, session, linked_company, mirror, chain):
        chain.auto_confirm = False
        InvestmentRecorder(session, mirror=mirror).record_investment(
            linked_company.id, uuid4(), Decimal("100"), use_blockchain=True, investor_wallet="0xabc"
        )

        assert ChainReconciler(session, mirror).sweep_pending().still_pending == 1

        chain.fail_reads = True
        sweep = ChainReconciler(session, mirror).sweep_pending()
        assert sweep.failed == 1
        assert len(sweep.errors) == 1
        assert len(ChainTransactionOperations.get_pending(session)) == 1
