"""Atomic aggregate primitives: no lost updates, guarded valuation, verification flag."""

from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from crowdledger.core.exceptions import CompanyNotFoundError, ValidationError
from crowdledger.domain import CompanyOperations, InvestmentOperations, ValuationLedger, exceeds_ledger_places
from crowdledger.models import Investment, Milestone, VerificationState


def _reload(session, company_id):
    return CompanyOperations.get_or_raise(session, company_id, refresh=True)


class TestLedgerPrecision:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (Decimal("100.12345678"), False),
            (Decimal("100.123456789"), True),
            (Decimal("1.00000000000"), False),
            (Decimal("0E-20"), False),
            (Decimal("1E+30"), False),
            (Decimal("123456789012345678901234567890.000000001"), True),
        ],
    )
    def test_exceeds_ledger_places(self, value, expected):
        assert exceeds_ledger_places(value) is expected

    def test_increment_rejects_sub_ledger_amount(self, session, company):
        with pytest.raises(ValidationError):
            ValuationLedger.increase_total_investment(session, company.id, Decimal("0.000000001"))
        assert _reload(session, company.id).total_investment == 0


class TestIncreaseTotalInvestment:
    def test_stale_readers_do_not_lose_updates(self, session_factory, company):
        """Both sessions read total_investment=0 before either writes."""
        first, second = session_factory(), session_factory()
        try:
            assert CompanyOperations.get_or_raise(first, company.id).total_investment == 0
            assert CompanyOperations.get_or_raise(second, company.id).total_investment == 0

            ValuationLedger.increase_total_investment(first, company.id, Decimal("100"))
            first.commit()
            ValuationLedger.increase_total_investment(second, company.id, Decimal("250"))
            second.commit()

            assert _reload(first, company.id).total_investment == Decimal("350")
        finally:
            first.close()
            second.close()

    @settings(max_examples=15, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(amounts=st.lists(st.integers(min_value=1, max_value=10_000_000), min_size=2, max_size=5))
    def test_interleaved_sessions_sum_exactly(self, session_factory, make_company, amounts):
        company = make_company()
        sessions = [session_factory() for _ in amounts]
        try:
            # Every session loads the row before any increment lands
            for s in sessions:
                CompanyOperations.get_or_raise(s, company.id)
            for s, amount in zip(sessions, amounts):
                ValuationLedger.increase_total_investment(s, company.id, amount)
                s.commit()

            assert _reload(sessions[0], company.id).total_investment == Decimal(sum(amounts))
        finally:
            for s in sessions:
                s.close()

    @pytest.mark.parametrize("amount", [0, -1, Decimal("-0.01")])
    def test_rejects_non_positive(self, session, company, amount):
        with pytest.raises(ValidationError):
            ValuationLedger.increase_total_investment(session, company.id, amount)

    def test_unknown_company(self, session):
        with pytest.raises(CompanyNotFoundError):
            ValuationLedger.increase_total_investment(session, uuid4(), Decimal("1"))

    def test_rollback_discards_increment(self, session, company):
        ValuationLedger.increase_total_investment(session, company.id, Decimal("500"))
        session.rollback()
        assert _reload(session, company.id).total_investment == Decimal("0")


class TestMilestoneValuationDelta:
    def test_positive_and_negative_deltas(self, session, company):
        ValuationLedger.apply_milestone_valuation_delta(session, company.id, Decimal("50000"))
        ValuationLedger.apply_milestone_valuation_delta(session, company.id, Decimal("-20000"))
        session.commit()
        assert _reload(session, company.id).valuation == Decimal("1030000")

    def test_cannot_reach_zero(self, session, company):
        with pytest.raises(ValidationError):
            ValuationLedger.apply_milestone_valuation_delta(session, company.id, Decimal("-1000000"))
        session.rollback()
        assert _reload(session, company.id).valuation == Decimal("1000000")

    def test_zero_delta_checks_existence(self, session):
        with pytest.raises(CompanyNotFoundError):
            ValuationLedger.apply_milestone_valuation_delta(session, uuid4(), 0)


class TestVerificationFlag:
    def test_verify_requires_token(self, session, company):
        with pytest.raises(ValidationError):
            ValuationLedger.set_verified(session, company.id, True)

    def test_verify_is_idempotent(self, session, linked_company):
        assert ValuationLedger.set_verified(session, linked_company.id, True) is True
        session.commit()
        assert ValuationLedger.set_verified(session, linked_company.id, True) is False
        assert _reload(session, linked_company.id).verification_state == VerificationState.LINKED_VERIFIED

    def test_relink_same_token_keeps_flag(self, session, linked_company):
        ValuationLedger.set_verified(session, linked_company.id, True)
        ValuationLedger.set_blockchain_link(session, linked_company.id, linked_company.blockchain_token_id, "0xother")
        session.commit()
        assert _reload(session, linked_company.id).is_blockchain_verified is True

    def test_relink_new_token_resets_flag(self, session, linked_company):
        ValuationLedger.set_verified(session, linked_company.id, True)
        ValuationLedger.set_blockchain_link(session, linked_company.id, "999", "0xother")
        session.commit()
        company = _reload(session, linked_company.id)
        assert company.blockchain_token_id == "999"
        assert company.verification_state == VerificationState.LINKED_UNVERIFIED


class TestRebuildAggregates:
    def test_rebuild_from_detail_rows(self, session, company):
        first, second = uuid4(), uuid4()
        for investor, amount in [(first, "100"), (second, "200"), (first, "50")]:
            session.add(
                Investment(
                    company_id=company.id,
                    investor_id=investor,
                    amount=Decimal(amount),
                    ownership_percentage=Decimal("0.01"),
                )
            )
        session.add(Milestone(company_id=company.id, milestone_type="revenue", description="First 100 customers"))
        session.commit()

        # Aggregates were bypassed above
        assert _reload(session, company.id).total_investment == 0

        updated = ValuationLedger.rebuild_aggregates(session, company_id=company.id)
        session.commit()

        stored = _reload(session, company.id)
        assert updated == 1
        assert stored.total_investment == Decimal("350")
        assert stored.investor_count == 2
        assert stored.milestone_count == 1
        assert stored.total_investment == InvestmentOperations.sum_by_company(session, company.id)

    def test_rebuild_all_companies(self, session, make_company):
        make_company(name="One")
        make_company(name="Two")
        assert ValuationLedger.rebuild_aggregates(session) == 2
