"""Company onboarding and investor portfolio valuation."""

from decimal import Decimal
from uuid import uuid4

import pytest

from crowdledger.core.exceptions import ValidationError
from crowdledger.models import VerificationState
from crowdledger.services import APIError
from crowdledger.workflows import (
    CompanyRegistration,
    InvestmentRecorder,
    MilestoneProcessor,
    PortfolioService,
)


class TestCompanyRegistration:
    def test_register_with_zeroed_aggregates(self, session, owner_id, events, recorded_events):
        result = CompanyRegistration(session, events=events).register(
            owner_id, "  Acme Robotics ", "Industrial robots", "Manufacturing", Decimal("1000000")
        )

        company = result.company
        assert company.name == "Acme Robotics"
        assert company.total_investment == 0
        assert company.investor_count == 0
        assert company.milestone_count == 0
        assert company.verification_state == VerificationState.UNLINKED
        assert result.link is None
        assert [e.name for e in recorded_events] == ["company.updated"]

    @pytest.mark.parametrize(
        "name,valuation",
        [("", Decimal("1")), ("Acme", Decimal("0")), ("Acme", "-1"), ("Acme", Decimal("1000000.000000001"))],
    )
    def test_validation(self, session, owner_id, name, valuation):
        with pytest.raises(ValidationError):
            CompanyRegistration(session).register(owner_id, name, None, None, valuation)

    def test_register_and_mint(self, session, owner_id, mirror, chain):
        result = CompanyRegistration(session, mirror=mirror).register(
            owner_id, "Acme Robotics", None, "Manufacturing", Decimal("1000000"),
            owner_wallet="0xowner", mint=True,
        )
        assert "mintCompany" in chain.methods()
        assert result.company.verification_state == VerificationState.LINKED_VERIFIED
        assert result.link_error is None

    def test_mint_failure_keeps_registration(self, session, owner_id, mirror, chain):
        chain.fail_send = APIError("gateway down", status_code=503)
        result = CompanyRegistration(session, mirror=mirror).register(
            owner_id, "Acme Robotics", None, None, Decimal("1000000"), owner_wallet="0xowner", mint=True
        )
        assert result.company.verification_state == VerificationState.UNLINKED
        assert result.link_error

    def test_mint_skipped_without_wallet(self, session, owner_id, mirror, chain):
        result = CompanyRegistration(session, mirror=mirror).register(
            owner_id, "Acme Robotics", None, None, Decimal("1000000"), mint=True
        )
        assert chain.sent == []
        assert result.link_error == "owner has no linked wallet"


class TestPortfolio:
    def test_empty_portfolio(self, session):
        summary = PortfolioService(session).summarize(uuid4())
        assert summary.holdings == []
        assert summary.total_invested == 0
        assert summary.return_percentage is None

    def test_values_follow_current_valuation(self, session, make_company, owner_id):
        investor = uuid4()
        robots = make_company(name="Acme Robotics", industry="Manufacturing")
        foods = make_company(name="Green Foods", industry="Food", valuation=Decimal("400000"))
        recorder = InvestmentRecorder(session)

        recorder.record_investment(robots.id, investor, Decimal("100000"))
        recorder.record_investment(foods.id, investor, Decimal("100000"))

        processor = MilestoneProcessor(session)
        milestone = processor.create_milestone(
            robots.id, owner_id, "revenue", "Reached first 100 paying customers", Decimal("1000000")
        )
        processor.verify_milestone(milestone.id, uuid4())

        summary = PortfolioService(session).summarize(investor)

        assert len(summary.holdings) == 2
        assert summary.total_invested == Decimal("200000")
        assert summary.industry_breakdown == {
            "Manufacturing": Decimal("100000"),
            "Food": Decimal("100000"),
        }

        by_name = {h.company_name: h for h in summary.holdings}
        # 9.0909...% of a valuation that doubled to 2,000,000
        assert by_name["Acme Robotics"].current_value.quantize(Decimal("1")) == Decimal("181818")
        # 20% of an unchanged 400,000 valuation
        assert by_name["Green Foods"].current_value.quantize(Decimal("1")) == Decimal("80000")
        assert summary.total_return == summary.current_value - summary.total_invested
