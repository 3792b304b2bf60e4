from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from src.iv_common.enums import ContractStatus, SettledBy
from src.iv_investment.application.schemas import (
    ContractResponse,
    OpenInvestmentRequest,
    PlanCreateRequest,
    PlanResponse,
)
from src.iv_investment.domain.models import InvestmentContract, InvestmentPlan
from src.iv_workflow.application.schemas import CreateRequestBody


def _make_plan(**kwargs) -> InvestmentPlan:
    defaults = dict(
        id="PLAN-1",
        name="Starter",
        min_amount=10_000,
        max_amount=50_000,
        roi_bps=1250,
        duration_hours=24,
    )
    defaults.update(kwargs)
    return InvestmentPlan(**defaults)


class TestPlanResponse:
    def test_display_fields(self):
        resp = PlanResponse.from_domain(_make_plan())
        assert resp.min_amount_display == "$100.00"
        assert resp.max_amount_display == "$500.00"
        assert resp.roi_percent == "12.50%"
        assert resp.is_fixed_amount is False

    def test_fixed_amount_plan(self):
        resp = PlanResponse.from_domain(_make_plan(max_amount=10_000, roi_bps=5))
        assert resp.is_fixed_amount is True
        assert resp.roi_percent == "0.05%"


class TestContractResponse:
    def test_expected_payout(self):
        contract = InvestmentContract(
            id="C-1",
            account_id="acct-1",
            plan_id="PLAN-1",
            principal=10_000,
            roi_bps=1250,
            start_time=datetime(2026, 3, 1, tzinfo=UTC),
            end_time=datetime(2026, 3, 2, tzinfo=UTC),
        )
        resp = ContractResponse.from_domain(contract)
        assert resp.expected_payout_cents == 11_250
        assert resp.expected_payout_display == "$112.50"
        assert resp.status == "ACTIVE"
        assert resp.settled_by is None

    def test_settled_fields(self):
        settled = datetime(2026, 3, 2, tzinfo=UTC)
        contract = InvestmentContract(
            id="C-1",
            account_id="acct-1",
            plan_id="PLAN-1",
            principal=100,
            roi_bps=0,
            start_time=datetime(2026, 3, 1, tzinfo=UTC),
            end_time=settled,
            status=ContractStatus.COMPLETED,
            settled_by=SettledBy.SCHEDULER,
            settled_at=settled,
        )
        resp = ContractResponse.from_domain(contract)
        assert resp.settled_by == "SCHEDULER"
        assert resp.settled_at == settled.isoformat()

    def test_matured_flag_follows_end_time(self):
        contract = InvestmentContract(
            id="C-1",
            account_id="acct-1",
            plan_id="PLAN-1",
            principal=100,
            roi_bps=0,
            start_time=datetime(2026, 3, 1, tzinfo=UTC),
            end_time=datetime(2026, 3, 2, tzinfo=UTC),
        )
        before = ContractResponse.from_domain(contract, now=datetime(2026, 3, 1, 12, tzinfo=UTC))
        after = ContractResponse.from_domain(contract, now=datetime(2026, 3, 2, tzinfo=UTC))
        assert before.matured is False
        assert after.matured is True


class TestRequestBodies:
    def test_plan_rejects_zero_duration(self):
        with pytest.raises(ValidationError):
            PlanCreateRequest(
                name="x", min_amount_cents=1, max_amount_cents=1, roi_bps=0, duration_hours=0
            )

    def test_open_rejects_non_positive_amount(self):
        with pytest.raises(ValidationError):
            OpenInvestmentRequest(plan_id="PLAN-1", amount_cents=0)

    def test_proof_merged_into_details(self):
        body = CreateRequestBody(
            kind="DEPOSIT", amount_cents=500, proof_ref="receipts/1.png", details={"method": "BTC"}
        )
        assert body.merged_details() == {"method": "BTC", "proof_ref": "receipts/1.png"}
        assert body.details == {"method": "BTC"}
