"""Pydantic schemas for plans and investment contracts."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.iv_common.cents import cents_to_display
from src.iv_common.datetime_utils import utc_now
from src.iv_investment.domain.models import InvestmentContract, InvestmentPlan


def _bps_to_percent(roi_bps: int) -> str:
    return f"{roi_bps // 100}.{roi_bps % 100:02d}%"


class PlanCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    min_amount_cents: int = Field(..., gt=0)
    max_amount_cents: int = Field(..., gt=0, description="Equal to min for a fixed-amount plan")
    roi_bps: int = Field(..., ge=0, description="Return in basis points, 1000 = 10%")
    duration_hours: int = Field(..., gt=0)


class PlanUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    min_amount_cents: int | None = Field(None, gt=0)
    max_amount_cents: int | None = Field(None, gt=0)
    roi_bps: int | None = Field(None, ge=0)
    duration_hours: int | None = Field(None, gt=0)
    is_active: bool | None = None


class OpenInvestmentRequest(BaseModel):
    plan_id: str = Field(..., min_length=1, max_length=64)
    amount_cents: int = Field(..., gt=0)


class PlanResponse(BaseModel):
    id: str
    name: str
    min_amount_cents: int
    min_amount_display: str
    max_amount_cents: int
    max_amount_display: str
    is_fixed_amount: bool
    roi_bps: int
    roi_percent: str
    duration_hours: int
    is_active: bool

    @classmethod
    def from_domain(cls, plan: InvestmentPlan) -> "PlanResponse":
        return cls(
            id=plan.id,
            name=plan.name,
            min_amount_cents=plan.min_amount,
            min_amount_display=cents_to_display(plan.min_amount),
            max_amount_cents=plan.max_amount,
            max_amount_display=cents_to_display(plan.max_amount),
            is_fixed_amount=plan.is_fixed_amount,
            roi_bps=plan.roi_bps,
            roi_percent=_bps_to_percent(plan.roi_bps),
            duration_hours=plan.duration_hours,
            is_active=plan.is_active,
        )


class ContractResponse(BaseModel):
    id: str
    account_id: str
    plan_id: str
    principal_cents: int
    principal_display: str
    roi_bps: int
    expected_payout_cents: int
    expected_payout_display: str
    start_time: str
    end_time: str
    status: str
    matured: bool
    settled_by: str | None
    settled_at: str | None

    @classmethod
    def from_domain(
        cls, contract: InvestmentContract, now: datetime | None = None
    ) -> "ContractResponse":
        return cls(
            id=contract.id,
            account_id=contract.account_id,
            plan_id=contract.plan_id,
            principal_cents=contract.principal,
            principal_display=cents_to_display(contract.principal),
            roi_bps=contract.roi_bps,
            expected_payout_cents=contract.payout,
            expected_payout_display=cents_to_display(contract.payout),
            start_time=contract.start_time.isoformat(),
            end_time=contract.end_time.isoformat(),
            status=contract.status.value,
            matured=contract.is_matured(now or utc_now()),
            settled_by=contract.settled_by.value if contract.settled_by else None,
            settled_at=contract.settled_at.isoformat() if contract.settled_at else None,
        )
