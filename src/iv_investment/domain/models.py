"""Domain models for iv_investment: pure dataclasses plus the plan bound rules."""

from dataclasses import dataclass
from datetime import datetime

from src.iv_common.cents import calculate_payout, calculate_roi, cents_to_display
from src.iv_common.enums import ContractStatus, SettledBy
from src.iv_common.errors import ValidationError


@dataclass
class InvestmentPlan:
    id: str
    name: str
    min_amount: int            # cents
    max_amount: int            # cents; == min_amount for a fixed-amount plan
    roi_bps: int               # 1000 = 10%
    duration_hours: int
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_fixed_amount(self) -> bool:
        return self.min_amount == self.max_amount

    def validate_amount(self, amount: int) -> None:
        """Raise ValidationError unless ``amount`` is allowed by this plan."""
        if amount <= 0:
            raise ValidationError(f"Amount must be positive, got {amount}")
        if self.is_fixed_amount and amount != self.min_amount:
            raise ValidationError(
                f"Plan {self.name} requires exactly {cents_to_display(self.min_amount)}"
            )
        if not self.min_amount <= amount <= self.max_amount:
            raise ValidationError(
                f"Plan {self.name} accepts {cents_to_display(self.min_amount)}"
                f" to {cents_to_display(self.max_amount)}, got {cents_to_display(amount)}"
            )


def validate_plan_terms(
    name: str, min_amount: int, max_amount: int, roi_bps: int, duration_hours: int
) -> None:
    if not name.strip():
        raise ValidationError("Plan name must not be empty")
    if min_amount <= 0:
        raise ValidationError(f"min_amount must be positive, got {min_amount}")
    if max_amount < min_amount:
        raise ValidationError(f"max_amount {max_amount} is below min_amount {min_amount}")
    if roi_bps < 0:
        raise ValidationError(f"roi_bps must not be negative, got {roi_bps}")
    if duration_hours <= 0:
        raise ValidationError(f"duration_hours must be positive, got {duration_hours}")


@dataclass
class InvestmentContract:
    """A committed investment. ``roi_bps`` and ``end_time`` are frozen at open."""

    id: str
    account_id: str
    plan_id: str
    principal: int             # cents
    roi_bps: int
    start_time: datetime
    end_time: datetime
    status: ContractStatus = ContractStatus.ACTIVE
    funding_transaction_id: int | None = None
    settled_by: SettledBy | None = None
    settled_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def roi_amount(self) -> int:
        return calculate_roi(self.principal, self.roi_bps)

    @property
    def payout(self) -> int:
        return calculate_payout(self.principal, self.roi_bps)

    def is_matured(self, now: datetime) -> bool:
        return self.end_time <= now
