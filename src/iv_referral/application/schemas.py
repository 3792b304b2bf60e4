"""Pydantic schemas for the referral API."""

from pydantic import BaseModel, Field

from src.iv_common.cents import cents_to_display
from src.iv_referral.domain.models import ReferralEdge


class RegisterReferralRequest(BaseModel):
    referral_code: str = Field(..., min_length=1, max_length=16)


class ReferralEdgeResponse(BaseModel):
    id: int
    referrer_account_id: str
    referred_account_id: str
    bonus_cents: int
    bonus_display: str
    awarded_at: str | None

    @classmethod
    def from_domain(cls, edge: ReferralEdge) -> "ReferralEdgeResponse":
        return cls(
            id=edge.id,
            referrer_account_id=edge.referrer_account_id,
            referred_account_id=edge.referred_account_id,
            bonus_cents=edge.bonus_amount,
            bonus_display=cents_to_display(edge.bonus_amount),
            awarded_at=edge.awarded_at.isoformat() if edge.awarded_at else None,
        )
