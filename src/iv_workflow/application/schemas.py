"""Pydantic schemas for the approval workflow API."""

from typing import Any

from pydantic import BaseModel, Field

from src.iv_common.enums import Decision, TransactionKind


class CreateRequestBody(BaseModel):
    kind: TransactionKind
    amount_cents: int = Field(..., gt=0, description="Requested amount in cents")
    proof_ref: str | None = Field(
        None, max_length=500, description="Proof-of-payment reference from the storage service"
    )
    details: dict[str, Any] = Field(
        default_factory=dict, description="Wallet address, plan name, method, ..."
    )
    account_id: str | None = Field(
        None, description="Target account; honoured for admins only"
    )

    def merged_details(self) -> dict[str, Any]:
        merged = dict(self.details)
        if self.proof_ref is not None:
            merged["proof_ref"] = self.proof_ref
        return merged


class DecisionBody(BaseModel):
    decision: Decision
