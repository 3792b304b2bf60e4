"""006: create referral_edges table

Revision ID: 006
Revises: 005
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE referral_edges (
            id                      BIGSERIAL       PRIMARY KEY,
            referrer_account_id     VARCHAR(64)     NOT NULL REFERENCES accounts (id),
            referred_account_id     VARCHAR(64)     NOT NULL REFERENCES accounts (id),
            bonus_amount            BIGINT          NOT NULL,
            awarded_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_referral_edges_referred   UNIQUE (referred_account_id),
            CONSTRAINT ck_referral_not_self         CHECK (referrer_account_id <> referred_account_id),
            CONSTRAINT ck_referral_bonus_gt_0       CHECK (bonus_amount > 0)
        );
    """)
    op.execute(
        "CREATE INDEX idx_referral_edges_referrer ON referral_edges (referrer_account_id);"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS referral_edges CASCADE;")
