"""004: create investment_plans table

Revision ID: 004
Revises: 003
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE investment_plans (
            id              VARCHAR(64)     PRIMARY KEY,
            name            VARCHAR(100)    NOT NULL,
            min_amount      BIGINT          NOT NULL,
            max_amount      BIGINT          NOT NULL,
            roi_bps         INT             NOT NULL,
            duration_hours  INT             NOT NULL,
            is_active       BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_investment_plans_name     UNIQUE (name),
            CONSTRAINT ck_plans_min_amount_gt_0     CHECK (min_amount > 0),
            CONSTRAINT ck_plans_amount_range        CHECK (max_amount >= min_amount),
            CONSTRAINT ck_plans_roi_bps_gte_0       CHECK (roi_bps >= 0),
            CONSTRAINT ck_plans_duration_gt_0       CHECK (duration_hours > 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_investment_plans_updated_at
            BEFORE UPDATE ON investment_plans
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS investment_plans CASCADE;")
