"""005: create investment_contracts table

Revision ID: 005
Revises: 004
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE investment_contracts (
            id                      VARCHAR(64)     PRIMARY KEY,
            account_id              VARCHAR(64)     NOT NULL REFERENCES accounts (id),
            plan_id                 VARCHAR(64)     NOT NULL REFERENCES investment_plans (id),
            principal               BIGINT          NOT NULL,
            roi_bps                 INT             NOT NULL,
            start_time              TIMESTAMPTZ     NOT NULL,
            end_time                TIMESTAMPTZ     NOT NULL,
            status                  VARCHAR(20)     NOT NULL DEFAULT 'ACTIVE',
            funding_transaction_id  BIGINT          REFERENCES transactions (id),
            settled_by              VARCHAR(20),
            settled_at              TIMESTAMPTZ,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_contracts_status CHECK (
                status IN ('ACTIVE', 'COMPLETED', 'CANCELLED')
            ),
            CONSTRAINT ck_contracts_settled_by CHECK (
                settled_by IS NULL OR settled_by IN ('SCHEDULER', 'ADMIN')
            ),
            CONSTRAINT ck_contracts_principal_gt_0  CHECK (principal > 0),
            CONSTRAINT ck_contracts_time_order      CHECK (end_time > start_time)
        );
    """)
    # Maturity sweep: WHERE status = 'ACTIVE' AND end_time <= :now ORDER BY end_time
    op.execute(
        "CREATE INDEX ix_investment_contracts_status_end_time "
        "ON investment_contracts (status, end_time);"
    )
    op.execute(
        "CREATE INDEX idx_contracts_account ON investment_contracts (account_id, start_time DESC);"
    )
    op.execute("""
        CREATE TRIGGER trg_investment_contracts_updated_at
            BEFORE UPDATE ON investment_contracts
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS investment_contracts CASCADE;")
