"""002: create accounts table

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE accounts (
            id                  VARCHAR(64) PRIMARY KEY,
            balance             BIGINT      NOT NULL DEFAULT 0,
            total_profits       BIGINT      NOT NULL DEFAULT 0,
            referral_earnings   BIGINT      NOT NULL DEFAULT 0,
            referral_code       VARCHAR(16) NOT NULL,
            referred_by         VARCHAR(16),
            version             BIGINT      NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_accounts_referral_code        UNIQUE (referral_code),
            CONSTRAINT ck_accounts_balance_gte_0        CHECK (balance >= 0),
            CONSTRAINT ck_accounts_total_profits_gte_0  CHECK (total_profits >= 0),
            CONSTRAINT ck_accounts_referral_gte_0       CHECK (referral_earnings >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_accounts_updated_at
            BEFORE UPDATE ON accounts
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE accounts IS 'Investor accounts: all amounts in cents';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS accounts CASCADE;")
