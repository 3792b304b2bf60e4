"""003: create transactions table

Revision ID: 003
Revises: 002
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE transactions (
            id              BIGSERIAL       PRIMARY KEY,
            account_id      VARCHAR(64)     NOT NULL REFERENCES accounts (id),
            kind            VARCHAR(30)     NOT NULL,
            amount          BIGINT          NOT NULL,
            status          VARCHAR(20)     NOT NULL,
            details         JSONB           NOT NULL DEFAULT '{}'::jsonb,
            reference_id    VARCHAR(64),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            decided_at      TIMESTAMPTZ,
            refunded_at     TIMESTAMPTZ,
            CONSTRAINT ck_transactions_kind CHECK (
                kind IN (
                    'DEPOSIT', 'UPGRADE', 'REFERRAL_BONUS',
                    'INVESTMENT_PAYOUT', 'INVESTMENT_REFUND', 'PROFIT_TOPUP',
                    'WITHDRAWAL', 'INVESTMENT_FUNDING'
                )
            ),
            CONSTRAINT ck_transactions_status CHECK (
                status IN ('PENDING', 'APPROVED', 'DECLINED', 'COMPLETED')
            ),
            CONSTRAINT ck_transactions_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_transactions_refund_declined CHECK (
                refunded_at IS NULL OR status = 'DECLINED'
            )
        );
    """)
    op.execute(
        "CREATE INDEX idx_transactions_account ON transactions (account_id, id DESC);"
    )
    op.execute("""
        CREATE INDEX idx_transactions_pending
        ON transactions (kind, id)
        WHERE status = 'PENDING';
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_transactions_payout_per_contract
        ON transactions (reference_id)
        WHERE kind = 'INVESTMENT_PAYOUT';
    """)
    op.execute("""
        CREATE TRIGGER trg_transactions_guard
            BEFORE UPDATE OR DELETE ON transactions
            FOR EACH ROW EXECUTE FUNCTION fn_guard_ledger_row();
    """)
    op.execute(
        "COMMENT ON TABLE transactions IS "
        "'Ledger: rows are never deleted; only status/decided_at/refunded_at change';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS transactions CASCADE;")
