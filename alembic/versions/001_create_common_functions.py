"""001: create common functions

Revision ID: 001
Revises: 
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # updated_at maintenance for accounts, plans and contracts
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_update_timestamp()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    # Ledger rows: no DELETE, and only status / decided_at / refunded_at may change
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_guard_ledger_row()
        RETURNS TRIGGER AS $$
        BEGIN
            IF TG_OP = 'DELETE' THEN
                RAISE EXCEPTION 'ledger row % cannot be deleted', OLD.id;
            END IF;
            IF NEW.account_id IS DISTINCT FROM OLD.account_id
               OR NEW.kind IS DISTINCT FROM OLD.kind
               OR NEW.amount IS DISTINCT FROM OLD.amount
               OR NEW.details IS DISTINCT FROM OLD.details
               OR NEW.reference_id IS DISTINCT FROM OLD.reference_id
               OR NEW.created_at IS DISTINCT FROM OLD.created_at THEN
                RAISE EXCEPTION 'ledger row % is immutable except for its status', OLD.id;
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS fn_guard_ledger_row();")
    op.execute("DROP FUNCTION IF EXISTS fn_update_timestamp();")
