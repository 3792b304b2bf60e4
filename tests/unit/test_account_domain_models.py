"""Tests for iv_account domain models and referral codes."""

import string

from src.iv_account.domain.models import Account, TransactionRecord
from src.iv_account.domain.referral_code import REFERRAL_CODE_LENGTH, generate_referral_code
from src.iv_common.enums import TransactionKind, TransactionStatus


class TestAccount:
    def test_defaults(self) -> None:
        acct = Account(id="a1", balance=0, total_profits=0, referral_earnings=0, referral_code="ABCD1234")
        assert acct.referred_by is None
        assert acct.version == 0


class TestTransactionRecord:
    def test_details_not_shared(self) -> None:
        a = TransactionRecord(1, "a1", TransactionKind.DEPOSIT, 500, TransactionStatus.PENDING)
        b = TransactionRecord(2, "a1", TransactionKind.DEPOSIT, 500, TransactionStatus.PENDING)
        a.details["proof_ref"] = "receipt-1"
        assert b.details == {}

    def test_refund_stamp_starts_empty(self) -> None:
        rec = TransactionRecord(1, "a1", TransactionKind.WITHDRAWAL, 300, TransactionStatus.PENDING)
        assert rec.refunded_at is None
        assert rec.reference_id is None


class TestReferralCode:
    def test_shape(self) -> None:
        code = generate_referral_code()
        assert len(code) == REFERRAL_CODE_LENGTH
        assert set(code) <= set(string.ascii_uppercase + string.digits)

    def test_codes_vary(self) -> None:
        assert len({generate_referral_code() for _ in range(50)}) > 1
