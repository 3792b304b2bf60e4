"""Referral code generation: 8 upper-case alphanumerics, e.g. 'K7Q2ZP0M'."""

import secrets
import string

REFERRAL_CODE_LENGTH = 8
_ALPHABET = string.ascii_uppercase + string.digits


def generate_referral_code() -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))
