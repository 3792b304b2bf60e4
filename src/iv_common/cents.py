"""Integer arithmetic utilities for cents-based balances.

All amounts and balances use int (cents). No float, no Decimal.
ROI rates are integer basis points (10% = 1000 bps).
"""

BPS_DENOMINATOR = 10_000


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"


def calculate_roi(principal: int, roi_bps: int) -> int:
    """ROI amount with floor division (platform never overpays).

    roi = floor(principal * roi_bps / 10000)
    """
    if principal == 0 or roi_bps == 0:
        return 0
    return (principal * roi_bps) // BPS_DENOMINATOR


def calculate_payout(principal: int, roi_bps: int) -> int:
    """Maturity payout: principal plus ROI."""
    return principal + calculate_roi(principal, roi_bps)
