"""
Interest Ledger

An interest-accruing ledger with per-account locked-in rates, a
decrease-only global rate, and a custodial facade for deposits and
redemptions of the backing asset. All quantities are fixed-point integers.
"""

__version__ = "1.0.0"
