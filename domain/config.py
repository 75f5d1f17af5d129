"""
Configuration module for the chit-fund billing engine.

All configuration values are loaded from environment variables with sensible defaults.
See .env.example for all available configuration options.
"""
import os
from dataclasses import dataclass


def _get_int(key: str, default: int) -> int:
    """Get int from environment variable."""
    return int(os.getenv(key, default))


def _get_str(key: str, default: str) -> str:
    """Get string from environment variable."""
    return os.getenv(key, default)


@dataclass
class BillingConfig:
    """Collection-cycle days."""

    # Days after this one bill the next installment
    cutoff_day: int = _get_int("BILLING_CUTOFF_DAY", 20)
    # Day of month on which arrears snap to the previous balance
    rollover_day: int = _get_int("ARREAR_ROLLOVER_DAY", 21)


@dataclass
class NumberingConfig:
    """Invoice and receipt numbering."""

    invoice_prefix: str = _get_str("INVOICE_NUMBER_PREFIX", "INV")
    invoice_digits: int = _get_int("INVOICE_NUMBER_DIGITS", 6)
    receipt_digits: int = _get_int("RECEIPT_NUMBER_DIGITS", 4)

    def format_invoice_number(self, sequence: int) -> str:
        """Return e.g. INV000042 for sequence 42."""
        return f"{self.invoice_prefix}{str(sequence).zfill(self.invoice_digits)}"

    def format_receipt_number(self, sequence: int) -> str:
        """Return e.g. 0042 for sequence 42."""
        return str(sequence).zfill(self.receipt_digits)


# Global config instances (lazy loaded)
_billing_config = None
_numbering_config = None


def get_billing_config() -> BillingConfig:
    """Get billing cycle configuration."""
    global _billing_config
    if _billing_config is None:
        _billing_config = BillingConfig()
    return _billing_config


def get_numbering_config() -> NumberingConfig:
    """Get invoice numbering configuration."""
    global _numbering_config
    if _numbering_config is None:
        _numbering_config = NumberingConfig()
    return _numbering_config


def reload_config():
    """Force reload of all configuration from environment variables."""
    global _billing_config, _numbering_config
    _billing_config = BillingConfig(
        cutoff_day=_get_int("BILLING_CUTOFF_DAY", 20),
        rollover_day=_get_int("ARREAR_ROLLOVER_DAY", 21),
    )
    _numbering_config = NumberingConfig(
        invoice_prefix=_get_str("INVOICE_NUMBER_PREFIX", "INV"),
        invoice_digits=_get_int("INVOICE_NUMBER_DIGITS", 6),
        receipt_digits=_get_int("RECEIPT_NUMBER_DIGITS", 4),
    )
