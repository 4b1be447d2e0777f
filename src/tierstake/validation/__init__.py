"""Validation and sanity checks for the staking ledger."""

from .sanity_checks import SanityChecker, ValidationWarning, validate_ledger

__all__ = [
    "SanityChecker",
    "ValidationWarning",
    "validate_ledger"
]
