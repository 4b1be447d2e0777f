"""Tiered, time-gated staking ledger with two reward denominations."""

__version__ = "1.0.0"
