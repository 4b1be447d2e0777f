"""Shared fixtures: the default four-tier ledger on a manual clock.

Tier indices follow the packaged defaults: 1 Silver, 2 Gold, 3 Platinum,
4 Diamond; index 0 is the sentinel.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tierstake.config.loader import load_config
from tierstake.config.schema import to_base_units
from tierstake.engine.clock import ManualDayClock
from tierstake.engine.factory import build_ledger

START_DAY = 20_000
SILVER, GOLD, PLATINUM, DIAMOND = 1, 2, 3, 4


def units(value) -> int:
    """Whole tokens to 18-decimal base units."""
    return to_base_units(value, 18)


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def clock():
    return ManualDayClock(START_DAY)


@pytest.fixture
def bundle(config, clock):
    return build_ledger(config, clock=clock)


@pytest.fixture
def ledger(bundle):
    return bundle.ledger


@pytest.fixture
def tokens(bundle):
    return bundle.tokens


@pytest.fixture
def fund(bundle):
    """Mint deposit tokens to an account and approve them to custody."""

    def _fund(account: str, amount: int) -> None:
        ledger = bundle.ledger
        bundle.tokens.mint(ledger.deposit_token, account, amount)
        current = bundle.tokens.allowance(ledger.deposit_token, account, ledger.custody_account)
        bundle.tokens.approve(ledger.deposit_token, account, ledger.custody_account, current + amount)

    return _fund
