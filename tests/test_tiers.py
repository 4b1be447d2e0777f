"""Unit tests for the tier catalog."""

import pytest

from tierstake.engine.errors import InvalidTierBounds, InvalidTierRate, UnknownTier
from tierstake.engine.tiers import (
    SENTINEL_TIER_INDEX,
    Tier,
    TierCatalog,
    validate_tier_rates,
)


def _tier(lo, hi, lock=30, rate=10_000) -> Tier:
    return Tier(min_amount=lo, max_amount=hi, lock_days=lock, day_rate_a=rate, day_rate_b=rate)


@pytest.fixture
def catalog():
    return TierCatalog([
        _tier(1_000, 9_999),
        _tier(10_000, 49_999, lock=90),
        _tier(50_000, 99_999, lock=180),
    ])


class TestCatalogStructure:
    """Tests for the sentinel and append semantics."""

    def test_new_catalog_holds_only_sentinel(self):
        catalog = TierCatalog()
        assert len(catalog) == 1
        sentinel = catalog.get(SENTINEL_TIER_INDEX)
        assert (sentinel.min_amount, sentinel.max_amount, sentinel.lock_days) == (0, 0, 0)
        assert sentinel.day_rate_a == sentinel.day_rate_b == 0

    def test_add_tier_returns_next_index(self, catalog):
        index = catalog.add_tier(_tier(100_000, 700_000, lock=360))
        assert index == 4
        assert len(catalog) == 5

    def test_add_tier_ignores_supplied_total(self):
        catalog = TierCatalog()
        tier = _tier(1, 10)
        tier.total_deposited = 500
        index = catalog.add_tier(tier)
        assert catalog.get(index).total_deposited == 0

    def test_add_tier_rejects_inverted_bounds(self, catalog):
        with pytest.raises(InvalidTierBounds):
            catalog.add_tier(_tier(10, 5))
        assert len(catalog) == 4

    def test_get_out_of_range(self, catalog):
        with pytest.raises(UnknownTier):
            catalog.get(4)
        with pytest.raises(UnknownTier):
            catalog.get(-1)

    def test_get_real_rejects_sentinel(self, catalog):
        with pytest.raises(UnknownTier):
            catalog.get_real(SENTINEL_TIER_INDEX)


class TestSetTier:
    """Tests for in-place tier edits."""

    def test_set_tier_overwrites(self, catalog):
        catalog.set_tier(1, _tier(5_000, 20_000, lock=30, rate=15_000))
        tier = catalog.get(1)
        assert (tier.min_amount, tier.max_amount, tier.day_rate_a) == (5_000, 20_000, 15_000)

    def test_set_tier_preserves_total_deposited(self, catalog):
        catalog.move_principal(SENTINEL_TIER_INDEX, 2, 0, 20_000)
        catalog.set_tier(2, _tier(10_000, 60_000, lock=60))
        assert catalog.get(2).total_deposited == 20_000

    def test_set_unknown_tier(self, catalog):
        with pytest.raises(UnknownTier):
            catalog.set_tier(9, _tier(1, 2))

    def test_sentinel_cannot_be_overwritten(self, catalog):
        with pytest.raises(UnknownTier):
            catalog.set_tier(SENTINEL_TIER_INDEX, _tier(1, 2))


class TestFindTierForAmount:
    """Tests for the ordered first-match search."""

    @pytest.mark.parametrize("amount,expected", [
        (1_000, 1),
        (9_999, 1),
        (10_000, 2),
        (49_999, 2),
        (50_000, 3),
        (99_999, 3),
    ])
    def test_inclusive_bounds(self, catalog, amount, expected):
        assert catalog.find_tier_for_amount(amount) == expected

    def test_below_every_tier_lands_on_sentinel(self, catalog):
        assert catalog.find_tier_for_amount(999) == SENTINEL_TIER_INDEX

    def test_above_every_tier_lands_on_sentinel(self, catalog):
        assert catalog.find_tier_for_amount(100_000) == SENTINEL_TIER_INDEX

    def test_first_match_wins_on_overlap(self, catalog):
        overlapping = catalog.add_tier(_tier(5_000, 15_000))
        assert catalog.find_tier_for_amount(12_000) == 2
        assert catalog.find_tier_for_amount(12_000) != overlapping


class TestRateValidation:
    """Tests for the rate floor check against the configured scales."""

    def test_rate_at_scale_is_accepted(self):
        validate_tier_rates(_tier(1, 2, rate=10_000), 10_000, 10_000)

    def test_rate_below_scale_is_rejected(self):
        with pytest.raises(InvalidTierRate):
            validate_tier_rates(_tier(1, 2, rate=9_999), 10_000, 10_000)

    def test_zero_rate_is_accepted(self):
        validate_tier_rates(_tier(1, 2, rate=0), 10_000, 10_000)

    def test_scales_are_independent(self):
        tier = Tier(min_amount=1, max_amount=2, lock_days=0, day_rate_a=50_000, day_rate_b=50_000)
        validate_tier_rates(tier, 10_000, 50_000)
        with pytest.raises(InvalidTierRate):
            validate_tier_rates(tier, 10_000, 100_000)
