from datetime import timedelta
from uuid import uuid4

import pytest

from testing.clock import ManualClock
from core.errors import NotFoundError, OutOfStockError
from rewards.catalog import RewardCatalog, seed_catalog
from rewards.models import CreateRewardRequest, PartnerCode, RewardCategory


def _catalog():
    clock = ManualClock()
    return RewardCatalog(clock=clock), clock


class TestAvailability:
    """Tests for the availability predicate."""

    def test_available_reward_in_stock(self):
        catalog, _ = _catalog()
        reward = catalog.add_reward(CreateRewardRequest(name="Voucher", credit_cost=100, stock_quantity=2))

        assert catalog.available_reward(reward.id) is not None

    def test_unavailable_flag(self):
        catalog, _ = _catalog()
        reward = catalog.add_reward(CreateRewardRequest(name="Hidden", credit_cost=100, stock_quantity=2,
                                                        is_available=False))

        assert catalog.available_reward(reward.id) is None

    def test_validity_window(self):
        """Test that a reward is only available inside its window."""
        catalog, clock = _catalog()
        now = clock()
        reward = catalog.add_reward(CreateRewardRequest(
            name="Seasonal", credit_cost=10, unlimited_stock=True,
            valid_from=now + timedelta(days=1), valid_until=now + timedelta(days=3),
        ))

        assert catalog.available_reward(reward.id) is None
        clock.advance(days=2)
        assert catalog.available_reward(reward.id) is not None
        clock.advance(days=2)
        assert catalog.available_reward(reward.id) is None

    def test_finite_stock_exhausted(self):
        catalog, _ = _catalog()
        reward = catalog.add_reward(CreateRewardRequest(name="Gone", credit_cost=10, stock_quantity=0))

        assert catalog.available_reward(reward.id) is None

    def test_list_available_filters_and_orders(self):
        """Test featured rewards first, then cheapest."""
        catalog, _ = _catalog()
        catalog.add_reward(CreateRewardRequest(name="Cheap", credit_cost=10, unlimited_stock=True))
        catalog.add_reward(CreateRewardRequest(name="Featured", credit_cost=500, unlimited_stock=True,
                                               is_featured=True))
        catalog.add_reward(CreateRewardRequest(name="Ride", credit_cost=60, unlimited_stock=True,
                                               category=RewardCategory.DISCOUNT))
        catalog.add_reward(CreateRewardRequest(name="Sold out", credit_cost=5, stock_quantity=0))

        assert [r.name for r in catalog.list_available()] == ["Featured", "Cheap", "Ride"]
        assert [r.name for r in catalog.list_available(RewardCategory.DISCOUNT)] == ["Ride"]


class TestStockCounter:
    """Tests for the conditional stock decrement."""

    def test_decrement_and_restore(self):
        catalog, _ = _catalog()
        reward = catalog.add_reward(CreateRewardRequest(name="Voucher", credit_cost=100, stock_quantity=1))

        assert catalog.try_decrement_stock(reward.id).stock_quantity == 0
        with pytest.raises(OutOfStockError):
            catalog.try_decrement_stock(reward.id)
        assert catalog.get_reward(reward.id).stock_quantity == 0

        assert catalog.restore_stock(reward.id).stock_quantity == 1

    def test_unlimited_stock_is_untouched(self):
        catalog, _ = _catalog()
        reward = catalog.add_reward(CreateRewardRequest(name="Ride", credit_cost=60, unlimited_stock=True))

        for _ in range(5):
            catalog.try_decrement_stock(reward.id)
        catalog.restore_stock(reward.id)

        assert catalog.get_reward(reward.id).stock_quantity == 0
        assert catalog.available_reward(reward.id) is not None

    def test_unknown_reward(self):
        catalog, _ = _catalog()

        with pytest.raises(NotFoundError):
            catalog.try_decrement_stock(uuid4())


class TestPartnerCode:
    """Tests for resolving partner names to the enumeration."""

    @pytest.mark.parametrize("name,expected", [
        ("NTUC", PartnerCode.NTUC),
        ("ntuc", PartnerCode.NTUC),
        ("Starbucks", PartnerCode.STARBUCKS),
        (" grab ", PartnerCode.GRAB),
        ("Unknown Cafe", PartnerCode.DEFAULT),
        (None, PartnerCode.DEFAULT),
    ])
    def test_from_name(self, name, expected):
        assert PartnerCode.from_name(name) == expected


def test_seed_catalog_covers_every_partner():
    catalog, _ = _catalog()

    seeded = seed_catalog(catalog)

    assert {r.partner for r in seeded} == set(PartnerCode)
    assert len(catalog.list_available()) == len(seeded)
