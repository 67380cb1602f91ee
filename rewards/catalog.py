from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from core.clock import Clock, utc_now
from core.errors import NotFoundError, OutOfStockError
from core.logging_config import get_module_logger
from core.storage import InMemoryStorage

from .models import CreateRewardRequest, PartnerCode, RewardCatalogEntry, RewardCategory

logger = get_module_logger(__name__)


class RewardCatalog:
    """Catalog lookup plus the atomic stock counter used by redemptions."""

    def __init__(self, storage: Optional[InMemoryStorage] = None, clock: Clock = utc_now):
        self.storage = storage or InMemoryStorage()
        self.clock = clock

    def add_reward(self, request: CreateRewardRequest) -> RewardCatalogEntry:
        now = self.clock()
        reward_data = request.model_dump()
        reward_data.update({"id": uuid4(), "created_at": now, "updated_at": now})
        self.storage.rewards[reward_data["id"]] = reward_data
        return RewardCatalogEntry(**reward_data)

    def get_reward(self, reward_id: UUID) -> Optional[RewardCatalogEntry]:
        reward_data = self.storage.rewards.get(reward_id)
        return RewardCatalogEntry(**reward_data) if reward_data else None

    def available_reward(self, reward_id: UUID) -> Optional[RewardCatalogEntry]:
        reward = self.get_reward(reward_id)
        if reward and reward.is_currently_available(self.clock()):
            return reward
        return None

    def list_available(self, category: Optional[RewardCategory] = None) -> list[RewardCatalogEntry]:
        now = self.clock()
        rewards = [RewardCatalogEntry(**r) for r in list(self.storage.rewards.values())]
        rewards = [r for r in rewards if r.is_currently_available(now)]
        if category:
            rewards = [r for r in rewards if r.category == category]
        rewards.sort(key=lambda r: (not r.is_featured, r.credit_cost))
        return rewards

    def try_decrement_stock(self, reward_id: UUID) -> RewardCatalogEntry:
        """Take one unit of stock, or raise OutOfStockError. Unlimited stock is untouched."""
        with self.storage.reward_lock(reward_id):
            reward_data = self._require(reward_id)
            if not reward_data["unlimited_stock"]:
                if reward_data["stock_quantity"] <= 0:
                    raise OutOfStockError(f"Reward {reward_id} is out of stock")
                reward_data["stock_quantity"] -= 1
                reward_data["updated_at"] = self.clock()
            return RewardCatalogEntry(**reward_data)

    def restore_stock(self, reward_id: UUID) -> RewardCatalogEntry:
        with self.storage.reward_lock(reward_id):
            reward_data = self._require(reward_id)
            if not reward_data["unlimited_stock"]:
                reward_data["stock_quantity"] += 1
                reward_data["updated_at"] = self.clock()
            return RewardCatalogEntry(**reward_data)

    def _require(self, reward_id: UUID) -> dict:
        reward_data = self.storage.rewards.get(reward_id)
        if not reward_data:
            raise NotFoundError(f"Reward {reward_id} not found")
        return reward_data


def seed_catalog(catalog: RewardCatalog) -> list[RewardCatalogEntry]:
    """Load the demo partner rewards."""
    seeded = [
        catalog.add_reward(CreateRewardRequest(
            partner=PartnerCode.NTUC, name="$5 FairPrice Voucher",
            description="Spend at any NTUC FairPrice outlet",
            credit_cost=100, monetary_value=Decimal("5.00"),
            stock_quantity=100, is_featured=True, daily_limit=1,
        )),
        catalog.add_reward(CreateRewardRequest(
            partner=PartnerCode.STARBUCKS, name="Free Tall Coffee",
            description="Any tall handcrafted beverage",
            credit_cost=150, monetary_value=Decimal("6.50"),
            stock_quantity=50, total_limit=5,
        )),
        catalog.add_reward(CreateRewardRequest(
            partner=PartnerCode.GRAB, name="$3 off GrabBike",
            description="Discount on your next green ride",
            credit_cost=60, monetary_value=Decimal("3.00"),
            category=RewardCategory.DISCOUNT, unlimited_stock=True, daily_limit=2,
        )),
        catalog.add_reward(CreateRewardRequest(
            partner=PartnerCode.DEFAULT, name="Plant a Tree",
            description="We plant a tree on your behalf",
            credit_cost=500, category=RewardCategory.SERVICE,
            unlimited_stock=True, min_credit_balance=800,
        )),
    ]
    logger.info("Seeded %d catalog rewards", len(seeded))
    return seeded
