"""
Reward catalog: entries, availability windows and the stock counter.
"""

from .models import PartnerCode, RewardCategory, CreateRewardRequest, RewardCatalogEntry
from .catalog import RewardCatalog, seed_catalog

__all__ = [
    "PartnerCode",
    "RewardCategory",
    "CreateRewardRequest",
    "RewardCatalogEntry",
    "RewardCatalog",
    "seed_catalog",
]
