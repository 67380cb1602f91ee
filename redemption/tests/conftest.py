import random
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

import pytest

from testing.clock import ManualClock
from core.storage import InMemoryStorage
from ledger.service import CreditLedger
from redemption.service import RedemptionService
from redemption.vouchers import PARTNER_PROFILES, VoucherIssuer
from redemption.workflow import RedemptionWorkflow
from rewards.catalog import RewardCatalog
from rewards.models import CreateRewardRequest, PartnerCode, RewardCatalogEntry


@dataclass
class Engine:
    clock: ManualClock
    storage: InMemoryStorage
    ledger: CreditLedger
    catalog: RewardCatalog
    issuer: VoucherIssuer
    workflow: RedemptionWorkflow
    service: RedemptionService

    def add_reward(self, **overrides) -> RewardCatalogEntry:
        fields = {
            "partner": PartnerCode.GRAB,
            "name": "$3 off GrabBike",
            "credit_cost": 100,
            "stock_quantity": 10,
        }
        fields.update(overrides)
        return self.catalog.add_reward(CreateRewardRequest(**fields))

    def fund(self, user_id: UUID, amount: int) -> None:
        self.ledger.award(user_id, amount, "Converted steps")

    def stock_of(self, reward_id: UUID) -> int:
        return self.catalog.get_reward(reward_id).stock_quantity


def failing_issuer(clock: ManualClock, message: str = "Partner API unavailable") -> VoucherIssuer:
    profiles = {
        partner: profile.with_overrides(success_rate=0.0, failure_message=message)
        for partner, profile in PARTNER_PROFILES.items()
    }
    return VoucherIssuer(
        rng=random.Random(7), clock=clock, simulate_latency=False, simulate_failures=True, profiles=profiles,
    )


def build_engine(
    issuer: Optional[VoucherIssuer] = None,
    fail_issuance: bool = False,
    issue_timeout: Optional[float] = None,
) -> Engine:
    clock = ManualClock()
    storage = InMemoryStorage()
    ledger = CreditLedger(storage, clock)
    catalog = RewardCatalog(storage, clock)
    if issuer is None:
        issuer = failing_issuer(clock) if fail_issuance else VoucherIssuer(
            rng=random.Random(42), clock=clock, simulate_latency=False, simulate_failures=False,
        )
    workflow = RedemptionWorkflow(
        ledger, catalog, issuer, storage=storage, clock=clock, issue_timeout=issue_timeout,
    )
    return Engine(
        clock=clock,
        storage=storage,
        ledger=ledger,
        catalog=catalog,
        issuer=issuer,
        workflow=workflow,
        service=RedemptionService(workflow, storage, clock),
    )


@pytest.fixture
def engine() -> Engine:
    return build_engine()


@pytest.fixture
def failing_engine() -> Engine:
    return build_engine(fail_issuance=True)


@pytest.fixture
def make_engine():
    return build_engine
