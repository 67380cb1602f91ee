"""Simple dependency container for wiring core services."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from achievements.activity import ActivityService
from achievements.evaluator import AchievementEvaluator
from core.clock import Clock, utc_now
from core.config import Settings, get_settings
from core.storage import InMemoryStorage
from ledger.service import CreditLedger
from redemption.service import RedemptionService
from redemption.vouchers import VoucherIssuer
from redemption.workflow import RedemptionWorkflow
from rewards.catalog import RewardCatalog, seed_catalog

from .auth import AuthService, SessionStore


@dataclass
class ServiceContainer:
    settings: Settings
    storage: InMemoryStorage
    ledger: CreditLedger
    catalog: RewardCatalog
    workflow: RedemptionWorkflow
    redemptions: RedemptionService
    evaluator: AchievementEvaluator
    activity: ActivityService
    auth: AuthService

    @classmethod
    def build(
        cls,
        settings: Optional[Settings] = None,
        clock: Clock = utc_now,
        issuer: Optional[VoucherIssuer] = None,
    ) -> "ServiceContainer":
        settings = settings or get_settings()
        storage = InMemoryStorage()

        ledger = CreditLedger(storage, clock)
        catalog = RewardCatalog(storage, clock)
        if settings.seed_catalog:
            seed_catalog(catalog)

        workflow = RedemptionWorkflow(
            ledger,
            catalog,
            issuer or VoucherIssuer.from_settings(settings.vouchers, clock),
            storage=storage,
            clock=clock,
            issue_timeout=settings.issue_timeout,
            executor=ThreadPoolExecutor(
                max_workers=settings.vouchers.max_workers, thread_name_prefix="voucher-issuer",
            ),
        )
        evaluator = AchievementEvaluator(storage, clock)
        sessions = SessionStore(timedelta(minutes=settings.session_ttl_minutes), clock)

        return cls(
            settings=settings,
            storage=storage,
            ledger=ledger,
            catalog=catalog,
            workflow=workflow,
            redemptions=RedemptionService(workflow, storage, clock),
            evaluator=evaluator,
            activity=ActivityService(ledger, evaluator, storage, clock),
            auth=AuthService(storage, sessions, clock),
        )
