import random
import threading
import time
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Callable, Optional
from uuid import UUID

from core.clock import Clock, utc_now
from core.config import VoucherSettings
from core.errors import PartnerIntegrationError
from core.logging_config import get_module_logger
from rewards.models import PartnerCode

from .models import Redemption, VoucherIssueResult

logger = get_module_logger(__name__)


@dataclass(frozen=True)
class PartnerProfile:
    """How one partner's vouchers look and how its API behaves.

    ``code_template`` is formatted with ``millis`` (issue time) and ``random``
    (an integer below ``random_upper``). ``success_rate`` and
    ``latency_seconds`` drive the simulated partner call.
    """
    partner: PartnerCode
    code_template: str
    random_upper: int
    qr_url_template: str
    transaction_prefix: str
    transaction_id_length: int
    expiry_days: int
    success_rate: float = 1.0
    latency_seconds: float = 0.0
    failure_message: str = "Partner API unavailable"

    @property
    def code_prefix(self) -> str:
        return self.code_template.split("{", 1)[0]

    def with_overrides(self, **changes) -> "PartnerProfile":
        return replace(self, **changes)


PARTNER_PROFILES: dict[PartnerCode, PartnerProfile] = {
    PartnerCode.NTUC: PartnerProfile(
        partner=PartnerCode.NTUC,
        code_template="NTUC{millis}{random:04d}", random_upper=10_000,
        qr_url_template="https://api.ntuc.com.sg/qr/{code}",
        transaction_prefix="NTUC-TXN-", transaction_id_length=8,
        expiry_days=30, success_rate=0.95, latency_seconds=0.5,
        failure_message="NTUC API temporarily unavailable",
    ),
    PartnerCode.STARBUCKS: PartnerProfile(
        partner=PartnerCode.STARBUCKS,
        code_template="SB{millis}{random:06d}", random_upper=1_000_000,
        qr_url_template="https://api.starbucks.com.sg/voucher/{code}",
        transaction_prefix="SB-", transaction_id_length=10,
        expiry_days=14, success_rate=0.98, latency_seconds=0.3,
        failure_message="Starbucks system maintenance",
    ),
    PartnerCode.GRAB: PartnerProfile(
        partner=PartnerCode.GRAB,
        code_template="GRAB{random:08d}", random_upper=100_000_000,
        qr_url_template="https://grab.com/sg/promo/{code}",
        transaction_prefix="GRAB-", transaction_id_length=12,
        expiry_days=7, success_rate=0.97, latency_seconds=0.2,
        failure_message="Grab API rate limit exceeded",
    ),
    PartnerCode.DEFAULT: PartnerProfile(
        partner=PartnerCode.DEFAULT,
        code_template="ECO{millis}{random:04d}", random_upper=10_000,
        qr_url_template="https://ecocredit.com/voucher/{code}",
        transaction_prefix="ECO-", transaction_id_length=8,
        expiry_days=30,
    ),
}


class VoucherIssuer:
    """Issues partner vouchers through the profile registered for the partner.

    Randomness, clock and sleep are injected so tests can force an outcome
    without waiting on simulated latency.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Clock = utc_now,
        sleep: Callable[[float], None] = time.sleep,
        simulate_latency: bool = True,
        simulate_failures: bool = True,
        profiles: Optional[dict[PartnerCode, PartnerProfile]] = None,
    ):
        self.rng = rng or random.Random()
        self.clock = clock
        self.sleep = sleep
        self.simulate_latency = simulate_latency
        self.simulate_failures = simulate_failures
        self.profiles = dict(PARTNER_PROFILES)
        if profiles:
            self.profiles.update(profiles)
        self._rng_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: VoucherSettings, clock: Clock = utc_now) -> "VoucherIssuer":
        return cls(
            rng=random.Random(settings.random_seed),
            clock=clock,
            simulate_latency=settings.simulate_latency,
            simulate_failures=settings.simulate_failures,
        )

    def profile_for(self, partner: PartnerCode) -> PartnerProfile:
        return self.profiles.get(partner, self.profiles[PartnerCode.DEFAULT])

    def issue(self, redemption: Redemption) -> VoucherIssueResult:
        profile = self.profile_for(redemption.partner)
        try:
            return self._call_partner(profile)
        except PartnerIntegrationError as e:
            logger.warning(
                "Voucher issuance failed for redemption %s (%s): %s",
                redemption.id, profile.partner.value, e,
            )
            return VoucherIssueResult.failure(str(e))

    def verify_with_partner(self, voucher_code: str, partner: PartnerCode) -> bool:
        """Point-of-sale format check: the code must carry the partner's prefix."""
        profile = self.profile_for(partner)
        return bool(voucher_code) and voucher_code.startswith(profile.code_prefix)

    def _call_partner(self, profile: PartnerProfile) -> VoucherIssueResult:
        now = self.clock()
        with self._rng_lock:
            draw = self.rng.randrange(profile.random_upper)
            txn_bits = self.rng.getrandbits(128)
            roll = self.rng.random()

        voucher_code = profile.code_template.format(millis=int(now.timestamp() * 1000), random=draw)
        qr_code_url = profile.qr_url_template.format(code=voucher_code)
        expiry_date = now + timedelta(days=profile.expiry_days)
        txn_suffix = UUID(int=txn_bits, version=4).hex[:profile.transaction_id_length]
        partner_transaction_id = f"{profile.transaction_prefix}{txn_suffix}"

        if self.simulate_latency and profile.latency_seconds > 0:
            self.sleep(profile.latency_seconds)

        if self.simulate_failures and roll >= profile.success_rate:
            raise PartnerIntegrationError(profile.failure_message)

        return VoucherIssueResult.issued(voucher_code, qr_code_url, expiry_date, partner_transaction_id)
