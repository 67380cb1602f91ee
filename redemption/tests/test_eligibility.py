from datetime import timedelta
from uuid import UUID, uuid4

from core.errors import FailureKind
from redemption.models import RedemptionStatus


USER_ID = UUID("550e8400-e29b-41d4-a716-446655440000")


class TestEligibilityRules:
    """Tests for each rule and for the order the rules run in."""

    def test_eligible(self, engine):
        engine.fund(USER_ID, 100)
        reward = engine.add_reward(credit_cost=100)

        result = engine.workflow.eligibility.check(USER_ID, reward.id)

        assert result.eligible is True
        assert result.reason == "Eligible for redemption"
        assert result.failure_kind is None

    def test_reward_not_found(self, engine):
        result = engine.workflow.eligibility.check(USER_ID, uuid4())

        assert result.eligible is False
        assert result.reason == "Reward not found"
        assert result.failure_kind == FailureKind.NOT_FOUND

    def test_reward_switched_off(self, engine):
        engine.fund(USER_ID, 100)
        reward = engine.add_reward(is_available=False)

        assert engine.workflow.eligibility.check(USER_ID, reward.id).reason == "Reward not available"

    def test_reward_outside_window(self, engine):
        engine.fund(USER_ID, 100)
        reward = engine.add_reward(valid_until=engine.clock() - timedelta(days=1))

        assert engine.workflow.eligibility.check(USER_ID, reward.id).reason == "Reward not available"

    def test_out_of_stock(self, engine):
        engine.fund(USER_ID, 100)
        reward = engine.add_reward(stock_quantity=0)

        result = engine.workflow.eligibility.check(USER_ID, reward.id)

        assert result.reason == "Reward is out of stock"
        assert result.failure_kind == FailureKind.ELIGIBILITY

    def test_insufficient_credits_reports_both_amounts(self, engine):
        engine.fund(USER_ID, 40)
        reward = engine.add_reward(credit_cost=100)

        result = engine.workflow.eligibility.check(USER_ID, reward.id)

        assert result.reason == "Insufficient credits. You have 40, need 100"

    def test_minimum_balance_above_cost(self, engine):
        """Test a reward costing 50 that requires holding 500."""
        engine.fund(USER_ID, 100)
        reward = engine.add_reward(credit_cost=50, min_credit_balance=500)

        result = engine.workflow.eligibility.check(USER_ID, reward.id)
        redeemed = engine.workflow.redeem(USER_ID, reward.id)

        assert result.reason == "Minimum credit balance required: 500"
        assert redeemed.success is False
        assert redeemed.failure_kind == FailureKind.ELIGIBILITY
        assert engine.ledger.balance(USER_ID).available == 100

    def test_total_limit(self, engine):
        engine.fund(USER_ID, 500)
        reward = engine.add_reward(credit_cost=100, total_limit=2)

        engine.workflow.redeem(USER_ID, reward.id)
        engine.clock.advance(days=1)
        engine.workflow.redeem(USER_ID, reward.id)
        engine.clock.advance(days=1)

        result = engine.workflow.eligibility.check(USER_ID, reward.id)
        assert result.reason == "Total limit reached (2/2)"

    def test_balance_checked_before_limits(self, engine):
        """Test that the first failing rule wins."""
        engine.fund(USER_ID, 100)
        reward = engine.add_reward(credit_cost=100, daily_limit=1)

        assert engine.workflow.redeem(USER_ID, reward.id).success
        engine.fund(USER_ID, 50)

        result = engine.workflow.eligibility.check(USER_ID, reward.id)
        assert result.reason == "Insufficient credits. You have 50, need 100"


class TestLimitCounting:
    """Tests for which redemptions count toward limits."""

    def test_in_flight_redemptions_count(self, engine):
        engine.fund(USER_ID, 500)
        reward = engine.add_reward(credit_cost=100, daily_limit=1)
        pending = engine.workflow._create_pending(USER_ID, reward)

        result = engine.workflow.eligibility.check(USER_ID, reward.id)

        assert pending["status"] == RedemptionStatus.PENDING
        assert result.reason == "Daily limit reached (1/1)"

    def test_used_vouchers_count(self, engine):
        engine.fund(USER_ID, 500)
        reward = engine.add_reward(credit_cost=100, daily_limit=1)
        redemption = engine.workflow.redeem(USER_ID, reward.id).redemption
        engine.workflow.mark_used(redemption.voucher_code)

        assert engine.workflow.eligibility.check(USER_ID, reward.id).reason == "Daily limit reached (1/1)"

    def test_cancelled_redemptions_do_not_count(self, engine):
        engine.fund(USER_ID, 500)
        reward = engine.add_reward(credit_cost=100, daily_limit=1)
        pending = engine.workflow._create_pending(USER_ID, reward)
        engine.workflow.cancel(pending["id"])

        assert engine.workflow.eligibility.check(USER_ID, reward.id).eligible is True

    def test_day_boundary_is_utc_midnight(self, engine):
        engine.clock.set(engine.clock().replace(hour=23, minute=59))
        engine.fund(USER_ID, 500)
        reward = engine.add_reward(credit_cost=100, daily_limit=1)
        engine.workflow.redeem(USER_ID, reward.id)

        engine.clock.advance(minutes=2)

        assert engine.workflow.eligibility.check(USER_ID, reward.id).eligible is True
