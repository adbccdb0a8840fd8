"""Tests for timed promotion evaluation and live menu prices."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from app.models.campaign import (
    DiscountType,
    LotteryCampaign,
    Recurrence,
    RewardKind,
    TimedPromotionCampaign,
)
from app.services.promotion_window import (
    calculate_discounted_price,
    find_active_promotion,
    format_promotion_schedule,
    format_time_remaining,
    get_product_price,
    get_time_until_end,
    is_product_eligible,
    is_promotion_active,
    parse_hhmm,
)

PARIS = ZoneInfo("Europe/Paris")


def paris(year, month, day, hour, minute=0, second=0):
    return datetime(year, month, day, hour, minute, second, tzinfo=PARIS)


def happy_hour(**overrides):
    fields = dict(
        restaurant_id="resto-1",
        name="Friday happy hour",
        is_active=True,
        recurrence=Recurrence.RECURRING,
        days_of_week=[5],
        start_time="17:00",
        end_time="20:00",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=20,
        target_categories=[],
        banner_text="Happy hour",
    )
    fields.update(overrides)
    return TimedPromotionCampaign(**fields)


def christmas(**overrides):
    fields = dict(
        restaurant_id="resto-1",
        name="Christmas",
        is_active=True,
        recurrence=Recurrence.ONE_SHOT,
        start_date=paris(2025, 12, 24, 0),
        end_date=paris(2025, 12, 26, 23, 59),
        discount_type=DiscountType.FIXED,
        discount_value=200,
        target_categories=["desserts"],
        banner_text="Merry Christmas",
    )
    fields.update(overrides)
    return TimedPromotionCampaign(**fields)


def product(price, category_id="mains"):
    return SimpleNamespace(id=1, price=price, category_id=category_id)


# ============== Window evaluation ==============

class TestRecurringWindow:
    """Friday 2025-06-13, window 17:00-20:00 Paris time."""

    def test_inside_window(self):
        assert is_promotion_active(happy_hour(), paris(2025, 6, 13, 18), tz=PARIS)

    def test_bounds_are_inclusive(self):
        assert is_promotion_active(happy_hour(), paris(2025, 6, 13, 17, 0), tz=PARIS)
        assert is_promotion_active(happy_hour(), paris(2025, 6, 13, 20, 0), tz=PARIS)
        assert is_promotion_active(happy_hour(), paris(2025, 6, 13, 20, 0, 59), tz=PARIS)

    def test_after_window(self):
        assert not is_promotion_active(happy_hour(), paris(2025, 6, 13, 20, 1), tz=PARIS)

    def test_before_window(self):
        assert not is_promotion_active(happy_hour(), paris(2025, 6, 13, 16, 59), tz=PARIS)

    def test_wrong_day(self):
        # Thursday
        assert not is_promotion_active(happy_hour(), paris(2025, 6, 12, 18), tz=PARIS)

    def test_sunday_is_day_zero(self):
        campaign = happy_hour(days_of_week=[0])
        assert is_promotion_active(campaign, paris(2025, 6, 15, 18), tz=PARIS)

    def test_utc_input_is_converted_to_restaurant_time(self):
        # 16:30 UTC is 18:30 in Paris during summer time
        now = datetime(2025, 6, 13, 16, 30, tzinfo=timezone.utc)
        assert is_promotion_active(happy_hour(), now, tz=PARIS)

    def test_inactive_campaign(self):
        assert not is_promotion_active(happy_hour(is_active=False), paris(2025, 6, 13, 18), tz=PARIS)

    def test_missing_rules(self):
        assert not is_promotion_active(happy_hour(days_of_week=[]), paris(2025, 6, 13, 18), tz=PARIS)
        assert not is_promotion_active(happy_hour(end_time=None), paris(2025, 6, 13, 18), tz=PARIS)

    def test_lottery_is_never_a_promotion(self):
        lottery = LotteryCampaign(
            restaurant_id="resto-1",
            name="Scratch",
            is_active=True,
            win_probability=50,
            reward_kind=RewardKind.PERCENTAGE,
            reward_value=10,
            validity_days=7,
        )
        assert not is_promotion_active(lottery, paris(2025, 6, 13, 18), tz=PARIS)


class TestOneShotWindow:
    def test_inside_range(self):
        assert is_promotion_active(christmas(), paris(2025, 12, 25, 12), tz=PARIS)

    def test_bounds_are_inclusive(self):
        assert is_promotion_active(christmas(), paris(2025, 12, 24, 0), tz=PARIS)
        assert is_promotion_active(christmas(), paris(2025, 12, 26, 23, 59), tz=PARIS)

    def test_outside_range(self):
        assert not is_promotion_active(christmas(), paris(2025, 12, 23, 23, 59), tz=PARIS)
        assert not is_promotion_active(christmas(), paris(2025, 12, 27, 0), tz=PARIS)


class TestFindActivePromotion:
    def test_first_active_in_snapshot_wins(self):
        newer = happy_hour(name="Newer")
        older = happy_hour(name="Older")
        found = find_active_promotion([newer, older], paris(2025, 6, 13, 18), tz=PARIS)
        assert found is newer

    def test_skips_inactive_windows(self):
        closed = happy_hour(days_of_week=[1])
        open_ = happy_hour(name="Open")
        assert find_active_promotion([closed, open_], paris(2025, 6, 13, 18), tz=PARIS) is open_

    def test_none_when_nothing_runs(self):
        assert find_active_promotion([happy_hour()], paris(2025, 6, 12, 18), tz=PARIS) is None


# ============== Pricing ==============

class TestDiscountedPrice:
    def test_percentage(self):
        assert calculate_discounted_price(1000, DiscountType.PERCENTAGE, 20) == 800

    def test_percentage_rounds_half_up(self):
        # 15% of 999 = 149.85 -> 150
        assert calculate_discounted_price(999, DiscountType.PERCENTAGE, 15) == 849
        # 50% of 5 = 2.5 -> 3
        assert calculate_discounted_price(5, DiscountType.PERCENTAGE, 50) == 2

    def test_fixed(self):
        assert calculate_discounted_price(1000, DiscountType.FIXED, 250) == 750

    def test_fixed_clamped_at_zero(self):
        assert calculate_discounted_price(300, DiscountType.FIXED, 500) == 0

    def test_full_percentage(self):
        assert calculate_discounted_price(1200, DiscountType.PERCENTAGE, 100) == 0


class TestProductPrice:
    def test_empty_target_means_all_products(self):
        assert is_product_eligible(product(1000, "drinks"), happy_hour())

    def test_category_filter(self):
        campaign = christmas()
        assert is_product_eligible(product(650, "desserts"), campaign)
        assert not is_product_eligible(product(1000, "mains"), campaign)

    def test_no_promotion(self):
        price = get_product_price(product(1000), None)
        assert price.price == 1000
        assert price.original_price is None
        assert price.has_discount is False

    def test_discounted(self):
        price = get_product_price(product(1000), happy_hour())
        assert price.price == 800
        assert price.original_price == 1000
        assert price.has_discount is True

    def test_ineligible_category_keeps_price(self):
        price = get_product_price(product(1000, "mains"), christmas())
        assert price.price == 1000
        assert price.has_discount is False


# ============== Countdown & display ==============

class TestTimeUntilEnd:
    def test_recurring_remaining_today(self):
        remaining = get_time_until_end(happy_hour(), paris(2025, 6, 13, 18, 30), tz=PARIS)
        assert remaining == timedelta(hours=1, minutes=30)

    def test_recurring_past_end(self):
        assert get_time_until_end(happy_hour(), paris(2025, 6, 13, 20, 30), tz=PARIS) is None

    def test_one_shot_remaining(self):
        remaining = get_time_until_end(christmas(), paris(2025, 12, 26, 22, 59), tz=PARIS)
        assert remaining == timedelta(hours=1)

    def test_one_shot_over(self):
        assert get_time_until_end(christmas(), paris(2025, 12, 27, 9), tz=PARIS) is None


class TestFormatting:
    @pytest.mark.parametrize(
        "remaining, expected",
        [
            (timedelta(hours=1, minutes=5), "1h 5min"),
            (timedelta(minutes=12, seconds=40), "12min"),
            (timedelta(seconds=30), "30s"),
            (timedelta(hours=2), "2h 0min"),
        ],
    )
    def test_format_time_remaining(self, remaining, expected):
        assert format_time_remaining(remaining) == expected

    def test_recurring_schedule(self):
        campaign = happy_hour(days_of_week=[6, 5])
        assert format_promotion_schedule(campaign, tz=PARIS) == "Friday, Saturday from 17:00 to 20:00"

    def test_one_shot_schedule(self):
        assert format_promotion_schedule(christmas(), tz=PARIS) == "From 24 December 2025 to 26 December 2025"

    def test_schedule_without_rules(self):
        assert format_promotion_schedule(happy_hour(days_of_week=None), tz=PARIS) == ""


class TestParseHHMM:
    def test_valid(self):
        assert parse_hhmm("07:05").hour == 7
        assert parse_hhmm("23:59").minute == 59

    @pytest.mark.parametrize("value", ["24:00", "7:05", "12:60", "noon", "", None])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_hhmm(value)
