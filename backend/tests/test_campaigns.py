"""Tests for the campaign store and its validation rules."""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.models.campaign import (
    Campaign,
    DiscountType,
    LotteryCampaign,
    Recurrence,
    RewardKind,
    TimedPromotionCampaign,
)
from app.models.coupon import Coupon
from app.schemas.campaign import CampaignUpdate
from app.services.campaign_service import CampaignService
from app.services.coupon_service import CouponService

from conftest import RESTAURANT, make_happy_hour, make_lottery


# ============== Creation ==============

class TestCreateLottery:
    def test_create(self, db_session):
        campaign = make_lottery(db_session)
        assert isinstance(campaign, LotteryCampaign)
        assert campaign.id is not None
        assert campaign.kind == "lottery"
        assert campaign.is_active is True
        assert campaign.reward_kind == RewardKind.PERCENTAGE
        assert campaign.validity_days == 30

    def test_reloaded_as_lottery(self, db_session):
        campaign_id = make_lottery(db_session).id
        db_session.expunge_all()
        loaded = CampaignService(db_session).get_by_id(campaign_id)
        assert isinstance(loaded, LotteryCampaign)

    @pytest.mark.parametrize("probability", [-1, 100.5, 150])
    def test_win_probability_out_of_range(self, db_session, probability):
        with pytest.raises(ValidationError) as exc:
            make_lottery(db_session, win_probability=probability)
        assert exc.value.field == "win_probability"
        assert db_session.query(Campaign).count() == 0

    @pytest.mark.parametrize("probability", [0, 100, 37.5])
    def test_win_probability_bounds_accepted(self, db_session, probability):
        assert make_lottery(db_session, win_probability=probability).win_probability == probability

    @pytest.mark.parametrize("days", [0, 366])
    def test_validity_out_of_range(self, db_session, days):
        with pytest.raises(ValidationError) as exc:
            make_lottery(db_session, validity_days=days)
        assert exc.value.field == "validity_days"

    def test_validity_bounds_accepted(self, db_session):
        assert make_lottery(db_session, validity_days=1).validity_days == 1
        assert make_lottery(db_session, validity_days=365).validity_days == 365

    def test_name_required(self, db_session):
        with pytest.raises(ValidationError) as exc:
            make_lottery(db_session, name="   ")
        assert exc.value.field == "name"

    def test_name_too_long(self, db_session):
        with pytest.raises(ValidationError):
            make_lottery(db_session, name="x" * 101)
        assert make_lottery(db_session, name="x" * 100).name == "x" * 100

    def test_description_too_long(self, db_session):
        with pytest.raises(ValidationError) as exc:
            make_lottery(db_session, reward_description="d" * 201)
        assert exc.value.field == "reward_description"

    def test_percentage_reward_capped(self, db_session):
        with pytest.raises(ValidationError):
            make_lottery(db_session, reward_value=120)

    def test_fixed_reward_above_hundred_allowed(self, db_session):
        campaign = make_lottery(db_session, reward_kind="fixed_amount", reward_value=1500)
        assert campaign.reward_value == 1500

    def test_negative_reward(self, db_session):
        with pytest.raises(ValidationError):
            make_lottery(db_session, reward_kind="fixed_amount", reward_value=-1)


class TestCreateTimedPromotion:
    def test_create_recurring(self, db_session):
        campaign = make_happy_hour(db_session, days_of_week=[5, 6, 5])
        assert isinstance(campaign, TimedPromotionCampaign)
        assert campaign.recurrence == Recurrence.RECURRING
        assert campaign.days_of_week == [5, 6]
        assert campaign.start_date is None

    def test_create_one_shot(self, db_session):
        start = datetime(2025, 12, 24, 8, tzinfo=timezone.utc)
        campaign = make_happy_hour(
            db_session,
            recurrence="one_shot",
            start_date=start,
            end_date=start + timedelta(days=2),
            days_of_week=None,
            start_time=None,
            end_time=None,
        )
        assert campaign.start_date == start
        assert campaign.end_date == start + timedelta(days=2)
        assert campaign.days_of_week is None

    def test_one_shot_requires_dates(self, db_session):
        with pytest.raises(ValidationError):
            make_happy_hour(db_session, recurrence="one_shot", start_date=None, end_date=None)

    def test_one_shot_end_before_start(self, db_session):
        start = datetime(2025, 12, 24, tzinfo=timezone.utc)
        with pytest.raises(ValidationError) as exc:
            make_happy_hour(
                db_session, recurrence="one_shot", start_date=start, end_date=start - timedelta(hours=1)
            )
        assert exc.value.field == "end_date"

    def test_recurring_requires_days(self, db_session):
        with pytest.raises(ValidationError) as exc:
            make_happy_hour(db_session, days_of_week=[])
        assert exc.value.field == "days_of_week"

    def test_recurring_day_out_of_range(self, db_session):
        with pytest.raises(ValidationError):
            make_happy_hour(db_session, days_of_week=[7])

    @pytest.mark.parametrize("start, end", [("20:00", "17:00"), ("17:00", "17:00"), ("22:00", "02:00")])
    def test_recurring_end_must_follow_start(self, db_session, start, end):
        with pytest.raises(ValidationError) as exc:
            make_happy_hour(db_session, start_time=start, end_time=end)
        assert exc.value.field == "end_time"

    def test_recurring_bad_time_format(self, db_session):
        with pytest.raises(ValidationError) as exc:
            make_happy_hour(db_session, start_time="5pm")
        assert exc.value.field == "start_time"

    def test_banner_required(self, db_session):
        with pytest.raises(ValidationError) as exc:
            make_happy_hour(db_session, banner_text=" ")
        assert exc.value.field == "banner_text"

    def test_banner_too_long(self, db_session):
        with pytest.raises(ValidationError):
            make_happy_hour(db_session, banner_text="b" * 201)

    def test_discount_must_be_positive(self, db_session):
        with pytest.raises(ValidationError):
            make_happy_hour(db_session, discount_value=0)

    def test_percentage_discount_capped(self, db_session):
        with pytest.raises(ValidationError):
            make_happy_hour(db_session, discount_value=101)

    def test_fixed_discount(self, db_session):
        campaign = make_happy_hour(db_session, discount_type="fixed", discount_value=500)
        assert campaign.discount_type == DiscountType.FIXED


# ============== Reads ==============

class TestListing:
    def test_get_missing(self, db_session):
        with pytest.raises(NotFoundError):
            CampaignService(db_session).get_by_id(999)

    def test_list_newest_first(self, db_session):
        first = make_lottery(db_session, name="First")
        second = make_happy_hour(db_session, name="Second")
        third = make_lottery(db_session, name="Third")
        make_lottery(db_session, restaurant_id="other-resto")

        campaigns = CampaignService(db_session).list_by_restaurant(RESTAURANT)
        assert [c.id for c in campaigns] == [third.id, second.id, first.id]

    def test_list_active(self, db_session):
        active = make_lottery(db_session, name="On")
        make_lottery(db_session, name="Off", is_active=False)
        campaigns = CampaignService(db_session).list_active(RESTAURANT)
        assert [c.id for c in campaigns] == [active.id]


# ============== Updates ==============

class TestUpdate:
    def test_partial_update(self, db_session, lottery):
        updated = CampaignService(db_session).update(
            lottery.id, CampaignUpdate(win_probability=25, name="Renamed")
        )
        assert updated.win_probability == 25
        assert updated.name == "Renamed"
        assert updated.validity_days == 30

    def test_invalid_update_leaves_campaign_untouched(self, db_session, lottery):
        with pytest.raises(ValidationError):
            CampaignService(db_session).update(lottery.id, CampaignUpdate(win_probability=150))
        db_session.expire_all()
        assert CampaignService(db_session).get_by_id(lottery.id).win_probability == 100

    def test_merged_definition_is_validated(self, db_session):
        campaign = make_lottery(db_session, reward_kind="fixed_amount", reward_value=500)
        # 500 is fine as a fixed amount but not as a percentage
        with pytest.raises(ValidationError):
            CampaignService(db_session).update(campaign.id, CampaignUpdate(reward_kind="percentage"))

    def test_field_of_other_kind_rejected(self, db_session, lottery):
        with pytest.raises(ValidationError) as exc:
            CampaignService(db_session).update(lottery.id, CampaignUpdate(banner_text="Hi"))
        assert exc.value.field == "banner_text"

    def test_switch_recurrence(self, db_session, happy_hour):
        start = datetime(2025, 12, 24, tzinfo=timezone.utc)
        updated = CampaignService(db_session).update(
            happy_hour.id,
            CampaignUpdate(recurrence="one_shot", start_date=start, end_date=start + timedelta(days=1)),
        )
        assert updated.recurrence == Recurrence.ONE_SHOT
        assert updated.days_of_week is None
        assert updated.start_time is None

    def test_null_is_active_rejected(self, db_session, lottery):
        with pytest.raises(ValidationError) as exc:
            CampaignService(db_session).update(lottery.id, CampaignUpdate(is_active=None))
        assert exc.value.field == "is_active"
        db_session.expire_all()
        assert CampaignService(db_session).get_by_id(lottery.id).is_active is True

    def test_toggle_active(self, db_session, lottery):
        service = CampaignService(db_session)
        assert service.toggle_active(lottery.id, False).is_active is False
        assert service.toggle_active(lottery.id, True).is_active is True

    def test_update_missing(self, db_session):
        with pytest.raises(NotFoundError):
            CampaignService(db_session).update(42, CampaignUpdate(name="x"))


class TestDelete:
    def test_delete(self, db_session, lottery):
        service = CampaignService(db_session)
        service.delete(lottery.id)
        with pytest.raises(NotFoundError):
            service.get_by_id(lottery.id)

    def test_delete_keeps_issued_coupons(self, db_session, lottery, now):
        outcome = CouponService(db_session).generate_coupon(lottery.id, RESTAURANT, "device-1", now=now)
        CampaignService(db_session).delete(lottery.id)

        coupon = db_session.get(Coupon, outcome.coupon.id)
        assert coupon is not None
        assert coupon.campaign_id == lottery.id
        assert coupon.discount_value == 10
