"""
Expiration policy and list classification tests.
"""

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from backend.app.domain.freight import expiration_policy
from backend.app.domain.freight.classification import FreightBucket, classify
from backend.app.models.freight_enums import FreightStatus, ServiceCategory


NOW = datetime(2026, 3, 10, 12, 0, 0)


def freight_row(status=FreightStatus.OPEN, category=ServiceCategory.CARGA, age_hours=0, accepted_trucks=0):
    return SimpleNamespace(
        status=status,
        service_category=category,
        created_at=NOW - timedelta(hours=age_hours),
        accepted_trucks=accepted_trucks,
    )


class TestTtl:

    def test_category_table(self):
        assert expiration_policy.ttl_hours(ServiceCategory.GUINCHO) == 2
        assert expiration_policy.ttl_hours(ServiceCategory.FRETE_MOTO) == 4
        assert expiration_policy.ttl_hours(ServiceCategory.CARGA) == 72
        assert expiration_policy.ttl_hours(ServiceCategory.SERVICE) == 168

    def test_raw_strings_and_keywords(self):
        assert expiration_policy.ttl_hours("frete_urbano") == 24
        assert expiration_policy.ttl_hours("Guincho pesado") == 2
        assert expiration_policy.ttl_hours("mudanca interestadual") == 48
        assert expiration_policy.ttl_hours("graos") == expiration_policy.DEFAULT_TTL_HOURS
        assert expiration_policy.ttl_hours(None) == expiration_policy.DEFAULT_TTL_HOURS

    def test_urgent_categories_expire_sooner_than_bulk(self):
        assert expiration_policy.ttl_hours(ServiceCategory.GUINCHO) < expiration_policy.ttl_hours(ServiceCategory.CARGA)


@pytest.mark.parametrize("status", list(FreightStatus))
def test_can_auto_cancel_only_uncommitted(status):
    expected = status in (FreightStatus.OPEN, FreightStatus.IN_NEGOTIATION)
    assert expiration_policy.can_auto_cancel(status) is expected


class TestIsExpired:

    def test_lapsed_open_freight_expires(self):
        assert expiration_policy.is_expired(freight_row(age_hours=73), NOW)

    def test_fresh_freight_does_not_expire(self):
        assert not expiration_policy.is_expired(freight_row(age_hours=71), NOW)

    def test_accepted_freight_never_expires(self):
        assert not expiration_policy.is_expired(freight_row(FreightStatus.ACCEPTED, age_hours=500), NOW)

    def test_partially_staffed_freight_never_expires(self):
        row = freight_row(FreightStatus.OPEN, age_hours=500, accepted_trucks=1)
        assert not expiration_policy.is_expired(row, NOW)

    def test_aware_timestamps_are_compared_in_utc(self):
        row = freight_row(category=ServiceCategory.GUINCHO)
        row.created_at = datetime(2026, 3, 10, 9, 0, tzinfo=timezone(timedelta(hours=-3)))  # 12:00 UTC
        assert not expiration_policy.is_expired(row, NOW + timedelta(hours=1))
        assert expiration_policy.is_expired(row, NOW + timedelta(hours=2))

    def test_time_remaining_never_negative(self):
        assert expiration_policy.time_remaining(ServiceCategory.GUINCHO, NOW - timedelta(days=1), NOW) == timedelta(0)
        assert expiration_policy.time_remaining(ServiceCategory.GUINCHO, NOW, NOW) == timedelta(hours=2)


class TestClassify:
    today = date(2026, 3, 10)

    def test_in_progress_is_always_active(self):
        for pickup in (None, date(2020, 1, 1), date(2030, 1, 1)):
            assert classify(FreightStatus.LOADED, pickup, self.today) == FreightBucket.ACTIVE
            assert classify("IN_TRANSIT", pickup, self.today) == FreightBucket.ACTIVE

    def test_accepted_with_future_pickup_is_scheduled(self):
        assert classify(FreightStatus.ACCEPTED, date(2026, 3, 11), self.today) == FreightBucket.SCHEDULED

    def test_accepted_with_past_or_today_pickup_is_active(self):
        assert classify(FreightStatus.ACCEPTED, date(2026, 3, 9), self.today) == FreightBucket.ACTIVE
        assert classify(FreightStatus.ACCEPTED, self.today, self.today) == FreightBucket.ACTIVE

    def test_accepted_without_pickup_is_active(self):
        assert classify(FreightStatus.ACCEPTED, None, self.today) == FreightBucket.ACTIVE

    def test_open_and_final(self):
        assert classify(FreightStatus.IN_NEGOTIATION, None, self.today) == FreightBucket.OPEN
        assert classify(FreightStatus.CANCELLED, None, self.today) == FreightBucket.COMPLETED
        assert classify("Concluído", None, self.today) == FreightBucket.COMPLETED
