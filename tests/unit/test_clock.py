"""
Tests for the injectable clocks.
"""

from datetime import date, datetime, timedelta, timezone

from budget_kernel.domain.clock import DeterministicClock, SystemClock


class TestDeterministicClock:

    def test_now_is_frozen_until_moved(self):
        clock = DeterministicClock(datetime(2025, 12, 15, 12, 0, tzinfo=timezone.utc))
        assert clock.now() == clock.now()

        assert clock.tick() == datetime(2025, 12, 15, 12, 0, 1, tzinfo=timezone.utc)
        clock.advance(59)
        assert clock.now() == datetime(2025, 12, 15, 12, 1, tzinfo=timezone.utc)

    def test_today_is_utc_date(self):
        eastern = timezone(timedelta(hours=-5))
        clock = DeterministicClock(datetime(2025, 12, 31, 22, 0, tzinfo=eastern))
        assert clock.today() == date(2026, 1, 1)

    def test_set_fiscal_month(self):
        clock = DeterministicClock()
        clock.set_fiscal_month(2026, 12)
        assert clock.today() == date(2026, 6, 15)
        assert clock.fiscal_position() == (2026, 12)

        clock.set_fiscal_month(2026, 1, day=1)
        assert clock.today() == date(2025, 7, 1)
        assert clock.fiscal_position() == (2026, 1)

    def test_set_date_resets_offset(self):
        clock = DeterministicClock()
        clock.advance(3600)
        clock.set_date(date(2025, 8, 1))
        assert clock.now() == datetime(2025, 8, 1, 12, 0, tzinfo=timezone.utc)


class TestSystemClock:

    def test_now_is_timezone_aware(self):
        assert SystemClock().now().tzinfo is not None
