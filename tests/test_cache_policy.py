import datetime as dt
import math
import unittest

from lrt_traffic import cache_policy
from lrt_traffic.domain import RangeClass, RangeQuery, default_range_query

TODAY = dt.date(2025, 10, 7)  # Tuesday, ISO week 41


class TestCacheKeys(unittest.TestCase):
    def test_today_key_is_calendar_day(self):
        query = default_range_query(RangeClass.TODAY, TODAY)
        self.assertEqual(cache_policy.cache_key(query), "traffic-today-2025-10-07")

    def test_week_key_is_iso_week_of_window_end(self):
        query = default_range_query(RangeClass.WEEK, TODAY)
        self.assertEqual(query.start, dt.date(2025, 10, 1))
        self.assertEqual(cache_policy.cache_key(query), "traffic-week-2025-W41")

    def test_week_key_uses_iso_year(self):
        query = RangeQuery(dt.date(2020, 12, 26), dt.date(2021, 1, 1), RangeClass.WEEK)
        self.assertEqual(cache_policy.cache_key(query), "traffic-week-2020-W53")

    def test_month_keys(self):
        month = default_range_query(RangeClass.MONTH, TODAY)
        previous = default_range_query(RangeClass.PREVIOUS_MONTH, TODAY)
        self.assertEqual(cache_policy.cache_key(month), "traffic-month-2025-10")
        self.assertEqual(cache_policy.cache_key(previous), "traffic-previous-month-2025-09")


class TestStaleness(unittest.TestCase):
    def test_today_window_is_two_minutes(self):
        query = default_range_query(RangeClass.TODAY, TODAY)
        self.assertTrue(cache_policy.is_fresh(1000.0, query, today=TODAY, now=1000.0 + 119))
        self.assertFalse(cache_policy.is_fresh(1000.0, query, today=TODAY, now=1000.0 + 120))

    def test_current_week_is_one_hour(self):
        query = default_range_query(RangeClass.WEEK, TODAY)
        self.assertEqual(cache_policy.max_age_seconds(query, TODAY), 3600)
        self.assertFalse(cache_policy.is_fresh(0.0, query, today=TODAY, now=3600.0))

    def test_past_week_never_expires(self):
        query = default_range_query(RangeClass.WEEK, TODAY - dt.timedelta(days=14))
        self.assertEqual(cache_policy.max_age_seconds(query, TODAY), math.inf)
        self.assertTrue(cache_policy.is_fresh(0.0, query, today=TODAY, now=10 ** 10))

    def test_window_reaching_into_current_month_is_current(self):
        query = RangeQuery(dt.date(2025, 9, 15), TODAY, RangeClass.MONTH)
        self.assertEqual(cache_policy.cache_key(query), "traffic-month-2025-09")
        self.assertTrue(cache_policy.is_current_period(query, TODAY))
        self.assertEqual(cache_policy.max_age_seconds(query, TODAY), 3600)
        self.assertFalse(cache_policy.is_fresh(0.0, query, today=TODAY, now=3600.0))

    def test_week_window_reaching_into_current_week_is_current(self):
        query = RangeQuery(dt.date(2025, 9, 29), dt.date(2025, 10, 6), RangeClass.WEEK)
        self.assertTrue(cache_policy.is_current_period(query, TODAY))
        past = RangeQuery(dt.date(2025, 9, 29), dt.date(2025, 10, 5), RangeClass.WEEK)
        self.assertFalse(cache_policy.is_current_period(past, TODAY))

    def test_current_month_is_one_hour_past_month_forever(self):
        current = default_range_query(RangeClass.MONTH, TODAY)
        past = default_range_query(RangeClass.MONTH, dt.date(2025, 8, 20))
        self.assertEqual(cache_policy.max_age_seconds(current, TODAY), 3600)
        self.assertEqual(cache_policy.max_age_seconds(past, TODAY), math.inf)

    def test_previous_month_follows_month_rule(self):
        query = default_range_query(RangeClass.PREVIOUS_MONTH, TODAY)
        self.assertFalse(cache_policy.is_current_period(query, TODAY))
        self.assertTrue(cache_policy.is_fresh(0.0, query, today=TODAY, now=10 ** 10))

    def test_entry_from_the_future_is_stale(self):
        query = default_range_query(RangeClass.PREVIOUS_MONTH, TODAY)
        self.assertFalse(cache_policy.is_fresh(2000.0, query, today=TODAY, now=1000.0))


class TestDefaultRanges(unittest.TestCase):
    def test_previous_month_spans_whole_month(self):
        query = default_range_query(RangeClass.PREVIOUS_MONTH, dt.date(2025, 3, 15))
        self.assertEqual(query.start, dt.date(2025, 2, 1))
        self.assertEqual(query.end, dt.date(2025, 2, 28))

    def test_previous_month_across_year_boundary(self):
        query = default_range_query(RangeClass.PREVIOUS_MONTH, dt.date(2025, 1, 1))
        self.assertEqual(query.start, dt.date(2024, 12, 1))
        self.assertEqual(query.end, dt.date(2024, 12, 31))

    def test_month_to_date(self):
        query = default_range_query(RangeClass.MONTH, TODAY)
        self.assertEqual((query.start, query.end), (dt.date(2025, 10, 1), TODAY))


if __name__ == "__main__":
    unittest.main()
