import datetime as dt
import json
import unittest

from lrt_traffic.cache_store import InMemoryCacheStore, decode_entry, encode_entry
from lrt_traffic.domain import DailyPoint, PeakHours, RangeClass, StationStats, TrafficSnapshot
from lrt_traffic.errors import MalformedCacheEntry


def _weekly_snapshot():
    start = dt.date(2025, 10, 1)
    return TrafficSnapshot(
        range_class=RangeClass.WEEK,
        start=start,
        end=start + dt.timedelta(days=6),
        station_summary={"PEG": StationStats(total=3, breakdown={"BCA": 2, "BRI": 1}, change_vs_yesterday=-25.0)},
        total_transactions=3,
        daily_series=[
            DailyPoint(label="Rab 01", date=start, passengers=3),
            DailyPoint(label="Kam 02", date=start + dt.timedelta(days=1), passengers=0),
        ],
    )


class TestCacheCodec(unittest.TestCase):
    def test_blob_shape(self):
        blob = json.loads(encode_entry(_weekly_snapshot(), written_at=1700000000.5))
        self.assertEqual(blob["timestamp"], 1700000000500)
        self.assertEqual(blob["payload"]["daily_series"][0]["date"], "2025-10-01")

    def test_dates_come_back_as_dates(self):
        entry = decode_entry(encode_entry(_weekly_snapshot(), written_at=1.0))
        first = entry.payload.daily_series[0]
        self.assertIsInstance(first.date, dt.date)
        self.assertEqual(first.date, dt.date(2025, 10, 1))
        self.assertEqual(entry.payload.start, dt.date(2025, 10, 1))
        self.assertEqual(entry.written_at, 1.0)

    def test_decode_rejects_bad_blobs(self):
        for raw in ("not-json", "[]", json.dumps({"payload": {}}), json.dumps({"payload": {}, "timestamp": 1})):
            with self.subTest(raw=raw):
                with self.assertRaises(MalformedCacheEntry):
                    decode_entry(raw)


class TestInMemoryCacheStore(unittest.TestCase):
    def test_put_get_round_trip(self):
        store = InMemoryCacheStore()
        snapshot = _weekly_snapshot()
        snapshot = snapshot.model_copy(update={"peak_hours": PeakHours(busiest_hour=8, quietest_hour=22)})

        store.put("traffic-week-2025-W40", snapshot)
        entry = store.get("traffic-week-2025-W40")

        self.assertIsNotNone(entry)
        self.assertEqual(entry.payload, snapshot)
        self.assertEqual([p.date for p in entry.payload.daily_series], [p.date for p in snapshot.daily_series])
        self.assertLess(entry.age_seconds(), 5)

    def test_put_overwrites(self):
        store = InMemoryCacheStore()
        snapshot = _weekly_snapshot()
        store.put("k", snapshot)
        store.put("k", snapshot.model_copy(update={"total_transactions": 99}))
        self.assertEqual(store.get("k").payload.total_transactions, 99)

    def test_missing_key(self):
        self.assertIsNone(InMemoryCacheStore().get("traffic-today-2025-10-07"))

    def test_corrupt_entry_is_removed(self):
        store = InMemoryCacheStore()
        store.put_raw("traffic-month-2025-10", "{not json")
        self.assertIsNone(store.get("traffic-month-2025-10"))
        self.assertNotIn("traffic-month-2025-10", store.keys())

    def test_remove_and_clear(self):
        store = InMemoryCacheStore()
        store.put("a", _weekly_snapshot())
        store.put("b", _weekly_snapshot())
        store.remove("a")
        store.remove("missing")
        self.assertEqual(store.keys(), ["b"])
        store.clear()
        self.assertEqual(store.keys(), [])


if __name__ == "__main__":
    unittest.main()
