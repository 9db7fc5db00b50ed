import json
import tempfile
import unittest
from pathlib import Path

from qrcraft.config import HISTORY_KEY
from qrcraft.content import EmailContent, TextContent, UrlContent, WifiContent
from qrcraft.history import HistoryEntry, HistoryStore, JsonFilePersistence, MemoryPersistence
from qrcraft.options import RenderOptions


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _record(store: HistoryStore, text: str):
    return store.record(TextContent(text), text, RenderOptions())


class HistoryStoreTest(unittest.TestCase):
    def setUp(self) -> None:
        self.persistence = MemoryPersistence()
        self.clock = FakeClock()
        self.store = HistoryStore(self.persistence, clock=self.clock)

    def test_keeps_five_newest_first(self) -> None:
        for i in range(6):
            _record(self.store, f"item {i}")
        self.assertEqual([e.payload for e in self.store.entries],
                         ["item 5", "item 4", "item 3", "item 2", "item 1"])

    def test_duplicate_moves_to_front(self) -> None:
        for text in ("a", "b", "c"):
            _record(self.store, text)
        first_id = self.store.entries[2].id
        entry = _record(self.store, "a")
        self.assertEqual([e.payload for e in self.store.entries], ["a", "c", "b"])
        self.assertNotEqual(entry.id, first_id)

    def test_ids_unique_within_one_millisecond(self) -> None:
        ids = {_record(self.store, str(i)).id for i in range(4)}
        self.assertEqual(len(ids), 4)

    def test_incomplete_records_skipped(self) -> None:
        self.assertIsNone(self.store.record(EmailContent("not-an-email"), "mailto:not-an-email", RenderOptions()))
        self.assertIsNone(self.store.record(TextContent(""), "", RenderOptions()))
        self.assertEqual(self.store.entries, ())
        self.assertNotIn(HISTORY_KEY, self.persistence.values)

    def test_persists_and_reloads(self) -> None:
        options = RenderOptions(foreground_color="#112233", eye_shape="circle")
        self.store.record(UrlContent("https://example.com"), "https://example.com", options)
        self.store.record(WifiContent(ssid="Home"), "WIFI:S:Home;T:WPA;P:;;", RenderOptions())

        stored = json.loads(self.persistence.values[HISTORY_KEY])
        self.assertEqual(stored[0]["type"], "wifi")
        self.assertEqual(stored[1]["content"], "https://example.com")

        reloaded = HistoryStore(self.persistence).load()
        self.assertEqual(len(reloaded), 2)
        self.assertEqual(reloaded[1].options, options)
        self.assertEqual(reloaded[0].content_type, "wifi")

    def test_load_truncates_to_limit(self) -> None:
        rows = [HistoryEntry(str(i), f"p{i}", "text", i, RenderOptions()).to_dict() for i in range(8)]
        persistence = MemoryPersistence({HISTORY_KEY: json.dumps(rows)})
        self.assertEqual([e.payload for e in HistoryStore(persistence).load()],
                         ["p0", "p1", "p2", "p3", "p4"])

    def test_corrupt_storage_loads_empty(self) -> None:
        for raw in ("{not json", json.dumps({"a": 1}), json.dumps([{"id": "1"}]), json.dumps([1, 2])):
            with self.subTest(raw=raw):
                store = HistoryStore(MemoryPersistence({HISTORY_KEY: raw}))
                with self.assertLogs("qrcraft.history", level="ERROR"):
                    self.assertEqual(store.load(), [])

    def test_non_string_value_loads_empty(self) -> None:
        store = HistoryStore(MemoryPersistence({HISTORY_KEY: 42}))
        with self.assertLogs("qrcraft.history", level="ERROR"):
            self.assertEqual(store.load(), [])

    def test_missing_storage_loads_empty(self) -> None:
        self.assertEqual(self.store.load(), [])

    def test_clear(self) -> None:
        _record(self.store, "x")
        self.store.clear()
        self.assertEqual(self.store.entries, ())
        self.assertNotIn(HISTORY_KEY, self.persistence.values)

    def test_thumbnail_uses_entry_colours_and_is_cached(self) -> None:
        options = RenderOptions(size=600, foreground_color="#4338ca", background_color="#fefefe")
        entry = self.store.record(TextContent("hello"), "hello", options)
        thumb = self.store.thumbnail(entry)
        self.assertEqual(thumb.size, (100, 100))
        self.assertEqual(thumb.getpixel((0, 0)), (254, 254, 254))
        self.assertIn((67, 56, 202), set(thumb.getdata()))
        self.assertIs(self.store.thumbnail(entry), thumb)

    def test_restore_simple_entries(self) -> None:
        url = self.store.record(UrlContent("https://a.test"), "https://a.test", RenderOptions())
        wifi = self.store.record(WifiContent(ssid="Home"), "WIFI:S:Home;T:WPA;P:;;", RenderOptions())
        self.assertEqual(HistoryStore.restore(url), UrlContent("https://a.test"))
        self.assertIsNone(HistoryStore.restore(wifi))


class JsonFilePersistenceTest(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "nested" / "store.json"
        self.clock = FakeClock()

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def test_round_trip_across_instances(self) -> None:
        JsonFilePersistence(self.path, clock=self.clock).set("k", "v", ttl_days=30)
        self.assertEqual(JsonFilePersistence(self.path, clock=self.clock).get("k"), "v")

    def test_value_expires(self) -> None:
        store = JsonFilePersistence(self.path, clock=self.clock)
        store.set("k", "v", ttl_days=30)
        self.clock.now += 29 * 86400
        self.assertEqual(store.get("k"), "v")
        self.clock.now += 2 * 86400
        self.assertIsNone(store.get("k"))

    def test_remove(self) -> None:
        store = JsonFilePersistence(self.path, clock=self.clock)
        store.set("k", "v", ttl_days=1)
        store.remove("k")
        self.assertIsNone(store.get("k"))

    def test_unreadable_file_is_empty(self) -> None:
        self.path.parent.mkdir(parents=True)
        self.path.write_text("garbage", encoding="utf-8")
        store = JsonFilePersistence(self.path, clock=self.clock)
        with self.assertLogs("qrcraft.history", level="WARNING"):
            self.assertIsNone(store.get("k"))

    def test_non_numeric_expiry_loads_empty_history(self) -> None:
        self.path.parent.mkdir(parents=True)
        self.path.write_text(
            json.dumps({HISTORY_KEY: {"value": "[]", "expires": "2030-01-01"}}), encoding="utf-8")
        persistence = JsonFilePersistence(self.path, clock=self.clock)
        self.assertIsNone(persistence.get(HISTORY_KEY))
        self.assertEqual(HistoryStore(persistence).load(), [])

    def test_history_store_over_file(self) -> None:
        store = HistoryStore(JsonFilePersistence(self.path, clock=self.clock), clock=self.clock)
        _record(store, "persisted")
        again = HistoryStore(JsonFilePersistence(self.path, clock=self.clock))
        self.assertEqual([e.payload for e in again.load()], ["persisted"])


if __name__ == "__main__":
    unittest.main()
