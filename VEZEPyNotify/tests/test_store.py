import threading
from datetime import timedelta

from VEZEPyNotify.app.store import (
    DeviceRegistry,
    EventRecord,
    EventStore,
    NotificationStore,
    device_key,
    isoformat_z,
)


def _record(payload, device_id="A", **kw) -> EventRecord:
    return EventRecord.model_validate(payload(device_id, **kw))


def test_isoformat_z_millisecond_precision(clock):
    assert isoformat_z(clock()) == "2025-01-01T12:00:00.000Z"


def test_append_assigns_sequential_ids(store, payload):
    results = [store.append(_record(payload)) for _ in range(5)]
    assert results == [(1, 1), (2, 2), (3, 3), (4, 4), (5, 5)]
    assert len(store) == 5


def test_append_stamps_receipt_time(store, payload):
    rec = _record(payload)
    store.append(rec)
    assert rec.server_received_at == "2025-01-01T12:00:00.000Z"


def test_client_supplied_receipt_time_is_overwritten(store, payload):
    rec = _record(payload, server_received_at="1999-01-01T00:00:00.000Z")
    store.append(rec)
    assert rec.server_received_at == "2025-01-01T12:00:00.000Z"


def test_duplicate_submissions_are_kept(store, payload):
    store.append(_record(payload))
    store.append(_record(payload))
    total, records = store.list_recent(50, 0)
    assert total == 2 and len(records) == 2


def test_extra_fields_are_preserved(store, payload):
    store.append(_record(payload, priority=2, channel="chats"))
    _, records = store.list_recent(1, 0)
    assert records[0]["priority"] == 2
    assert records[0]["channel"] == "chats"


def test_event_store_window_newest_first(payload):
    events = EventStore()
    for i in range(1, 11):
        events.append(_record(payload, title=f"t{i}"))
    assert [r.title for r in events.list_recent(3, 0)] == ["t10", "t9", "t8"]
    assert [r.title for r in events.list_recent(3, 2)] == ["t8", "t7", "t6"]
    # window running past the oldest record returns what remains
    assert [r.title for r in events.list_recent(5, 8)] == ["t2", "t1"]
    assert events.list_recent(5, 10) == []
    assert events.list_recent(5, 50) == []
    assert events.list_recent(0, 0) == []


def test_window_length_matches_formula(store, payload):
    for _ in range(7):
        store.append(_record(payload))
    for limit in range(0, 10):
        for offset in range(0, 10):
            total, records = store.list_recent(limit, offset)
            assert len(records) == max(0, min(limit, total - offset))


def test_window_is_contiguous_slice_of_history(store, payload):
    for i in range(1, 8):
        store.append(_record(payload, title=str(i)))
    _, records = store.list_recent(3, 1)
    assert [r["title"] for r in records] == ["6", "5", "4"]


def test_returned_records_are_copies(store, payload):
    store.append(_record(payload))
    _, records = store.list_recent(1, 0)
    records[0]["title"] = "mutated"
    _, again = store.list_recent(1, 0)
    assert again[0]["title"] == "New message"


def test_registry_first_and_last_seen():
    reg = DeviceRegistry()
    reg.record_seen("A", "t1")
    reg.record_seen("A", "t2")
    stats = reg.record_seen("A", "t3")
    assert stats.count == 3
    assert stats.first_seen == "t1"
    assert stats.last_seen == "t3"


def test_registry_null_device_is_its_own_key():
    reg = DeviceRegistry()
    reg.record_seen(None, "t1")
    reg.record_seen(None, "t2")
    reg.record_seen("A", "t3")
    snap = {s.device_id: s for s in reg.snapshot()}
    assert snap[None].count == 2
    assert snap["A"].count == 1
    assert len(reg) == 2


def test_registry_snapshot_is_detached():
    reg = DeviceRegistry()
    reg.record_seen("A", "t1")
    reg.snapshot()[0].count = 99
    assert reg.snapshot()[0].count == 1


def test_counts_track_records_per_device(store, payload):
    for device in ["A", "B", "A", "C", "A", "B", None]:
        store.append(_record(payload, device_id=device))
    total, devices = store.stats()
    _, records = store.list_recent(total, 0)
    for d in devices:
        assert d.count == sum(1 for r in records if r["device_id"] == d.device_id)
    assert sum(d.count for d in devices) == total == 7


def test_last_seen_matches_latest_record(store, payload):
    store.append(_record(payload, device_id="A"))
    store.append(_record(payload, device_id="B"))
    store.append(_record(payload, device_id="A"))
    _, records = store.list_recent(10, 0)
    latest_a = next(r for r in records if r["device_id"] == "A")
    first_a = [r for r in records if r["device_id"] == "A"][-1]
    stats = {d.device_id: d for d in store.stats()[1]}
    assert stats["A"].last_seen == latest_a["server_received_at"]
    assert stats["A"].first_seen == first_a["server_received_at"]


def test_receipt_time_never_goes_backwards(payload):
    class BackwardsClock:
        def __init__(self, start):
            self.now = start

        def __call__(self):
            current = self.now
            self.now = self.now - timedelta(seconds=5)
            return current

    from VEZEPyNotify.app.store import utcnow

    store = NotificationStore(clock=BackwardsClock(utcnow()))
    stamps = []
    for _ in range(3):
        rec = _record(payload)
        store.append(rec)
        stamps.append(rec.server_received_at)
    assert stamps == sorted(stamps)
    device = store.stats()[1][0]
    assert device.first_seen == stamps[0]
    assert device.last_seen == stamps[-1]


def test_clear_resets_both_structures(store, payload):
    for device in ["A", "A", "B"]:
        store.append(_record(payload, device_id=device))
    assert store.clear() == 3
    assert store.list_recent(50, 0) == (0, [])
    assert store.stats() == (0, [])
    # ids restart after a clear
    assert store.append(_record(payload)) == (1, 1)


def test_concurrent_appends_keep_counts_consistent(payload):
    store = NotificationStore()
    ids: list[int] = []
    ids_lock = threading.Lock()

    def worker(device_id):
        for _ in range(200):
            assigned, total = store.append(_record(payload, device_id=device_id))
            assert assigned == total
            with ids_lock:
                ids.append(assigned)

    threads = [threading.Thread(target=worker, args=(f"dev-{i}",)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    total, devices = store.stats()
    assert total == 1600
    assert sorted(ids) == list(range(1, 1601))
    assert all(d.count == 200 for d in devices)
    assert len(devices) == 8


def test_device_key_keeps_types_apart():
    assert len({device_key(1), device_key("1"), device_key(True), device_key(1.0), device_key(None)}) == 5
    assert device_key({"b": 1, "a": 2}) == device_key({"a": 2, "b": 1})
    assert device_key(["a", "b"]) != device_key(["b", "a"])
