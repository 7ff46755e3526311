"""In-memory notification store with per-device aggregation.

Nothing here survives a restart. `NotificationStore` is the only owner of the
two structures and the only place they are mutated.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, ConfigDict


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_z(dt: datetime) -> str:
    # 2025-01-01T12:00:00.000Z
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def device_key(device_id: Any) -> Tuple[str, Any]:
    """Registry key for a device id of any JSON type.

    The type name keeps `1`, `"1"` and `true` apart; unhashable ids (lists,
    objects) are keyed by their canonical JSON text.
    """
    kind = type(device_id).__name__
    if isinstance(device_id, (list, dict)):
        return kind, json.dumps(device_id, sort_keys=True)
    return kind, device_id


class EventRecord(BaseModel):
    """One received notification, kept as the client sent it plus receipt time."""

    # Only presence of the required fields is checked; values stay as sent.
    model_config = ConfigDict(extra="allow")

    device_id: Any = None
    package_name: Any
    app_name: Any
    title: Any
    text: Any = None
    timestamp: Any = None
    server_received_at: str | None = None


@dataclass
class DeviceStats:
    device_id: Any
    count: int
    first_seen: str
    last_seen: str


class EventStore:
    def __init__(self):
        self._records: List[EventRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    def append(self, record: EventRecord) -> int:
        self._records.append(record)
        return len(self._records)

    def list_recent(self, limit: int, offset: int) -> List[EventRecord]:
        end = max(len(self._records) - max(offset, 0), 0)
        start = max(end - max(limit, 0), 0)
        return list(reversed(self._records[start:end]))

    def clear(self) -> int:
        count = len(self._records)
        self._records.clear()
        return count


class DeviceRegistry:
    def __init__(self):
        self._devices: Dict[Tuple[str, Any], DeviceStats] = {}

    def __len__(self) -> int:
        return len(self._devices)

    def record_seen(self, device_id: Any, timestamp: str) -> DeviceStats:
        key = device_key(device_id)
        stats = self._devices.get(key)
        if stats is None:
            stats = DeviceStats(device_id=device_id, count=1, first_seen=timestamp, last_seen=timestamp)
            self._devices[key] = stats
        else:
            stats.count += 1
            stats.last_seen = timestamp
        return stats

    def snapshot(self) -> List[DeviceStats]:
        return [DeviceStats(**asdict(s)) for s in self._devices.values()]

    def clear(self) -> None:
        self._devices.clear()


class NotificationStore:
    """Owns an `EventStore` and a `DeviceRegistry` behind a single lock.

    Every public method is one critical section, so a reader never sees a
    record without its device update (or the reverse), and ids handed back
    from `append` always match the total at that instant.
    """

    def __init__(self, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._events = EventStore()
        self._devices = DeviceRegistry()
        self._last_received: datetime | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def _stamp(self) -> str:
        now = self._clock()
        # Receipt times never go backwards, even if the host clock does.
        if self._last_received is not None and now < self._last_received:
            now = self._last_received
        self._last_received = now
        return isoformat_z(now)

    def append(self, record: EventRecord) -> Tuple[int, int]:
        with self._lock:
            record.server_received_at = self._stamp()
            total = self._events.append(record)
            self._devices.record_seen(record.device_id, record.server_received_at)
            return total, total

    def list_recent(self, limit: int, offset: int) -> Tuple[int, List[Dict[str, Any]]]:
        with self._lock:
            window = self._events.list_recent(limit, offset)
            return len(self._events), [r.model_dump() for r in window]

    def stats(self) -> Tuple[int, List[DeviceStats]]:
        with self._lock:
            return len(self._events), self._devices.snapshot()

    def clear(self) -> int:
        with self._lock:
            count = self._events.clear()
            self._devices.clear()
            self._last_received = None
            return count
