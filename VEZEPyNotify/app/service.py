from __future__ import annotations

import logging
import time
from dataclasses import asdict
from typing import Any, Dict, Optional

from .store import EventRecord, NotificationStore, isoformat_z, utcnow

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("package_name", "app_name", "title")


class RejectedInput(Exception):
    """A submitted notification is missing one of the required fields."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        self.message = "Missing required fields"
        self.error = "package_name, app_name, and title are required"
        super().__init__(f"{self.message}: {', '.join(missing)}")


def parse_window_param(raw: Any, default: int) -> int:
    """Lenient parse for limit/offset query values.

    Absent, non-integer and negative values all fall back to `default`.
    """
    if raw is None:
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        return default
    return value if value >= 0 else default


class NotificationService:
    """The operations the HTTP layer exposes, on top of one owned store."""

    def __init__(self, store: Optional[NotificationStore] = None, *, default_limit: int = 50):
        self.store = store if store is not None else NotificationStore()
        self.default_limit = default_limit
        self._started = time.monotonic()

    def submit(self, raw: Any) -> Dict[str, Any]:
        if not isinstance(raw, dict):
            raise TypeError(f"notification body must be a JSON object, got {type(raw).__name__}")
        missing = [f for f in REQUIRED_FIELDS if not raw.get(f)]
        if missing:
            raise RejectedInput(missing)
        record = EventRecord.model_validate(raw)
        assigned_id, total = self.store.append(record)
        logger.info(
            "notification #%d received device=%s app=%s (%s) title=%r text=%r client_ts=%s server_ts=%s",
            assigned_id,
            record.device_id,
            record.app_name,
            record.package_name,
            record.title,
            record.text,
            record.timestamp,
            record.server_received_at,
        )
        return {"ok": True, "assigned_id": assigned_id, "total": total, "app_name": record.app_name}

    def ping(self) -> Dict[str, Any]:
        logger.info("ping received")
        return {"server_time": isoformat_z(utcnow()), "uptime_seconds": time.monotonic() - self._started}

    def query(self, limit: Any = None, offset: Any = None) -> Dict[str, Any]:
        limit = parse_window_param(limit, self.default_limit)
        offset = parse_window_param(offset, 0)
        total, records = self.store.list_recent(limit, offset)
        return {"total": total, "showing": len(records), "records": records}

    def stats(self) -> Dict[str, Any]:
        total, devices = self.store.stats()
        return {"device_count": len(devices), "total": total, "devices": [asdict(d) for d in devices]}

    def reset(self) -> Dict[str, Any]:
        cleared = self.store.clear()
        logger.info("cleared %d notifications", cleared)
        return {"cleared_count": cleared}
