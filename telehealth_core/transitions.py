from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from .models import EntityKind, StatusChangeEvent, utc_now
from .notifications import EventBus
from .store_protocol import EntityStore, Record

logger = logging.getLogger(__name__)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


@dataclass
class TransitionRecorder:
    """Persists a record, writes the audit trail and publishes the status change."""

    store: EntityStore
    events: EventBus = field(default_factory=EventBus)
    clock: Callable[[], datetime] = utc_now

    def commit(
        self,
        kind: EntityKind,
        record: Record,
        *,
        action: str,
        payload: dict[str, Any] | None = None,
        publish: bool = True,
    ) -> Record:
        self.store.put(kind, record)
        self.store.audit(
            entity_type=kind.value,
            entity_id=record["id"],
            action=action,
            payload={"status": record.get("status"), **(payload or {})},
        )
        if publish:
            self._publish(kind, record, action=action)
        return record

    def _publish(self, kind: EntityKind, record: Record, *, action: str) -> None:
        event = StatusChangeEvent(
            entity_kind=kind,
            entity_id=str(record["id"]),
            new_status=str(record.get("status") or action),
            timestamp=self.clock(),
            metadata={"action": action},
        )
        try:
            deliveries = self.events.publish(event)
        except Exception as exc:
            logger.warning(
                "Status change notification failed for %s %s: %s",
                kind.value,
                record["id"],
                exc,
            )
            self.store.audit(
                entity_type=kind.value,
                entity_id=record["id"],
                action="NOTIFICATION_FAILED",
                payload={"new_status": event.new_status, "error": str(exc)},
            )
            return
        if deliveries:
            failed = any(item.status == "FAILED" for item in deliveries)
            self.store.audit(
                entity_type=kind.value,
                entity_id=record["id"],
                action="NOTIFICATION_FAILED" if failed else "NOTIFICATION_DISPATCHED",
                payload={
                    "new_status": event.new_status,
                    "deliveries": [
                        {
                            "channel": item.channel,
                            "status": item.status,
                            "detail": item.detail,
                        }
                        for item in deliveries
                    ],
                },
            )
