from __future__ import annotations

import logging

from .config import TelehealthConfig
from .models import EntityKind
from .notifications import (
    EventBus,
    HookNotificationDispatcher,
    NoopNotificationDispatcher,
    NotificationDispatcherProtocol,
)

logger = logging.getLogger(__name__)


def build_notifier(config: TelehealthConfig) -> NotificationDispatcherProtocol:
    if not config.notifications_enabled:
        return NoopNotificationDispatcher(label="disabled")
    return HookNotificationDispatcher(config=config, label="hooks")


def build_event_bus(config: TelehealthConfig) -> EventBus:
    kinds: set[EntityKind] = set()
    for raw in config.notify_on_kinds:
        try:
            kinds.add(EntityKind(raw.strip().lower()))
        except ValueError:
            logger.warning("Ignoring unknown notification kind %r.", raw)
    return EventBus(dispatcher=build_notifier(config), dispatch_kinds=frozenset(kinds))
