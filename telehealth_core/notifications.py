from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol
from urllib.error import URLError
from urllib.request import Request, urlopen

from .config import TelehealthConfig
from .models import EntityKind, StatusChangeEvent

logger = logging.getLogger(__name__)

Subscriber = Callable[[StatusChangeEvent], None]


@dataclass
class NotificationDelivery:
    channel: str
    status: str
    detail: str


class NotificationDispatcherProtocol(Protocol):
    label: str

    def dispatch(self, event: StatusChangeEvent) -> list[NotificationDelivery]:
        ...


@dataclass
class NoopNotificationDispatcher:
    label: str = "disabled"

    def dispatch(self, event: StatusChangeEvent) -> list[NotificationDelivery]:
        logger.info(
            "Notification noop for kind=%s entity_id=%s status=%s",
            event.entity_kind.value,
            event.entity_id,
            event.new_status,
        )
        return [NotificationDelivery(channel="noop", status="SKIPPED", detail="Disabled.")]


@dataclass
class HookNotificationDispatcher:
    config: TelehealthConfig
    label: str = "hooks"

    def dispatch(self, event: StatusChangeEvent) -> list[NotificationDelivery]:
        if not self.config.notification_webhook_url:
            return [
                NotificationDelivery(
                    channel="hooks",
                    status="SKIPPED",
                    detail="No notification hooks configured.",
                )
            ]
        return [
            self._send_http_hook(
                channel="webhook",
                url=self.config.notification_webhook_url,
                payload=event.to_payload(),
            )
        ]

    def _send_http_hook(
        self, *, channel: str, url: str, payload: dict[str, Any]
    ) -> NotificationDelivery:
        data = json.dumps(payload).encode("utf-8")
        request = Request(
            url,
            data=data,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urlopen(
                request,
                timeout=self.config.notification_timeout_seconds,
            ) as response:
                status_code = getattr(response, "status", None) or response.getcode()
            if 200 <= int(status_code) < 300:
                return NotificationDelivery(
                    channel=channel,
                    status="SENT",
                    detail=f"HTTP {status_code}",
                )
            detail = f"HTTP {status_code}"
            if self.config.notification_fail_open:
                return NotificationDelivery(channel=channel, status="FAILED", detail=detail)
            raise RuntimeError(f"{channel} hook failed with {detail}")
        except (URLError, TimeoutError, RuntimeError, OSError) as exc:
            if self.config.notification_fail_open:
                logger.warning("Notification hook %s failed: %s", channel, exc)
                return NotificationDelivery(channel=channel, status="FAILED", detail=str(exc))
            raise


@dataclass
class _Subscription:
    callback: Subscriber
    kinds: frozenset[EntityKind] | None


@dataclass
class EventBus:
    """In-process fan-out of status changes to subscribers and an outbound dispatcher."""

    dispatcher: NotificationDispatcherProtocol | None = None
    dispatch_kinds: frozenset[EntityKind] = field(
        default_factory=lambda: frozenset(EntityKind)
    )
    _subscriptions: list[_Subscription] = field(default_factory=list)

    def subscribe(
        self,
        callback: Subscriber,
        kinds: Iterable[EntityKind | str] | None = None,
    ) -> Callable[[], None]:
        subscription = _Subscription(
            callback=callback,
            kinds=frozenset(EntityKind(kind) for kind in kinds) if kinds is not None else None,
        )
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    def publish(self, event: StatusChangeEvent) -> list[NotificationDelivery]:
        for subscription in list(self._subscriptions):
            if subscription.kinds is not None and event.entity_kind not in subscription.kinds:
                continue
            try:
                subscription.callback(event)
            except Exception:
                logger.exception(
                    "Subscriber failed for kind=%s entity_id=%s",
                    event.entity_kind.value,
                    event.entity_id,
                )
        if self.dispatcher is None or event.entity_kind not in self.dispatch_kinds:
            return []
        return self.dispatcher.dispatch(event)
