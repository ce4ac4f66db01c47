from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip()
    return value if value else default


def _env_csv(name: str, default: list[str] | None = None) -> list[str]:
    raw = os.getenv(name)
    if raw is None:
        return list(default or [])
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class TelehealthConfig:
    db_path: str = field(default_factory=lambda: os.getenv("TELEHEALTH_DB_PATH", "telehealth.db"))
    store_backend: str = "sqlite"
    log_level: str = "INFO"
    heartbeat_timeout_seconds: int = 90
    emergency_hotline: str = "994"
    eta_minutes_per_km: float = 3.0
    seed_demo_data: bool = False
    notifications_enabled: bool = True
    notify_on_kinds: list[str] = field(
        default_factory=lambda: ["consultations", "emergencies", "doctors", "dispatches"]
    )
    notification_webhook_url: str = field(
        default_factory=lambda: os.getenv("TELEHEALTH_NOTIFICATION_WEBHOOK_URL", "")
    )
    notification_timeout_seconds: float = 6.0
    notification_fail_open: bool = True

    @classmethod
    def from_env(cls) -> "TelehealthConfig":
        cfg = cls()
        cfg.store_backend = _env_str("TELEHEALTH_STORE_BACKEND", cfg.store_backend).lower()
        cfg.log_level = _env_str("TELEHEALTH_LOG_LEVEL", cfg.log_level).upper()
        cfg.heartbeat_timeout_seconds = _env_int(
            "TELEHEALTH_HEARTBEAT_TIMEOUT_SECONDS",
            cfg.heartbeat_timeout_seconds,
        )
        cfg.emergency_hotline = _env_str("TELEHEALTH_EMERGENCY_HOTLINE", cfg.emergency_hotline)
        cfg.eta_minutes_per_km = _env_float(
            "TELEHEALTH_ETA_MINUTES_PER_KM",
            cfg.eta_minutes_per_km,
        )
        cfg.seed_demo_data = _env_bool("TELEHEALTH_SEED_DEMO_DATA", cfg.seed_demo_data)
        cfg.notifications_enabled = _env_bool(
            "TELEHEALTH_NOTIFICATIONS_ENABLED",
            cfg.notifications_enabled,
        )
        cfg.notify_on_kinds = _env_csv(
            "TELEHEALTH_NOTIFY_ON_KINDS",
            cfg.notify_on_kinds,
        ) or list(cfg.notify_on_kinds)
        cfg.notification_webhook_url = _env_str(
            "TELEHEALTH_NOTIFICATION_WEBHOOK_URL",
            cfg.notification_webhook_url,
        )
        cfg.notification_timeout_seconds = _env_float(
            "TELEHEALTH_NOTIFICATION_TIMEOUT_SECONDS",
            cfg.notification_timeout_seconds,
        )
        cfg.notification_fail_open = _env_bool(
            "TELEHEALTH_NOTIFICATION_FAIL_OPEN",
            cfg.notification_fail_open,
        )
        return cfg
