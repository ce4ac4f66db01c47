from telehealth_core.config import TelehealthConfig


def test_defaults(monkeypatch) -> None:
    for name in ("TELEHEALTH_DB_PATH", "TELEHEALTH_NOTIFICATION_WEBHOOK_URL", "TELEHEALTH_HEARTBEAT_TIMEOUT_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    config = TelehealthConfig.from_env()
    assert config.db_path == "telehealth.db"
    assert config.store_backend == "sqlite"
    assert config.heartbeat_timeout_seconds == 90
    assert config.emergency_hotline == "994"
    assert config.eta_minutes_per_km == 3.0
    assert config.notification_webhook_url == ""


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("TELEHEALTH_DB_PATH", "/tmp/custom.db")
    monkeypatch.setenv("TELEHEALTH_STORE_BACKEND", "Memory")
    monkeypatch.setenv("TELEHEALTH_LOG_LEVEL", "debug")
    monkeypatch.setenv("TELEHEALTH_HEARTBEAT_TIMEOUT_SECONDS", "30")
    monkeypatch.setenv("TELEHEALTH_EMERGENCY_HOTLINE", "112")
    monkeypatch.setenv("TELEHEALTH_SEED_DEMO_DATA", "yes")
    monkeypatch.setenv("TELEHEALTH_NOTIFICATIONS_ENABLED", "false")
    monkeypatch.setenv("TELEHEALTH_NOTIFY_ON_KINDS", "emergencies, dispatches")
    config = TelehealthConfig.from_env()
    assert config.db_path == "/tmp/custom.db"
    assert config.store_backend == "memory"
    assert config.log_level == "DEBUG"
    assert config.heartbeat_timeout_seconds == 30
    assert config.emergency_hotline == "112"
    assert config.seed_demo_data is True
    assert config.notifications_enabled is False
    assert config.notify_on_kinds == ["emergencies", "dispatches"]


def test_malformed_numbers_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("TELEHEALTH_HEARTBEAT_TIMEOUT_SECONDS", "soon")
    monkeypatch.setenv("TELEHEALTH_ETA_MINUTES_PER_KM", "fast")
    config = TelehealthConfig.from_env()
    assert config.heartbeat_timeout_seconds == 90
    assert config.eta_minutes_per_km == 3.0
