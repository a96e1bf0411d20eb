from __future__ import annotations

from pricing_copilot.config import DEFAULT_COMPETITOR_NAMES, load_settings

ENV_KEYS = [
    "ACTIONS_STORE_PATH",
    "AUDIT_LOG_PATH",
    "AUDIT_LOG_MAX_ENTRIES",
    "ROOM_CATALOG_PATH",
    "ROOM_PRICE_CSV_PATH",
    "COMPETITOR_NAMES",
    "REVERT_SCHEDULER_ENABLED",
    "REVERT_SCHEDULER_INTERVAL_SECONDS",
    "PENDING_PROPOSAL_TTL_SECONDS",
    "PENDING_PROPOSAL_MAX_SESSIONS",
    "LOCAL_TIMEZONE",
    "DEFAULT_OPERATOR",
]


def test_load_settings_defaults(monkeypatch) -> None:
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)

    settings = load_settings()

    assert settings.actions_store_path == "data/actions_config.json"
    assert settings.audit_log_max_entries == 1000
    assert settings.room_price_csv_path is None
    assert settings.competitor_names == DEFAULT_COMPETITOR_NAMES
    assert settings.revert_scheduler_enabled is True
    assert settings.revert_scheduler_interval_seconds == 3600
    assert settings.pending_proposal_ttl_seconds == 1800
    assert settings.pending_proposal_max_sessions == 1000
    assert settings.local_timezone == "UTC"
    assert settings.default_operator == "system"


def test_load_settings_reads_overrides_from_env(monkeypatch) -> None:
    monkeypatch.setenv("COMPETITOR_NAMES", " Ace Hotel , , Standard Downtown")
    monkeypatch.setenv("REVERT_SCHEDULER_ENABLED", "false")
    monkeypatch.setenv("REVERT_SCHEDULER_INTERVAL_SECONDS", "0")
    monkeypatch.setenv("PENDING_PROPOSAL_TTL_SECONDS", "not-a-number")
    monkeypatch.setenv("ROOM_PRICE_CSV_PATH", "data/rooms.csv")
    monkeypatch.setenv("LOCAL_TIMEZONE", "America/New_York")

    settings = load_settings()

    assert settings.competitor_names == ["Ace Hotel", "Standard Downtown"]
    assert settings.revert_scheduler_enabled is False
    assert settings.revert_scheduler_interval_seconds == 1
    assert settings.pending_proposal_ttl_seconds == 1800
    assert settings.room_price_csv_path == "data/rooms.csv"
    assert settings.local_timezone == "America/New_York"
