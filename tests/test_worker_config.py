from __future__ import annotations

import pytest

from pawcalm_workers.config import Config, reference_timezone_from_env


def test_config_from_env_requires_database_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DATABASE_URL", raising=False)

    with pytest.raises(RuntimeError, match="DATABASE_URL must be set"):
        Config.from_env()


def test_config_from_env_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql://app@db/pawcalm")
    for name in (
        "PAWCALM_POLL_INTERVAL",
        "PAWCALM_BATCH_SIZE",
        "PAWCALM_MAX_RETRIES",
        "PAWCALM_HEALTH_PORT",
        "PAWCALM_LOG_FORMAT",
        "PAWCALM_REFERENCE_TIMEZONE",
    ):
        monkeypatch.delenv(name, raising=False)

    cfg = Config.from_env()
    assert cfg.database_url == "postgresql://app@db/pawcalm"
    assert cfg.poll_interval_seconds == 5.0
    assert cfg.batch_size == 10
    assert cfg.log_format == "json"
    assert cfg.reference_timezone == "UTC"


def test_config_from_env_reference_timezone(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql://app@db/pawcalm")
    monkeypatch.setenv("PAWCALM_REFERENCE_TIMEZONE", "America/Chicago")

    assert Config.from_env().reference_timezone == "America/Chicago"


def test_config_from_env_rejects_unknown_timezone(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql://app@db/pawcalm")
    monkeypatch.setenv("PAWCALM_REFERENCE_TIMEZONE", "Mars/Olympus_Mons")

    with pytest.raises(RuntimeError, match="not a valid IANA timezone"):
        Config.from_env()


def test_reference_timezone_from_env_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PAWCALM_REFERENCE_TIMEZONE", "nowhere")
    assert reference_timezone_from_env() == "UTC"
