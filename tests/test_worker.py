"""Unit tests for per-job processing in the worker."""

import logging
from unittest.mock import AsyncMock, MagicMock

from pawcalm_workers.config import Config
from pawcalm_workers.logging import ContextFilter, record_context
from pawcalm_workers.registry import _registry
from pawcalm_workers.worker import Worker


class _FakeTransaction:
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


def _make_mock_conn():
    conn = AsyncMock()
    conn.transaction = MagicMock(return_value=_FakeTransaction())
    conn.execute = AsyncMock()
    return conn


def _job(**overrides):
    job = {
        "id": 7,
        "job_type": "test.context",
        "dog_id": None,
        "payload": {"dog_id": "dog-1"},
        "attempt": 1,
        "max_retries": 3,
    }
    job.update(overrides)
    return job


async def test_job_runs_inside_log_context(monkeypatch):
    seen = {}

    async def handler(conn, payload):
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "inside", (), None)
        ContextFilter().filter(record)
        seen["context"] = record_context(record)
        seen["payload"] = payload

    monkeypatch.setitem(_registry, "test.context", handler)
    conn = _make_mock_conn()
    worker = Worker(Config(database_url="postgresql://unused", reference_timezone="America/Chicago"))

    await worker._process_job(conn, _job())

    assert seen["context"] == {"job_id": 7, "job_type": "test.context", "subject_id": "dog-1"}
    assert seen["payload"] == {"reference_timezone": "America/Chicago", "dog_id": "dog-1"}
    completed = conn.execute.await_args
    assert "SET status = 'completed'" in completed.args[0]
    assert completed.args[1] == (7,)


async def test_payload_timezone_overrides_config(monkeypatch):
    seen = {}

    async def handler(conn, payload):
        seen.update(payload)

    monkeypatch.setitem(_registry, "test.context", handler)
    worker = Worker(Config(database_url="postgresql://unused"))

    await worker._process_job(
        _make_mock_conn(), _job(payload={"reference_timezone": "Europe/Berlin"})
    )

    assert seen["reference_timezone"] == "Europe/Berlin"
