# tests/test_config.py

from __future__ import annotations

from pathlib import Path

from pocket_pilot.config import Settings


def test_env_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("POCKET_DEVICE_PIN", " 4321 ")
    monkeypatch.setenv("POCKET_LOCK_TIMEOUT_SECONDS", "30")
    monkeypatch.setenv("POCKET_LLM_MODELS", "model-a, model-b")
    monkeypatch.setenv("POCKET_INDICATOR_ENABLED", "no")
    monkeypatch.setenv("POCKET_DATA_DIR", str(tmp_path))

    s = Settings.from_env()

    assert s.device_pin == "4321"
    assert s.lock_timeout_seconds == 30.0
    assert s.llm_models == ["model-a", "model-b"]
    assert s.indicator_enabled is False
    assert s.data_dir == tmp_path


def test_bad_numbers_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("POCKET_LOG_CAPACITY", "lots")
    monkeypatch.setenv("POCKET_SCHEDULER_INTERVAL_SECONDS", "")

    s = Settings.from_env()

    assert s.log_capacity == 100
    assert s.scheduler_interval_seconds == 60.0
