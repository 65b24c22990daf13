import dataclasses

import pytest

from stock_analysis_engine.config import DEFAULT_CALIBRATION, EngineConfig, _env_bool, _env_float, _env_int, _env_str


def test_env_helpers_fall_back_on_missing_or_bad_values(monkeypatch):
    monkeypatch.delenv("SA_TEST_KEY", raising=False)
    assert _env_float("SA_TEST_KEY", 1.5) == 1.5
    monkeypatch.setenv("SA_TEST_KEY", "not-a-number")
    assert _env_float("SA_TEST_KEY", 1.5) == 1.5
    assert _env_int("SA_TEST_KEY", 3) == 3
    monkeypatch.setenv("SA_TEST_KEY", "")
    assert _env_str("SA_TEST_KEY", "x") == "x"


def test_env_helpers_parse(monkeypatch):
    monkeypatch.setenv("SA_TEST_KEY", "0.6")
    assert _env_float("SA_TEST_KEY", 0.4) == 0.6
    monkeypatch.setenv("SA_TEST_KEY", "21")
    assert _env_int("SA_TEST_KEY", 20) == 21
    for off in ("0", "false", "No", "OFF"):
        monkeypatch.setenv("SA_TEST_KEY", off)
        assert _env_bool("SA_TEST_KEY", True) is False
    monkeypatch.setenv("SA_TEST_KEY", "yes")
    assert _env_bool("SA_TEST_KEY", False) is True


def test_config_is_frozen():
    cfg = EngineConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.rsi_period = 2


def test_scoring_weights_sum_to_one():
    cfg = EngineConfig()
    assert cfg.w_rsi + cfg.w_bollinger + cfg.w_macd + cfg.w_volume == pytest.approx(1.0)


def test_calibration_table_sorted_and_bounded():
    scores = [a[0] for a in DEFAULT_CALIBRATION]
    assert scores == sorted(scores)
    assert scores[0] == -100.0 and scores[-1] == 100.0
