"""Configuration tests."""

from __future__ import annotations

from spendcast.config import BaseConfig, TestingConfig


def test_data_dir_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("SPENDCAST_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("SPENDCAST_DATABASE_URL", raising=False)

    config = BaseConfig()

    assert config.DATA_DIR == (tmp_path / "data").resolve()
    assert config.DATA_DIR.is_dir()
    assert config.DATABASE_URL.endswith("spendcast.db")
    assert config.is_sqlite


def test_numeric_settings_fall_back_on_bad_values(tmp_path, monkeypatch):
    monkeypatch.setenv("SPENDCAST_MIN_FORECAST_TRANSACTIONS", "lots")
    monkeypatch.setenv("SPENDCAST_FORECAST_HISTORY_MONTHS", "18")

    config = BaseConfig(tmp_path)

    assert config.MIN_FORECAST_TRANSACTIONS == 10
    assert config.FORECAST_HISTORY_MONTHS == 18
    assert config.PROJECTION_MAX_MONTHS == 120


def test_dev_mode_flag(tmp_path, monkeypatch):
    monkeypatch.setenv("SPENDCAST_DEV_MODE", "off")

    assert BaseConfig(tmp_path).DEV_MODE is False


def test_testing_config_ignores_database_url(tmp_path, monkeypatch):
    monkeypatch.setenv("SPENDCAST_DATABASE_URL", "postgresql://example/db")

    config = TestingConfig(tmp_path)

    assert config.DATABASE_URL == f"sqlite:///{tmp_path.resolve() / 'spendcast.db'}"
    assert config.DEV_MODE is True
    assert config.sqlalchemy_engine_options()["connect_args"]["check_same_thread"] is False
