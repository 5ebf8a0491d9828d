"""Tests for ExplorerConfig."""
import pytest
from pydantic import ValidationError

from dbexplorer.config import ExplorerConfig


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("DBEXPLORER_STRICT", "DBEXPLORER_RAISE_ON_UNRESOLVED", "DBEXPLORER_TIMEOUT",
                 "DBEXPLORER_MAX_ENTITIES", "DBEXPLORER_LOG_LEVEL", "DBEXPLORER_DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults_are_lenient():
    config = ExplorerConfig()
    assert not config.strict
    assert not config.fail_on_residual
    assert config.timeout_seconds is None


def test_residual_handling_follows_strict_unless_set():
    assert ExplorerConfig(strict=True).fail_on_residual
    assert not ExplorerConfig(strict=True, raise_on_unresolved=False).fail_on_residual
    assert ExplorerConfig(raise_on_unresolved=True).fail_on_residual


def test_limits_must_be_positive():
    with pytest.raises(ValidationError):
        ExplorerConfig(timeout_seconds=0)
    with pytest.raises(ValidationError):
        ExplorerConfig(max_entities=-1)


def test_from_env(clean_env):
    clean_env.setenv("DBEXPLORER_STRICT", "yes")
    clean_env.setenv("DBEXPLORER_TIMEOUT", "2.5")
    clean_env.setenv("DBEXPLORER_MAX_ENTITIES", "100")
    clean_env.setenv("DBEXPLORER_LOG_LEVEL", "debug")
    clean_env.setenv("DBEXPLORER_DATABASE_URL", "sqlite:///shop.db")

    config = ExplorerConfig.from_env()

    assert config.strict
    assert config.fail_on_residual
    assert config.timeout_seconds == 2.5
    assert config.max_entities == 100
    assert config.log_level == "DEBUG"
    assert config.database_url == "sqlite:///shop.db"


def test_overrides_win_over_env(clean_env):
    clean_env.setenv("DBEXPLORER_DATABASE_URL", "sqlite:///env.db")
    clean_env.setenv("DBEXPLORER_RAISE_ON_UNRESOLVED", "0")

    config = ExplorerConfig.from_env(database_url="sqlite:///cli.db", max_entities=None)

    assert config.database_url == "sqlite:///cli.db"
    assert config.raise_on_unresolved is False
    assert config.max_entities is None
