"""Tests for the dbexplorer command line."""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from typer.testing import CliRunner

from dbexplorer.cli import app, dynamic_import, parse_primary_key

from shop_models import Base, populate

runner = CliRunner()

pytestmark = pytest.mark.cli


@pytest.fixture
def database_url(tmp_path, monkeypatch):
    monkeypatch.delenv("DBEXPLORER_DATABASE_URL", raising=False)
    monkeypatch.delenv("DBEXPLORER_STRICT", raising=False)
    monkeypatch.delenv("DBEXPLORER_RAISE_ON_UNRESOLVED", raising=False)
    url = f"sqlite:///{tmp_path / 'shop.db'}"
    engine = create_engine(url)
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        populate(session)
    engine.dispose()
    return url


def test_parse_primary_key():
    assert parse_primary_key("42") == 42
    assert parse_primary_key("abc") == "abc"
    assert parse_primary_key("1, x") == (1, "x")


def test_dynamic_import():
    assert dynamic_import("shop_models.Base") is Base
    with pytest.raises(ImportError):
        dynamic_import("shop_models.Nope")
    with pytest.raises(ImportError):
        dynamic_import("no_dots")


def test_extract_prints_ordered_script(database_url):
    result = runner.invoke(app, ["extract", "shop_models.Base", "Customer", "7", "--url", database_url])

    assert result.exit_code == 0
    script = result.stdout
    assert script.index("INSERT INTO customers") < script.index("INSERT INTO profiles")
    assert script.index("INSERT INTO orders") < script.index("INSERT INTO line_items")
    assert "Unresolved" not in script


def test_extract_to_file(database_url, tmp_path):
    target = tmp_path / "order.sql"
    result = runner.invoke(
        app, ["extract", "shop_models.Base", "Order", "1", "--url", database_url, "--output", str(target)]
    )

    assert result.exit_code == 0
    lines = target.read_text(encoding="utf-8").splitlines()
    assert lines[0].startswith("INSERT INTO orders")
    assert len(lines) == 4


def test_extract_missing_seed(database_url):
    result = runner.invoke(app, ["extract", "shop_models.Base", "Order", "999", "--url", database_url])

    assert result.exit_code == 1


def test_extract_requires_url(monkeypatch):
    monkeypatch.delenv("DBEXPLORER_DATABASE_URL", raising=False)
    result = runner.invoke(app, ["extract", "shop_models.Base", "Order", "1"])

    assert result.exit_code == 1


def test_extract_bad_base_path(database_url):
    result = runner.invoke(app, ["extract", "shop_models.Missing", "Order", "1", "--url", database_url])

    assert result.exit_code == 1


def test_plan(database_url):
    result = runner.invoke(app, ["plan", "shop_models.Base", "Company", "1", "--url", database_url])

    assert result.exit_code == 0
    assert "Manager" in result.stdout
    assert "Visited 3 records" in result.stdout


def test_extract_appends_residual_by_default(database_url):
    result = runner.invoke(app, ["extract", "shop_models.Base", "Project", "1", "--url", database_url])

    assert result.exit_code == 0
    script = result.stdout
    assert script.startswith("INSERT INTO projects")
    assert "-- Unresolved dependencies: Task -> {Owner}, Owner -> {Task}" in script
    assert script.index("-- Unresolved") < script.index("INSERT INTO tasks")
    assert "INSERT INTO owners" in script


def test_extract_without_residual(database_url):
    result = runner.invoke(
        app, ["extract", "shop_models.Base", "Project", "1", "--url", database_url, "--no-residual"]
    )

    assert result.exit_code == 0
    script = result.stdout
    assert "INSERT INTO projects" in script
    assert "Unresolved" not in script
    assert "INSERT INTO tasks" not in script
    assert "INSERT INTO owners" not in script


@pytest.mark.parametrize("flag", ["--fail-on-residual", "--strict"])
def test_extract_fails_on_residual(database_url, flag):
    result = runner.invoke(app, ["extract", "shop_models.Base", "Project", "1", "--url", database_url, flag])

    assert result.exit_code == 2
    assert "INSERT INTO" not in result.stdout
