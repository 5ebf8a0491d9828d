"""
dbexplorer CLI

Extracts the records reachable from one seed row of a SQLAlchemy-mapped
database and prints the INSERT script that recreates them.
"""
import importlib
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from dbexplorer.config import ExplorerConfig
from dbexplorer.errors import ExplorerError, UnresolvedDependencyOrderError
from dbexplorer.explorer.engine import Explorer
from dbexplorer.models import ExplorationResult
from dbexplorer.sql_provider import SqlAlchemySchemaProvider

app = typer.Typer(
    name="dbexplorer",
    help="Extract a seed record and everything it references as ordered INSERT statements",
    add_completion=False,
)

console = Console(stderr=True)


def dynamic_import(path_str: str) -> Any:
    """Import an object dynamically by its dotted path."""
    try:
        mod_name, attr_name = path_str.rsplit(".", 1)
        mod = importlib.import_module(mod_name)
        return getattr(mod, attr_name)
    except (ValueError, ImportError, AttributeError) as e:
        raise ImportError(f"Failed to import {path_str}: {e}")


def parse_primary_key(value: str) -> Any:
    """Parse '42' as an int, 'a,b' as a composite key, anything else as text."""
    if "," in value:
        return tuple(parse_primary_key(part.strip()) for part in value.split(","))
    try:
        return int(value)
    except ValueError:
        return value


def _run(
    base_path: str,
    entity_type: str,
    primary_key: str,
    config: ExplorerConfig,
) -> ExplorationResult:
    logging.basicConfig(level=config.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    if not config.database_url:
        console.print("[red]No database URL given (use --url or DBEXPLORER_DATABASE_URL)[/red]")
        raise typer.Exit(1)

    base = dynamic_import(base_path)
    engine = create_engine(config.database_url)
    try:
        with Session(engine) as session:
            provider = SqlAlchemySchemaProvider.from_base(session, base)
            explorer = Explorer(provider, config)
            return explorer.explore(entity_type, parse_primary_key(primary_key))
    finally:
        engine.dispose()


def _config(url: Optional[str], strict: bool, timeout: Optional[float], max_entities: Optional[int],
            log_level: Optional[str], fail_on_residual: bool) -> ExplorerConfig:
    return ExplorerConfig.from_env(
        database_url=url,
        strict=strict or None,
        raise_on_unresolved=fail_on_residual or None,
        timeout_seconds=timeout,
        max_entities=max_entities,
        log_level=log_level.upper() if log_level else None,
    )


@app.command()
def extract(
    base_path: str = typer.Argument(..., help="Dotted path of the declarative base, e.g. myapp.models.Base"),
    entity_type: str = typer.Argument(..., help="Mapped class name of the seed record"),
    primary_key: str = typer.Argument(..., help="Primary key of the seed record (comma separated if composite)"),
    url: Optional[str] = typer.Option(None, "--url", help="Database URL (defaults to DBEXPLORER_DATABASE_URL)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the script to a file"),
    strict: bool = typer.Option(False, "--strict", help="Abort on the first record that fails to resolve"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Stop exploring after this many seconds"),
    max_entities: Optional[int] = typer.Option(None, "--max-entities", help="Stop after visiting this many records"),
    include_residual: bool = typer.Option(True, "--residual/--no-residual",
                                          help="Append inserts of types that could not be ordered"),
    fail_on_residual: bool = typer.Option(False, "--fail-on-residual",
                                          help="Exit with status 2 when some types could not be ordered"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
):
    """
    Print the INSERT script for a seed record and everything it references.
    """
    config = _config(url, strict, timeout, max_entities, log_level, fail_on_residual)
    try:
        result = _run(base_path, entity_type, primary_key, config)
    except UnresolvedDependencyOrderError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(2)
    except (ExplorerError, ImportError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    script = result.to_script(include_residual=include_residual)
    if output:
        output.write_text(script, encoding="utf-8")
        console.print(f"Wrote {result.visited_count} records to {output}")
    else:
        sys.stdout.write(script)

    if not result.completed:
        console.print(f"[yellow]Exploration incomplete: {result.abort_reason}[/yellow]")
    if result.skipped:
        console.print(f"[yellow]{len(result.skipped)} records could not be explored[/yellow]")
    if result.residual:
        console.print(f"[yellow]Unresolved dependencies: {sorted(result.residual)}[/yellow]")


@app.command()
def plan(
    base_path: str = typer.Argument(..., help="Dotted path of the declarative base, e.g. myapp.models.Base"),
    entity_type: str = typer.Argument(..., help="Mapped class name of the seed record"),
    primary_key: str = typer.Argument(..., help="Primary key of the seed record (comma separated if composite)"),
    url: Optional[str] = typer.Option(None, "--url", help="Database URL (defaults to DBEXPLORER_DATABASE_URL)"),
    strict: bool = typer.Option(False, "--strict", help="Abort on the first record that fails to resolve"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
):
    """
    Show the insert order and per-type record counts without printing SQL.
    """
    config = _config(url, strict, None, None, log_level, False)
    try:
        result = _run(base_path, entity_type, primary_key, config)
    except (ExplorerError, ImportError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"Insert order for {result.seed}")
    table.add_column("#", justify="right")
    table.add_column("Type")
    table.add_column("Records", justify="right")
    table.add_column("Depends on")
    for i, name in enumerate(result.insert_order, 1):
        deps = ", ".join(sorted(result.dependencies.get(name, ())))
        table.add_row(str(i), name, str(len(result.inserts.get(name, []))), deps)
    for name, deps in result.residual.items():
        table.add_row("-", f"[red]{name}[/red]", str(len(result.inserts.get(name, []))), ", ".join(sorted(deps)))
    Console().print(table)
    Console().print(f"Visited {result.visited_count} records in {result.elapsed_seconds:.2f}s")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
