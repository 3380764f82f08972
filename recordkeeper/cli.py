"""
recordkeeper CLI.

Operational commands for the data-access layer: create tables, inspect the
audit trail and schema metadata, classify column types, evict cache keys.
"""

import asyncio
import uuid
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from recordkeeper.config.settings import settings
from recordkeeper.utils.column_types import get_group

app = typer.Typer(
    name="recordkeeper",
    help="recordkeeper data-access CLI",
    add_completion=False,
)
console = Console()

DatabaseUrlOption = typer.Option(None, "--database-url", help="Overrides DATABASE_URL")


# =============================================================================
# Database Commands
# =============================================================================


@app.command()
def init_db(database_url: Optional[str] = DatabaseUrlOption):
    """Create every registered table (development and tests only)."""

    async def _init():
        from recordkeeper.infrastructure.db import create_engine, init_models

        engine = create_engine(database_url)
        try:
            await init_models(engine)
        finally:
            await engine.dispose()

    if settings.environment == "production":
        console.print("[red]init-db is not available in production, migrate the schema instead[/red]")
        raise typer.Exit(1)

    asyncio.run(_init())
    console.print("[green]✓ Tables created[/green]")


@app.command()
def history(
    object_id: str = typer.Argument(..., help="Id of the audited object"),
    database_url: Optional[str] = DatabaseUrlOption,
    show_values: bool = typer.Option(False, "--values", "-v", help="Print before/after snapshots"),
):
    """Show the audit trail of one object, most recent first."""
    try:
        parsed_id = uuid.UUID(object_id)
    except ValueError:
        console.print(f"[red]✗ Not a UUID: {object_id}[/red]")
        raise typer.Exit(1)

    async def _history():
        from recordkeeper.infrastructure.db import create_engine, create_session_factory, session_scope
        from recordkeeper.repositories.object_versioning import ObjectVersioningRepository

        engine = create_engine(database_url)
        try:
            async with session_scope(create_session_factory(engine)) as session:
                return await ObjectVersioningRepository(session).get_by_object_id(parsed_id)
        finally:
            await engine.dispose()

    versions = asyncio.run(_history())
    if not versions:
        console.print("[yellow]No audit records for this object[/yellow]")
        return

    table = Table(title=f"History of {parsed_id}")
    table.add_column("Updated on", style="cyan")
    table.add_column("Type")
    table.add_column("Updated by", style="green")
    if show_values:
        table.add_column("Before")
        table.add_column("After")

    for version in versions:
        row = [version.updated_on.isoformat(), version.object_type, version.updated_by]
        if show_values:
            row += [version.before_value or "", version.after_value]
        table.add_row(*row)

    console.print(table)


@app.command()
def table_columns(
    table_name: str = typer.Argument(..., help="Table name as stored in table_columns"),
    database_url: Optional[str] = DatabaseUrlOption,
):
    """Show the schema metadata stored for a table."""

    async def _load():
        from recordkeeper.infrastructure.db import create_engine, create_session_factory, session_scope
        from recordkeeper.models import TableColumns
        from recordkeeper.services.table_columns import to_dto

        engine = create_engine(database_url)
        try:
            async with session_scope(create_session_factory(engine)) as session:
                row = await session.get(TableColumns, table_name)
                return to_dto(row) if row is not None else None
        finally:
            await engine.dispose()

    dto = asyncio.run(_load())
    if dto is None:
        console.print(f"[yellow]No metadata for table '{table_name}'[/yellow]")
        raise typer.Exit(1)

    table = Table(title=dto.table_name)
    table.add_column("#", style="dim")
    table.add_column("Column", style="cyan")
    table.add_column("Type")
    table.add_column("Group", style="green")
    table.add_column("Max length")
    table.add_column("Nullable")
    table.add_column("Default")

    for column in dto.columns:
        group = get_group(column.type)
        table.add_row(
            str(column.order),
            column.name,
            column.type,
            group.value if group else "-",
            str(column.max_length),
            "yes" if column.nullable else "no",
            column.default_value or "",
        )

    console.print(table)


# =============================================================================
# Metadata Commands
# =============================================================================


@app.command()
def classify(data_types: List[str] = typer.Argument(..., help="SQL type names")):
    """Classify SQL column types into groups."""
    table = Table(title="Column type groups")
    table.add_column("Type", style="cyan")
    table.add_column("Group", style="green")

    for data_type in data_types:
        group = get_group(data_type)
        table.add_row(data_type, group.value if group else "[yellow]unknown[/yellow]")

    console.print(table)


# =============================================================================
# Cache Commands
# =============================================================================


@app.command()
def cache_remove(
    key: str = typer.Argument(..., help="Cache key, without the configured prefix"),
):
    """Evict one cache key."""

    async def _remove():
        from recordkeeper.infrastructure.redis_pool import close_redis_pool, get_redis_pool
        from recordkeeper.repositories import get_cache_repository

        client = await get_redis_pool()
        try:
            return await get_cache_repository(client).remove(key)
        finally:
            await close_redis_pool()

    if asyncio.run(_remove()):
        console.print(f"[green]✓ Removed {key}[/green]")
    else:
        console.print(f"[yellow]Key not found: {key}[/yellow]")


# =============================================================================
# Config Commands
# =============================================================================


@app.command()
def check_config():
    """Validate settings for the current environment."""
    errors = settings.validate_production()

    table = Table(title="Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Environment", settings.environment)
    table.add_row("Cache TTL (s)", str(settings.cache_default_ttl_seconds))
    table.add_row("Cache key prefix", settings.cache_key_prefix)
    table.add_row("Audit failures raise", str(settings.audit_failure_raises))
    console.print(table)

    if errors:
        for error in errors:
            console.print(f"[red]✗ {error}[/red]")
        raise typer.Exit(1)

    console.print("[green]✓ Configuration OK[/green]")


def main():
    app()


if __name__ == "__main__":
    main()
