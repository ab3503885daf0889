"""
Storage - Migrations Package.

This directory contains the ClickHouse schema, one statement per
numbered .sql file. Files use a {table} placeholder for the blocks
table name.

============================================================
MIGRATION GUIDELINES
============================================================

1. Never modify existing migrations
2. Every statement must be idempotent (IF NOT EXISTS)
3. Files run in filename order

============================================================
USAGE
============================================================

    applied = await apply_migrations(client, "blocks", {"index_granularity": 8192})

============================================================
"""

import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional

from storage.clickhouse import ClickHouseClient, ClickHouseError
from storage.repositories.exceptions import SchemaError


logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent


def list_migrations(directory: Optional[Path] = None) -> List[Path]:
    """Return migration files in the order they must run."""
    return sorted((directory or MIGRATIONS_DIR).glob("*.sql"))


def render_table_settings(settings: Optional[Mapping[str, Any]]) -> str:
    """
    Render a MergeTree SETTINGS clause.

    Numbers are written bare, everything else single-quoted.
    Returns an empty string when there is nothing to render.
    """
    if not settings:
        return ""
    parts = []
    for key, value in settings.items():
        if isinstance(value, bool):
            rendered = "1" if value else "0"
        elif isinstance(value, (int, float)):
            rendered = str(value)
        else:
            escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
            rendered = f"'{escaped}'"
        parts.append(f"{key} = {rendered}")
    return "SETTINGS " + ", ".join(parts)


def render_migration(
    sql: str,
    table: str,
    settings: Optional[Mapping[str, Any]] = None,
) -> str:
    """Substitute the table name and, for CREATE TABLE, append settings."""
    statement = sql.replace("{table}", table).strip().rstrip(";").strip()
    clause = render_table_settings(settings)
    if clause and statement.upper().startswith("CREATE TABLE"):
        statement = f"{statement}\n{clause}"
    return statement


async def apply_migrations(
    client: ClickHouseClient,
    table: str = "blocks",
    settings: Optional[Mapping[str, Any]] = None,
    directory: Optional[Path] = None,
) -> List[str]:
    """
    Run every migration file against the configured database.

    Returns:
        Names of the files that were executed

    Raises:
        SchemaError: On the first statement the server rejects
    """
    applied: List[str] = []
    for path in list_migrations(directory):
        statement = render_migration(path.read_text(encoding="utf-8"), table, settings)
        try:
            await client.command(statement)
        except ClickHouseError as e:
            logger.error(f"[migrations] {path.name} failed: {e}")
            raise SchemaError(
                repository_name=table,
                migration=path.name,
                original_error=str(e),
            ) from e
        logger.info(f"[migrations] applied {path.name} to {table}")
        applied.append(path.name)
    return applied


__all__ = [
    "MIGRATIONS_DIR",
    "apply_migrations",
    "list_migrations",
    "render_migration",
    "render_table_settings",
]
