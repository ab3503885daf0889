"""
Tests for schema migrations.
"""

import pytest

from storage.migrations import (
    apply_migrations,
    list_migrations,
    render_migration,
    render_table_settings,
)
from storage.repositories.exceptions import SchemaError


# =============================================================
# TEST: Rendering
# =============================================================

class TestRendering:
    """DDL is rendered from the .sql files with table and settings."""

    def test_blocks_table_ddl(self):
        path = list_migrations()[0]
        ddl = render_migration(path.read_text(), "blocks")

        assert path.name == "0001_create_blocks_table.sql"
        assert ddl.startswith("CREATE TABLE IF NOT EXISTS blocks (")
        assert "block_height UInt64" in ddl
        assert "inserted_at DateTime" in ddl
        assert "ENGINE = MergeTree" in ddl
        assert "PARTITION BY toYYYYMM(date_time)" in ddl
        assert ddl.endswith("ORDER BY (block_height, toDate(date_time))")

    def test_settings_numbers_bare_strings_quoted(self):
        clause = render_table_settings({"index_granularity": 8192, "storage_policy": "hot"})

        assert clause == "SETTINGS index_granularity = 8192, storage_policy = 'hot'"

    def test_no_settings_renders_nothing(self):
        assert render_table_settings({}) == ""
        assert render_table_settings(None) == ""

    def test_settings_appended_to_create_table(self):
        ddl = render_migration(
            "CREATE TABLE IF NOT EXISTS {table} (x UInt8) ENGINE = MergeTree ORDER BY x;",
            "blocks_test",
            {"index_granularity": 1024},
        )

        assert ddl == (
            "CREATE TABLE IF NOT EXISTS blocks_test (x UInt8) ENGINE = MergeTree ORDER BY x\n"
            "SETTINGS index_granularity = 1024"
        )

    def test_settings_not_appended_to_other_statements(self):
        ddl = render_migration("ALTER TABLE {table} ADD COLUMN y UInt8", "blocks", {"a": 1})

        assert "SETTINGS" not in ddl


# =============================================================
# TEST: Applying
# =============================================================

class TestApplyMigrations:

    @pytest.mark.asyncio
    async def test_runs_every_file_in_order(self, fake_client):
        applied = await apply_migrations(fake_client, "blocks", {"index_granularity": 8192})

        assert applied == [p.name for p in list_migrations()]
        assert fake_client.commands[0].startswith("CREATE TABLE IF NOT EXISTS blocks")
        assert fake_client.commands[0].endswith("SETTINGS index_granularity = 8192")

    @pytest.mark.asyncio
    async def test_idempotent(self, fake_client):
        """Running twice issues the same IF NOT EXISTS statements."""
        await apply_migrations(fake_client, "blocks")
        await apply_migrations(fake_client, "blocks")

        assert fake_client.commands[0] == fake_client.commands[1]

    @pytest.mark.asyncio
    async def test_failure_raises_schema_error(self, fake_client):
        fake_client.fail_commands = True

        with pytest.raises(SchemaError) as exc_info:
            await apply_migrations(fake_client, "blocks")

        assert exc_info.value.migration == "0001_create_blocks_table.sql"

    @pytest.mark.asyncio
    async def test_custom_directory(self, fake_client, tmp_path):
        (tmp_path / "0002_second.sql").write_text("SELECT 2")
        (tmp_path / "0001_first.sql").write_text("SELECT 1")

        applied = await apply_migrations(fake_client, "blocks", directory=tmp_path)

        assert applied == ["0001_first.sql", "0002_second.sql"]
        assert fake_client.commands == ["SELECT 1", "SELECT 2"]
