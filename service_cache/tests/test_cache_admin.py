"""
Unit tests for the cache administration CLI.
"""

import json
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from scripts import cache_admin
from shared.config import CacheConfig
from shared.errors import StoreError
from shared.logging import run_id_var


class TestCacheAdmin:
    """Test cases for cache_admin commands."""

    @pytest.fixture
    def config(self):
        return CacheConfig(postgres_dsn="postgresql://db/cache", schema_name="public", table_name="entries")

    @pytest.mark.asyncio
    async def test_provision(self, config):
        """Provision creates the table explicitly and closes the pool."""
        store = MagicMock()
        store.start = AsyncMock()
        store.create_table = AsyncMock()
        store.stop = AsyncMock()

        with patch.object(cache_admin, "create_async_store", return_value=store) as factory:
            summary = await cache_admin.provision(config)

        assert factory.call_args.args[0].create_infrastructure is False
        store.create_table.assert_awaited_once()
        store.stop.assert_awaited_once()
        assert summary == {"schema": "public", "table": "entries", "provisioned": True}

    @pytest.mark.asyncio
    async def test_sweep(self, config):
        """Sweep reports the removed row count and never provisions."""
        cache = MagicMock()
        cache.sweep = AsyncMock(return_value=3)
        cache.store.stop = AsyncMock()

        with patch.object(cache_admin, "create_async_cache", new_callable=AsyncMock, return_value=cache) as factory:
            summary = await cache_admin.sweep(config)

        assert factory.await_args.args[0].create_infrastructure is False
        assert factory.await_args.args[0].table_name == "entries"
        assert config.create_infrastructure is True
        assert summary["removed"] == 3
        cache.store.stop.assert_awaited_once()

    def test_main_prints_summary(self, capsys):
        """main() prints JSON tagged with the run id and exits 0."""
        summary = {"schema": "public", "table": "cache_items", "removed": 0}
        seen_run_ids = []

        async def fake_sweep(config):
            seen_run_ids.append(run_id_var.get())
            return dict(summary)

        argv = ["cache_admin", "sweep", "--table", "cache_items", "--run-id", "nightly-1"]
        with patch("sys.argv", argv), \
                patch.object(cache_admin, "configure_logging"), \
                patch.object(cache_admin, "sweep", side_effect=fake_sweep):
            exit_code = cache_admin.main()

        assert exit_code == 0
        assert seen_run_ids == ["nightly-1"]
        assert json.loads(capsys.readouterr().out) == dict(summary, run_id="nightly-1")
        assert run_id_var.get() is None

    def test_main_reports_cache_error(self, capsys):
        """Cache errors keep their code and details in the error document."""
        error = StoreError("create_table", "permission denied for schema public")

        with patch("sys.argv", ["cache_admin", "provision", "--run-id", "ci-7"]), \
                patch.object(cache_admin, "configure_logging"), \
                patch.object(cache_admin, "provision", new_callable=AsyncMock, side_effect=error):
            exit_code = cache_admin.main()

        captured = capsys.readouterr()
        document = json.loads(captured.err)
        assert exit_code == 1
        assert captured.out == ""
        assert document["command"] == "provision"
        assert document["run_id"] == "ci-7"
        assert document["error"] == {
            "code": "STORE_ERROR",
            "message": "create_table: permission denied for schema public",
            "details": {"operation": "create_table"},
        }

    def test_main_reports_unexpected_error(self, capsys):
        """Other failures are reported with their type."""
        with patch("sys.argv", ["cache_admin", "sweep"]), \
                patch.object(cache_admin, "configure_logging"), \
                patch.object(cache_admin, "sweep", new_callable=AsyncMock, side_effect=RuntimeError("refused")):
            exit_code = cache_admin.main()

        document = json.loads(capsys.readouterr().err)
        assert exit_code == 1
        assert document["error"]["code"] == "UNEXPECTED_ERROR"
        assert document["error"]["message"] == "refused"
        assert document["error"]["details"] == {"type": "RuntimeError"}
