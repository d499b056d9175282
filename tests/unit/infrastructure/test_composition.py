"""Tests for the composition root's resource lifecycle."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from tubesig.infrastructure.cache.diskcache_adapter import DiskcacheAdapter
from tubesig.infrastructure.cache.memory_adapter import MemoryCacheAdapter
from tubesig.infrastructure.composition import build_services
from tubesig.infrastructure.config.schema import AppConfig


def _make_transport() -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(404))


class TestScriptStore:
    @pytest.mark.asyncio()
    async def test_memory_backend_builds_memory_store(self) -> None:
        config = AppConfig(cache_backend="memory")
        async with build_services(config, transport=_make_transport()) as services:
            assert isinstance(services.store, MemoryCacheAdapter)
            await services.store.set("k", {"text": "x"})
            assert await services.store.get("k") == {"text": "x"}

    @pytest.mark.asyncio()
    async def test_diskcache_backend_closed_on_exit(self, tmp_path: Path) -> None:
        config = AppConfig(cache_backend="diskcache", cache_dir=str(tmp_path / "store"))
        async with build_services(config, transport=_make_transport()) as services:
            store = services.store
            assert isinstance(store, DiskcacheAdapter)
            assert await store.exists("missing") is False

        with pytest.raises(RuntimeError, match="not opened"):
            await store.get("missing")

    @pytest.mark.asyncio()
    @patch("tubesig.infrastructure.composition.create_http_client")
    @patch("tubesig.infrastructure.composition.create_cache")
    async def test_store_closed_when_client_setup_fails(
        self, mock_create_cache, mock_create_client
    ) -> None:
        store = AsyncMock()
        mock_create_cache.return_value = store
        mock_create_client.side_effect = RuntimeError("bad proxy")

        with pytest.raises(RuntimeError, match="bad proxy"):
            async with build_services(AppConfig()):
                pass

        store.__aenter__.assert_awaited_once()
        store.aclose.assert_awaited_once()
