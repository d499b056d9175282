"""Composition root: wires every collaborator from one AppConfig."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import httpx
import structlog

from tubesig.application.use_cases.video_info import VideoInfoUseCase
from tubesig.domain.ports.cache import CachePort
from tubesig.infrastructure.cache.cache_factory import create_cache
from tubesig.infrastructure.common.cookies import (
    CombinedCookieProvider,
    CookieFileProvider,
    StaticCookieProvider,
)
from tubesig.infrastructure.common.http_client import create_http_client
from tubesig.infrastructure.config.schema import AppConfig
from tubesig.infrastructure.download.streamer import MediaStreamer
from tubesig.infrastructure.formats.metadata import add_format_meta
from tubesig.infrastructure.formats.ranking import sort_formats
from tubesig.infrastructure.innertube.clients import resolve_clients
from tubesig.infrastructure.innertube.identifiers import parse_video_id
from tubesig.infrastructure.innertube.player_api import PlayerApi
from tubesig.infrastructure.player.functions import PlayerFunctions, ScriptDumper
from tubesig.infrastructure.player.script_fetcher import PlayerScriptFetcher
from tubesig.infrastructure.resolver.url_resolver import SignatureResolver

log = structlog.get_logger(__name__)


@dataclass
class Services:
    """Everything a command needs, sharing one HTTP client."""

    config: AppConfig
    http_client: httpx.AsyncClient
    fetcher: PlayerScriptFetcher
    functions: PlayerFunctions
    resolver: SignatureResolver
    player_api: PlayerApi
    video_info: VideoInfoUseCase
    streamer: MediaStreamer
    store: CachePort | None = None


def build_cookie_provider(config: AppConfig) -> CombinedCookieProvider:
    providers: list[StaticCookieProvider | CookieFileProvider] = []
    if config.session_cookie:
        providers.append(StaticCookieProvider(config.session_cookie))
    if config.session_cookie_file:
        providers.append(CookieFileProvider(config.session_cookie_file))
    return CombinedCookieProvider(*providers)


@asynccontextmanager
async def build_services(
    config: AppConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[Services]:
    """Create and later close all resources.

    Order matters:
        1. Script store (warm-start tier, in-process or on disk)
        2. HTTP client (cookies, throttling, retries)
        3. Script fetcher and compiled program memo
        4. Resolver, player API, use case, streamer

    Anything opened before a later step fails is closed again.
    """
    store = create_cache(
        config.cache_backend,
        directory=config.cache_dir,
        ttl_seconds=int(config.player_script_ttl_seconds),
    )
    http_client: httpx.AsyncClient | None = None

    try:
        await store.__aenter__()
        log.info("script_store_initialized", backend=config.cache_backend)

        http_client = create_http_client(
            timeout_seconds=config.http_timeout_seconds,
            user_agent=config.http_user_agent,
            proxy=config.http_proxy,
            max_retries=config.http_max_retries,
            rate_limit_rps=config.http_rate_limit_rps,
            cookies=build_cookie_provider(config),
            transport=transport,
        )

        fetcher = PlayerScriptFetcher(
            http_client,
            seed_url=config.player_seed_url,
            base_url=config.player_base_url,
            ttl_seconds=config.player_script_ttl_seconds,
            store=store,
            pinned_script_url=config.player_pinned_script_url,
        )
        dumper = (
            ScriptDumper(config.player_debug_dump_dir)
            if config.player_debug_dump_dir
            else None
        )
        functions = PlayerFunctions(fetcher, dumper=dumper)
        resolver = SignatureResolver(functions)
        player_api = PlayerApi(
            http_client,
            visitor_data=config.session_visitor_data,
            po_token=config.session_po_token,
        )
        video_info = VideoInfoUseCase(
            player_api=player_api,
            functions=resolver,
            clients=resolve_clients(config.clients),
            parse_id_fn=parse_video_id,
            enrich_fn=add_format_meta,
            sort_fn=sort_formats,
            po_token=config.session_po_token,
        )
        streamer = MediaStreamer(http_client, chunk_size=config.download_chunk_size)
        log.debug("services_ready", clients=config.clients)

        yield Services(
            config=config,
            http_client=http_client,
            fetcher=fetcher,
            functions=functions,
            resolver=resolver,
            player_api=player_api,
            video_info=video_info,
            streamer=streamer,
            store=store,
        )
    finally:
        if http_client is not None:
            await http_client.aclose()
        await store.aclose()
