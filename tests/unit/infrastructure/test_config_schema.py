"""Tests for the AppConfig model and logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from tubesig.infrastructure.config.schema import AppConfig, EnvOverrides
from tubesig.infrastructure.logging.setup import (
    NOISY_LOGGERS,
    _stop_async_listener,
    build_logging_config,
    configure_logging,
)


class TestAppConfig:
    def test_sectioned_and_flat_keys(self) -> None:
        config = AppConfig.model_validate(
            {"http": {"proxy": "http://p:1"}, "log_level": "DEBUG"}
        )
        assert config.http_proxy == "http://p:1"
        assert config.log_level == "DEBUG"

    def test_clients_normalized(self) -> None:
        assert AppConfig(clients="ios, android_vr").clients == ["IOS", "ANDROID_VR"]

    def test_unknown_client_rejected(self) -> None:
        with pytest.raises(ValidationError, match="unknown clients"):
            AppConfig(clients=["IOS", "WEB_REMIX"])

    def test_empty_clients_rejected(self) -> None:
        with pytest.raises(ValidationError, match="at least one client"):
            AppConfig(clients=[])

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("http_timeout_seconds", 0),
            ("player_script_ttl_seconds", -1),
            ("http_max_retries", -1),
            ("http_rate_limit_rps", -0.5),
            ("download_chunk_size", 0),
        ],
    )
    def test_range_checks(self, field: str, value: float) -> None:
        with pytest.raises(ValidationError):
            AppConfig.model_validate({field: value})

    def test_optional_paths(self) -> None:
        config = AppConfig(player_debug_dump_dir="", session_cookie_file="~/cookies.txt")
        assert config.player_debug_dump_dir is None
        assert config.session_cookie_file == Path("~/cookies.txt").expanduser()

    def test_log_format_follows_environment(self) -> None:
        assert AppConfig(environment="prod").log_format == "json"
        assert AppConfig(environment="test").log_format == "console"
        assert AppConfig(environment="prod", log_format="console").log_format == "console"

    def test_sectioned_dump_masks_secrets(self) -> None:
        dumped = AppConfig(session_cookie="SID=1", session_po_token="pot").to_sectioned_dict()
        assert dumped["session"]["cookie"] == "***"
        assert dumped["session"]["po_token"] == "***"
        assert dumped["clients"] == ["WEB_EMBEDDED", "IOS", "ANDROID", "TV"]

    def test_env_overrides_only_set_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TUBESIG_HTTP_MAX_RETRIES", "7")
        assert EnvOverrides().to_update_dict() == {"http_max_retries": 7}


class TestLoggingSetup:
    def test_build_logging_config(self) -> None:
        cfg = build_logging_config(AppConfig(log_level="WARNING"))
        assert cfg["root"]["level"] == "WARNING"
        assert cfg["handlers"]["default"]["stream"] == "ext://sys.stderr"
        assert all(cfg["loggers"][name]["level"] == "WARNING" for name in NOISY_LOGGERS)

    def test_debug_unmutes_http_loggers(self) -> None:
        cfg = build_logging_config(AppConfig(log_level="DEBUG"))
        assert cfg["loggers"]["httpx"]["level"] == "DEBUG"

    def test_configure_logging_installs_queue_handler(self) -> None:
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            configure_logging(AppConfig(log_level="ERROR", log_format="json"))
            assert root.level == logging.ERROR
            assert len(root.handlers) == 1
            assert type(root.handlers[0]).__name__ == "_StructlogPreservingQueueHandler"
        finally:
            _stop_async_listener()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
