"""Pydantic configuration models with validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]
CacheBackendName = Literal["memory", "diskcache"]

KNOWN_CLIENTS = ("WEB_EMBEDDED", "TV", "IOS", "ANDROID", "ANDROID_VR")


def _normalize_path(value: Any) -> Path:
    """
    Normalize a path-like value without causing filesystem side-effects.

    This function MUST NOT create directories or files.
    """
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise TypeError(f"Expected path-like value, got: {type(value)!r}")


def _section(name: str, key: str, flat: str) -> AliasChoices:
    return AliasChoices(flat, AliasPath(name, key))


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    YAML is sectioned (http/player/session/cache/logging/download plus a
    top-level ``clients`` list).  Environment variables are read by
    EnvOverrides so that load.py controls precedence
    (defaults < YAML < ENV < CLI).
    """

    # General
    app_name: str = Field(default="tubesig", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # HTTP (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=30.0,
        validation_alias=_section("http", "timeout_seconds", "http_timeout_seconds"),
        description="Timeout for every outgoing request.",
    )
    http_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
        ),
        validation_alias=_section("http", "user_agent", "http_user_agent"),
        description="User-Agent for seed page, script and media requests.",
    )
    http_proxy: Optional[str] = Field(
        default=None,
        validation_alias=_section("http", "proxy", "http_proxy"),
        description="Proxy URL for all requests.",
    )
    http_max_retries: int = Field(
        default=3,
        validation_alias=_section("http", "max_retries", "http_max_retries"),
        description="Retries on 429/503 and timeouts.",
    )
    http_rate_limit_rps: float = Field(
        default=0.0,
        validation_alias=_section("http", "rate_limit_rps", "http_rate_limit_rps"),
        description="Requests per second per domain. 0 = unlimited.",
    )

    # Player script (YAML section: player.*)
    player_seed_url: str = Field(
        default="https://www.youtube.com/embed/",
        validation_alias=_section("player", "seed_url", "player_seed_url"),
        description="Page whose body names the current player script.",
    )
    player_base_url: str = Field(
        default="https://www.youtube.com",
        validation_alias=_section("player", "base_url", "player_base_url"),
        description="Origin used to absolutize relative script URLs.",
    )
    player_script_ttl_seconds: float = Field(
        default=86_400,
        validation_alias=_section("player", "script_ttl_seconds", "player_script_ttl_seconds"),
        description="How long a fetched player script stays valid.",
    )
    player_pinned_script_url: Optional[str] = Field(
        default=None,
        validation_alias=_section("player", "pinned_script_url", "player_pinned_script_url"),
        description="Always use this script and skip the seed page.",
    )
    player_debug_dump_dir: Optional[Path] = Field(
        default=None,
        validation_alias=_section("player", "debug_dump_dir", "player_debug_dump_dir"),
        description="Write scripts that failed extraction here.",
    )

    # Device clients (YAML: clients: [...])
    clients: list[str] = Field(
        default_factory=lambda: ["WEB_EMBEDDED", "IOS", "ANDROID", "TV"],
        description="Simulated device clients queried for formats, in order.",
    )

    # Session (YAML section: session.*)
    session_cookie: Optional[str] = Field(
        default=None,
        validation_alias=_section("session", "cookie", "session_cookie"),
        description="Raw Cookie header sent to the platform.",
    )
    session_cookie_file: Optional[Path] = Field(
        default=None,
        validation_alias=_section("session", "cookie_file", "session_cookie_file"),
        description="Netscape cookies.txt export.",
    )
    session_visitor_data: Optional[str] = Field(
        default=None,
        validation_alias=_section("session", "visitor_data", "session_visitor_data"),
        description="Visitor id sent with player API requests.",
    )
    session_po_token: Optional[str] = Field(
        default=None,
        validation_alias=_section("session", "po_token", "session_po_token"),
        description="Proof-of-origin token for the API and media URLs.",
    )

    # Cache (YAML section: cache.*)
    cache_backend: CacheBackendName = Field(
        default="memory",
        validation_alias=_section("cache", "backend", "cache_backend"),
        description="Warm-start store for raw script text.",
    )
    cache_dir: Path = Field(
        default=Path("./.cache/tubesig"),
        validation_alias=_section("cache", "dir", "cache_dir"),
        description="Diskcache directory (backend=diskcache only).",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=_section("logging", "level", "log_level"),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=_section("logging", "format", "log_format"),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    # Download (YAML section: download.*)
    download_chunk_size: int = Field(
        default=512 * 1024,
        validation_alias=_section("download", "chunk_size", "download_chunk_size"),
        description="Bytes handed to the sink per write.",
    )

    @field_validator("cache_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Path:
        return _normalize_path(v)

    @field_validator("player_debug_dump_dir", "session_cookie_file", mode="before")
    @classmethod
    def _validate_optional_paths(cls, v: Any) -> Path | None:
        if v is None or v == "":
            return None
        return _normalize_path(v)

    @field_validator("http_timeout_seconds", "player_script_ttl_seconds")
    @classmethod
    def _validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("http_max_retries", "http_rate_limit_rps")
    @classmethod
    def _validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("download_chunk_size")
    @classmethod
    def _validate_chunk_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("download_chunk_size must be > 0")
        return v

    @field_validator("clients", mode="before")
    @classmethod
    def _validate_clients(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            v = [part for part in v.split(",")]
        names = [str(name).strip().upper() for name in v if str(name).strip()]
        unknown = [name for name in names if name not in KNOWN_CLIENTS]
        if unknown:
            raise ValueError(
                f"unknown clients {unknown}; expected any of {list(KNOWN_CLIENTS)}"
            )
        if not names:
            raise ValueError("at least one client is required")
        return names

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """Dump configuration in the sectioned shape used by config.yaml."""
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "user_agent": self.http_user_agent,
                "proxy": self.http_proxy,
                "max_retries": self.http_max_retries,
                "rate_limit_rps": self.http_rate_limit_rps,
            },
            "player": {
                "seed_url": self.player_seed_url,
                "base_url": self.player_base_url,
                "script_ttl_seconds": self.player_script_ttl_seconds,
                "pinned_script_url": self.player_pinned_script_url,
                "debug_dump_dir": (
                    str(self.player_debug_dump_dir) if self.player_debug_dump_dir else None
                ),
            },
            "clients": list(self.clients),
            "session": {
                "cookie": "***" if self.session_cookie else None,
                "cookie_file": (
                    str(self.session_cookie_file) if self.session_cookie_file else None
                ),
                "visitor_data": self.session_visitor_data,
                "po_token": "***" if self.session_po_token else None,
            },
            "cache": {"backend": self.cache_backend, "dir": str(self.cache_dir)},
            "logging": {"level": self.log_level, "format": self.log_format},
            "download": {"chunk_size": self.download_chunk_size},
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    load.py reads TUBESIG_* variables through this model, keeps the set
    ones, merges them over YAML/defaults and then validates AppConfig.

    Supported env var examples (flat, explicit):
    - TUBESIG_HTTP_PROXY
    - TUBESIG_PLAYER_SCRIPT_TTL_SECONDS
    - TUBESIG_CLIENTS (comma separated)
    - TUBESIG_SESSION_PO_TOKEN
    - TUBESIG_LOG_LEVEL
    """

    model_config = SettingsConfigDict(
        env_prefix="TUBESIG_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_user_agent: Optional[str] = None
    http_proxy: Optional[str] = None
    http_max_retries: Optional[int] = None
    http_rate_limit_rps: Optional[float] = None

    player_seed_url: Optional[str] = None
    player_base_url: Optional[str] = None
    player_script_ttl_seconds: Optional[float] = None
    player_pinned_script_url: Optional[str] = None
    player_debug_dump_dir: Optional[Path] = None

    # Plain string so pydantic-settings does not expect JSON.
    clients: Optional[str] = None

    session_cookie: Optional[str] = None
    session_cookie_file: Optional[Path] = None
    session_visitor_data: Optional[str] = None
    session_po_token: Optional[str] = None

    cache_backend: Optional[CacheBackendName] = None
    cache_dir: Optional[Path] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    download_chunk_size: Optional[int] = None

    @field_validator("player_debug_dump_dir", "session_cookie_file", "cache_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Any:
        if v is None:
            return None
        return _normalize_path(v)

    def to_update_dict(self) -> dict[str, Any]:
        """Return only values that were actually provided (non-None), for merging."""
        return self.model_dump(exclude_none=True)
