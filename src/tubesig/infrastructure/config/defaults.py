"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "tubesig",
    "environment": "dev",
    "http": {
        "timeout_seconds": 30.0,
        "proxy": None,
        "max_retries": 3,
        "rate_limit_rps": 0.0,
    },
    "player": {
        "seed_url": "https://www.youtube.com/embed/",
        "base_url": "https://www.youtube.com",
        "script_ttl_seconds": 86_400,
        "pinned_script_url": None,
        "debug_dump_dir": None,
    },
    "clients": ["WEB_EMBEDDED", "IOS", "ANDROID", "TV"],
    "session": {
        "cookie": None,
        "cookie_file": None,
        "visitor_data": None,
        "po_token": None,
    },
    "cache": {
        "backend": "memory",
        "dir": "./.cache/tubesig",
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "download": {
        "chunk_size": 512 * 1024,
    },
}
