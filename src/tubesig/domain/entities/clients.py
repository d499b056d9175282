"""Simulated device client profiles."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ClientProfile:
    """Identity a metadata request presents to the platform."""

    name: str  # config name, e.g. "IOS", "TV"
    client_name: str  # wire name, e.g. "TVHTML5"
    client_version: str
    client_id: str | None = None
    user_agent: str | None = None
    platform: str | None = None
    os_name: str | None = None
    os_version: str | None = None
    device_make: str | None = None
    device_model: str | None = None
    android_sdk_version: int | None = None
    hl: str = "en"
    gl: str | None = None
    time_zone: str | None = None
    utc_offset_minutes: int = 0
    # Web-like clients send the player script's signature timestamp.
    uses_player_script: bool = False
    # Mobile clients send a client playback nonce and request/user blocks.
    mobile: bool = False
    extra_client_fields: dict[str, Any] = field(default_factory=dict)

    def context_client(self) -> dict[str, Any]:
        """The ``context.client`` block of a player request."""
        client: dict[str, Any] = {
            "clientName": self.client_name,
            "clientVersion": self.client_version,
            "hl": self.hl,
            "utcOffsetMinutes": self.utc_offset_minutes,
        }
        optional = {
            "gl": self.gl,
            "timeZone": self.time_zone,
            "platform": self.platform,
            "osName": self.os_name,
            "osVersion": self.os_version,
            "deviceMake": self.device_make,
            "deviceModel": self.device_model,
            "androidSdkVersion": self.android_sdk_version,
            "userAgent": self.user_agent if self.mobile else None,
        }
        client.update({k: v for k, v in optional.items() if v is not None})
        client.update(self.extra_client_fields)
        return client
