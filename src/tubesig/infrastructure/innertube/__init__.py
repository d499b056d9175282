"""Simulated device clients and the player metadata API."""

from .clients import CLIENTS, DEFAULT_CLIENTS, get_client, resolve_clients
from .identifiers import generate_nonce, parse_video_id, validate_id
from .player_api import PlayerApi, build_payload, playability_error, visitor_data_from

__all__ = [
    "CLIENTS",
    "DEFAULT_CLIENTS",
    "PlayerApi",
    "build_payload",
    "generate_nonce",
    "get_client",
    "parse_video_id",
    "playability_error",
    "resolve_clients",
    "validate_id",
    "visitor_data_from",
]
