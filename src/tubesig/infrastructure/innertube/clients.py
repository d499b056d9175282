"""Built-in device client profiles for the player API."""

from __future__ import annotations

from tubesig.domain.entities.clients import ClientProfile

_IOS_VERSION = "19.50.7"
_IOS_DEVICE = "iPhone16,2"
_ANDROID_VERSION = "19.50.37"
_ANDROID_VR_VERSION = "1.71.26"
_ANDROID_VR_USER_AGENT = (
    f"com.google.android.apps.youtube.vr.oculus/{_ANDROID_VR_VERSION} "
    "(Linux; U; Android 12L; eureka-user Build/SQ3A.220605.009.A1) gzip"
)

WEB_EMBEDDED = ClientProfile(
    name="WEB_EMBEDDED",
    client_name="WEB_EMBEDDED_PLAYER",
    client_version="1.20250110.01.00",
    client_id="56",
    time_zone="UTC",
    uses_player_script=True,
)

TV = ClientProfile(
    name="TV",
    client_name="TVHTML5",
    client_version="7.20250110.13.00",
    client_id="7",
    time_zone="UTC",
    uses_player_script=True,
)

IOS = ClientProfile(
    name="IOS",
    client_name="IOS",
    client_version=_IOS_VERSION,
    client_id="5",
    user_agent=(
        f"com.google.ios.youtube/{_IOS_VERSION}({_IOS_DEVICE}; U; "
        "CPU iOS 18_2 like Mac OS X; en_US)"
    ),
    platform="MOBILE",
    os_name="iOS",
    os_version="18.2.1.22C150",
    device_make="Apple",
    device_model=_IOS_DEVICE,
    gl="US",
    utc_offset_minutes=-240,
    mobile=True,
)

ANDROID = ClientProfile(
    name="ANDROID",
    client_name="ANDROID",
    client_version=_ANDROID_VERSION,
    client_id="3",
    user_agent=f"com.google.android.youtube/{_ANDROID_VERSION} (Linux; U; Android 14) gzip",
    platform="MOBILE",
    os_name="Android",
    os_version="14",
    android_sdk_version=34,
    gl="US",
    utc_offset_minutes=-240,
    mobile=True,
)

# Not throttled on adaptive formats; sends the signature timestamp like web clients.
ANDROID_VR = ClientProfile(
    name="ANDROID_VR",
    client_name="ANDROID_VR",
    client_version=_ANDROID_VR_VERSION,
    client_id="28",
    user_agent=_ANDROID_VR_USER_AGENT,
    os_name="Android",
    os_version="12L",
    device_make="Oculus",
    device_model="Quest 3",
    android_sdk_version=32,
    time_zone="UTC",
    uses_player_script=True,
    extra_client_fields={"userAgent": _ANDROID_VR_USER_AGENT},
)

CLIENTS: dict[str, ClientProfile] = {
    profile.name: profile for profile in (WEB_EMBEDDED, TV, IOS, ANDROID, ANDROID_VR)
}
# Wire names are accepted as aliases.
_ALIASES = {"WEB_EMBEDDED_PLAYER": "WEB_EMBEDDED", "TVHTML5": "TV"}

DEFAULT_CLIENTS: tuple[str, ...] = ("WEB_EMBEDDED", "IOS", "ANDROID", "TV")


def get_client(name: str) -> ClientProfile:
    key = name.strip().upper()
    key = _ALIASES.get(key, key)
    try:
        return CLIENTS[key]
    except KeyError:
        raise ValueError(
            f"unknown client {name!r}; expected one of {', '.join(CLIENTS)}"
        ) from None


def resolve_clients(names: list[str] | tuple[str, ...]) -> list[ClientProfile]:
    """Profiles for ``names`` in order, duplicates dropped."""
    profiles: list[ClientProfile] = []
    for name in names:
        profile = get_client(name)
        if profile not in profiles:
            profiles.append(profile)
    return profiles
