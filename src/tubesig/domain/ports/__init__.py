from .cache import CachePort
from .cookies import CookieProviderPort
from .player_api import PlayerApiPort
from .player_functions import PlayerFunctionsPort, TransformProgram

__all__ = [
    "CachePort",
    "CookieProviderPort",
    "PlayerApiPort",
    "PlayerFunctionsPort",
    "TransformProgram",
]
