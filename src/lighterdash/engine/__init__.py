"""Trading-engine client abstractions for the lighterdash dashboard."""
from .base import DecodeError, EngineClient, EngineError, FetchError, NetworkError
from .models import (
    AccountSummary,
    Direction,
    EngineStatus,
    MarketRow,
    OrderRow,
    PositionRow,
    Side,
)
from .rest import DEFAULT_API_BASE, EngineConfig, RestEngineClient

__all__ = [
    "AccountSummary",
    "DecodeError",
    "Direction",
    "EngineClient",
    "EngineConfig",
    "EngineError",
    "EngineStatus",
    "FetchError",
    "MarketRow",
    "NetworkError",
    "OrderRow",
    "PositionRow",
    "RestEngineClient",
    "Side",
    "DEFAULT_API_BASE",
]
