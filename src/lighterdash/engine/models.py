"""Shared engine data models used by the lighterdash dashboard."""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional


def _to_float(value: Optional[object], default: float = 0.0) -> float:
    """Coerce a JSON scalar to float, falling back to ``default`` when absent or garbage."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def _to_finite(value: Optional[object]) -> float:
    number = _to_float(value)
    return number if math.isfinite(number) else 0.0


def _to_optional_float(value: Optional[object]) -> Optional[float]:
    if value is None:
        return None
    number = _to_float(value, math.nan)
    return None if math.isnan(number) else number


def _to_int(value: Optional[object]) -> int:
    try:
        return int(_to_float(value))
    except (OverflowError, ValueError):
        return 0


def _to_str(value: Optional[object]) -> str:
    return "" if value is None else str(value)


class Direction(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class Side(str, Enum):
    """Position/order side as reported by the engine."""

    LONG = "long"
    SHORT = "short"
    BUY = "buy"
    SELL = "sell"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: Optional[object]) -> "Side":
        text = _to_str(raw).strip().lower()
        try:
            side = cls(text)
        except ValueError:
            return cls.UNKNOWN
        return side

    @property
    def direction(self) -> Direction:
        if self in (Side.LONG, Side.BUY):
            return Direction.BULLISH
        if self in (Side.SHORT, Side.SELL):
            return Direction.BEARISH
        return Direction.NEUTRAL


@dataclass(frozen=True)
class AccountSummary:
    account_id: str
    balance_usd: float
    equity_usd: float
    unrealized_pnl_usd: float
    realized_pnl_usd: float
    margin_used_usd: float
    margin_available_usd: float
    effective_leverage: float
    sharpe_30d: float

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AccountSummary":
        return cls(
            account_id=_to_str(payload.get("account_id")),
            balance_usd=_to_finite(payload.get("balance_usd")),
            equity_usd=_to_finite(payload.get("equity_usd")),
            unrealized_pnl_usd=_to_finite(payload.get("unrealized_pnl_usd")),
            realized_pnl_usd=_to_finite(payload.get("realized_pnl_usd")),
            margin_used_usd=_to_finite(payload.get("margin_used_usd")),
            margin_available_usd=_to_finite(payload.get("margin_available_usd")),
            effective_leverage=_to_finite(payload.get("effective_leverage")),
            sharpe_30d=_to_finite(payload.get("sharpe_30d")),
        )


@dataclass(frozen=True)
class PositionRow:
    symbol: str
    side: Side
    size_usd: float
    size_contracts: float
    entry_price: float
    mark_price: float
    leverage: float
    unrealized_pnl_usd: float
    realized_pnl_usd: float
    margin_used_usd: float
    side_raw: str = ""

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PositionRow":
        side_raw = _to_str(payload.get("side"))
        return cls(
            symbol=_to_str(payload.get("symbol")),
            side=Side.parse(side_raw),
            size_usd=_to_float(payload.get("size_usd")),
            size_contracts=_to_float(payload.get("size_contracts")),
            entry_price=_to_float(payload.get("entry_price")),
            mark_price=_to_float(payload.get("mark_price")),
            leverage=_to_float(payload.get("leverage")),
            unrealized_pnl_usd=_to_float(payload.get("unrealized_pnl_usd")),
            realized_pnl_usd=_to_float(payload.get("realized_pnl_usd")),
            margin_used_usd=_to_float(payload.get("margin_used_usd")),
            side_raw=side_raw,
        )


@dataclass(frozen=True)
class OrderRow:
    order_id: str
    symbol: str
    side: Side
    type: str
    status: str
    price: Optional[float]
    size_usd: Optional[float]
    leverage: float
    created_at_epoch: int
    size_contracts: Optional[float] = None
    reduce_only: bool = False
    client_id: Optional[str] = None
    side_raw: str = ""

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "OrderRow":
        side_raw = _to_str(payload.get("side"))
        client_id = payload.get("client_id")
        return cls(
            order_id=_to_str(payload.get("order_id")),
            symbol=_to_str(payload.get("symbol")),
            side=Side.parse(side_raw),
            type=_to_str(payload.get("type")),
            status=_to_str(payload.get("status")),
            price=_to_optional_float(payload.get("price")),
            size_usd=_to_optional_float(payload.get("size_usd")),
            leverage=_to_float(payload.get("leverage")),
            created_at_epoch=_to_int(payload.get("created_at_epoch")),
            size_contracts=_to_optional_float(payload.get("size_contracts")),
            reduce_only=bool(payload.get("reduce_only", False)),
            client_id=str(client_id) if client_id else None,
            side_raw=side_raw,
        )


@dataclass(frozen=True)
class MarketRow:
    symbol: str
    market_id: int
    status: str
    taker_fee: str
    maker_fee: str
    open_interest: float
    index_price: float
    mark_price: float
    change_24h_pct: float
    open_interest_usd: float
    volume_24h_usd: float
    funding_rate_8h: float

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "MarketRow":
        # Missing numbers stay NaN so the table sort treats them as ties.
        return cls(
            symbol=_to_str(payload.get("symbol")),
            market_id=_to_int(payload.get("market_id")),
            status=_to_str(payload.get("status")),
            taker_fee=_to_str(payload.get("taker_fee")),
            maker_fee=_to_str(payload.get("maker_fee")),
            open_interest=_to_float(payload.get("open_interest"), math.nan),
            index_price=_to_float(payload.get("index_price"), math.nan),
            mark_price=_to_float(payload.get("mark_price"), math.nan),
            change_24h_pct=_to_float(payload.get("change_24h_pct"), math.nan),
            open_interest_usd=_to_float(payload.get("open_interest_usd"), math.nan),
            volume_24h_usd=_to_float(payload.get("volume_24h_usd"), math.nan),
            funding_rate_8h=_to_float(payload.get("funding_rate_8h"), math.nan),
        )


@dataclass(frozen=True)
class EngineStatus:
    healthy: bool
    network_id: Optional[int] = None
    status: Optional[int] = None
    timestamp: Optional[int] = None
