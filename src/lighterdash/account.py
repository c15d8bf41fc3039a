"""Account data aggregation: fetch, normalize and derive portfolio metrics."""
from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .engine import (
    AccountSummary,
    EngineClient,
    EngineConfig,
    EngineError,
    FetchError,
    OrderRow,
    PositionRow,
    RestEngineClient,
)

log = logging.getLogger(__name__)

RESOURCES = ("summary", "positions", "orders")

Listener = Callable[["AccountData"], None]


@dataclass(frozen=True)
class AccountSnapshot:
    """One successful fetch cycle; replaced wholesale, never patched."""

    summary: Optional[AccountSummary] = None
    positions: Tuple[PositionRow, ...] = ()
    orders: Tuple[OrderRow, ...] = ()


EMPTY_SNAPSHOT = AccountSnapshot()


@dataclass(frozen=True)
class FetchOutcome:
    snapshot: Optional[AccountSnapshot] = None
    error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.snapshot is not None


# ---------------------------------------------------------------------------
# Derived metrics


def _number(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value) if math.isfinite(value) else 0.0


def aggregate_unrealized_pnl(positions: Optional[Iterable[PositionRow]]) -> float:
    return sum((_number(p.unrealized_pnl_usd) for p in positions or ()), 0.0)


def aggregate_margin_used(positions: Optional[Iterable[PositionRow]]) -> float:
    return sum((_number(p.margin_used_usd) for p in positions or ()), 0.0)


def pnl_percent(position: PositionRow) -> float:
    """Unrealized PnL as a percentage of position size; 0 for empty or unsized positions."""
    size = _number(position.size_usd)
    if size <= 0:
        return 0.0
    return _number(position.unrealized_pnl_usd) / size * 100


def effective_leverage(
    summary: Optional[AccountSummary], positions: Optional[Iterable[PositionRow]]
) -> float:
    """Engine-reported leverage, or gross notional over equity when the engine reports none."""
    if summary is None:
        return 0.0
    reported = _number(summary.effective_leverage)
    if reported:
        return reported
    equity = _number(summary.equity_usd)
    if equity <= 0:
        return 0.0
    notional = sum((_number(p.size_usd) for p in positions or ()), 0.0)
    return notional / equity


def margin_available(
    summary: Optional[AccountSummary], positions: Optional[Iterable[PositionRow]]
) -> float:
    if summary is None:
        return 0.0
    reported = _number(summary.margin_available_usd)
    if reported:
        return reported
    return _number(summary.equity_usd) - aggregate_margin_used(positions)


# ---------------------------------------------------------------------------
# Fetching


class AccountAggregator:
    """Fetches summary, positions and orders concurrently and all-or-nothing."""

    def __init__(self, config: EngineConfig, client: Optional[EngineClient] = None) -> None:
        self._config = config
        self._client = client or RestEngineClient(config)

    @property
    def config(self) -> EngineConfig:
        return self._config

    def fetch_account_state(self) -> FetchOutcome:
        calls: Dict[str, Callable[[], object]] = {
            "summary": self._client.get_account_summary,
            "positions": self._client.get_positions,
            "orders": self._client.get_orders,
        }
        with ThreadPoolExecutor(max_workers=len(RESOURCES), thread_name_prefix="lighterdash-fetch") as pool:
            futures = {name: pool.submit(calls[name]) for name in RESOURCES}

        results: Dict[str, object] = {}
        for name in RESOURCES:
            try:
                results[name] = futures[name].result()
            except FetchError as exc:
                log.warning("account fetch failed: %s", exc)
                return FetchOutcome(error=exc)
            except EngineError as exc:
                log.warning("account fetch failed (%s): %s", name, exc)
                return FetchOutcome(error=FetchError(name, detail=str(exc)))
            except Exception as exc:  # pragma: no cover - misbehaving client
                log.exception("unexpected error fetching %s", name)
                return FetchOutcome(error=FetchError(name, detail=str(exc) or exc.__class__.__name__))

        snapshot = AccountSnapshot(
            summary=results["summary"],  # type: ignore[arg-type]
            positions=tuple(results["positions"] or ()),  # type: ignore[arg-type]
            orders=tuple(results["orders"] or ()),  # type: ignore[arg-type]
        )
        return FetchOutcome(snapshot=snapshot)


# ---------------------------------------------------------------------------
# View state


class AccountData:
    """Current account snapshot plus loading/error state for a single view.

    Refreshes may overlap. Each refresh takes a generation number and its
    result is applied only if no newer refresh has applied first, so the most
    recently issued request always wins. A failed refresh records its error
    and leaves the previous snapshot in place.
    """

    def __init__(self, aggregator: AccountAggregator) -> None:
        self._aggregator = aggregator
        self._lock = threading.Lock()
        self._snapshot = EMPTY_SNAPSHOT
        self._error: Optional[str] = None
        self._in_flight = 0
        self._issued = 0
        self._applied = 0
        self._listeners: List[Listener] = []
        self._executor: Optional[ThreadPoolExecutor] = None

    # ------------------------------------------------------------------
    @property
    def snapshot(self) -> AccountSnapshot:
        return self._snapshot

    @property
    def summary(self) -> Optional[AccountSummary]:
        return self._snapshot.summary

    @property
    def positions(self) -> Tuple[PositionRow, ...]:
        return self._snapshot.positions

    @property
    def orders(self) -> Tuple[OrderRow, ...]:
        return self._snapshot.orders

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def total_unrealized_pnl(self) -> float:
        return aggregate_unrealized_pnl(self._snapshot.positions)

    @property
    def total_margin_used(self) -> float:
        return aggregate_margin_used(self._snapshot.positions)

    # ------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def refresh(self) -> bool:
        """Fetch a new snapshot; return True when it succeeded and was applied."""
        with self._lock:
            self._issued += 1
            generation = self._issued
            self._in_flight += 1
            self._error = None

        try:
            outcome = self._aggregator.fetch_account_state()
        finally:
            with self._lock:
                self._in_flight -= 1

        with self._lock:
            if generation < self._applied:
                log.debug("discarding stale account refresh #%d (applied #%d)", generation, self._applied)
                applied = False
            else:
                self._applied = generation
                if outcome.ok:
                    self._snapshot = outcome.snapshot  # type: ignore[assignment]
                    self._error = None
                else:
                    self._error = str(outcome.error)
                applied = outcome.ok
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(self)
            except Exception:
                log.exception("account listener %r failed", listener)
        return applied

    def refresh_async(self) -> "Future[bool]":
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="lighterdash-refresh")
            executor = self._executor
        return executor.submit(self.refresh)

    def close(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)


def create_account_data(config: EngineConfig, client: Optional[EngineClient] = None) -> AccountData:
    return AccountData(AccountAggregator(config, client))


__all__ = [
    "AccountAggregator",
    "AccountData",
    "AccountSnapshot",
    "EMPTY_SNAPSHOT",
    "FetchOutcome",
    "aggregate_margin_used",
    "aggregate_unrealized_pnl",
    "create_account_data",
    "effective_leverage",
    "margin_available",
    "pnl_percent",
]
