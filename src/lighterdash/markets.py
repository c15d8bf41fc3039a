"""Market table engine: search, category filter and stable column sort."""
from __future__ import annotations

import locale
import logging
import math
import threading
from dataclasses import dataclass, fields, replace
from enum import Enum
from functools import cmp_to_key
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from .engine import EngineClient, EngineConfig, EngineError, MarketRow, OrderRow, PositionRow, RestEngineClient

log = logging.getLogger(__name__)

Row = TypeVar("Row")


class FilterMode(str, Enum):
    ALL = "all"
    GAINERS = "gainers"
    LOSERS = "losers"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    def flipped(self) -> "SortDirection":
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


def _field_names(row_type: type) -> Tuple[str, ...]:
    return tuple(f.name for f in fields(row_type) if f.name != "side_raw")


MARKET_SORT_KEYS = _field_names(MarketRow)
POSITION_SORT_KEYS = _field_names(PositionRow)
ORDER_SORT_KEYS = _field_names(OrderRow)


@dataclass(frozen=True)
class ViewQuery:
    """Search text, category filter and sort settings for a table."""

    search: str = ""
    filter_mode: FilterMode = FilterMode.ALL
    sort_key: Optional[str] = None
    sort_dir: SortDirection = SortDirection.ASC

    @classmethod
    def for_rows(
        cls,
        row_type: type,
        *,
        search: Optional[str] = None,
        filter_mode: str | FilterMode = FilterMode.ALL,
        sort_key: Optional[str] = None,
        sort_dir: str | SortDirection = SortDirection.ASC,
    ) -> "ViewQuery":
        """Build a query, rejecting sort keys the row type does not have."""
        if sort_key is not None and sort_key not in _field_names(row_type):
            allowed = ", ".join(_field_names(row_type))
            raise ValueError(f"Unknown sort key '{sort_key}'. Use one of: {allowed}")
        try:
            mode = FilterMode(filter_mode)
            direction = SortDirection(sort_dir)
        except ValueError as exc:
            raise ValueError(str(exc)) from None
        return cls(search=search or "", filter_mode=mode, sort_key=sort_key, sort_dir=direction)


DEFAULT_MARKET_QUERY = ViewQuery(sort_key="volume_24h_usd", sort_dir=SortDirection.DESC)


def toggle_sort(query: ViewQuery, key: str) -> ViewQuery:
    """Column-header click: same key flips direction, a new key sorts ascending."""
    if query.sort_key == key:
        return replace(query, sort_dir=query.sort_dir.flipped())
    return replace(query, sort_key=key, sort_dir=SortDirection.ASC)


# ---------------------------------------------------------------------------
# Row access


def _field(row: Any, key: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(key)
    return getattr(row, key, None)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# ---------------------------------------------------------------------------
# Filters


def filter_by_search(rows: Iterable[Row], search: Optional[str]) -> List[Row]:
    term = (search or "").strip().upper()
    if not term:
        return list(rows)
    return [row for row in rows if term in str(_field(row, "symbol") or "").upper()]


def filter_by_category(
    rows: Iterable[Row], mode: FilterMode, change_field: str = "change_24h_pct"
) -> List[Row]:
    if mode is FilterMode.ALL:
        return list(rows)

    def keep(row: Row) -> bool:
        change = _field(row, change_field)
        if not _is_number(change):
            return False
        return change > 0 if mode is FilterMode.GAINERS else change < 0

    return [row for row in rows if keep(row)]


# ---------------------------------------------------------------------------
# Sort


def use_system_collation() -> None:
    """Collate strings with the user's locale instead of the default "C" ordering."""
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as exc:
        log.debug("keeping default collation: %s", exc)


def compare_values(a: Any, b: Any) -> int:
    """Locale-aware for strings, signed for numbers, 0 when either side is not a number."""
    if isinstance(a, str) and isinstance(b, str):
        # Case-insensitive order first; exact text only breaks ties.
        result = locale.strcoll(a.casefold(), b.casefold()) or locale.strcoll(a, b)
        return (result > 0) - (result < 0)
    if not (_is_number(a) and _is_number(b)):
        return 0
    if math.isnan(a) or math.isnan(b):
        return 0
    return (a > b) - (a < b)


def sort_rows(rows: Iterable[Row], key: Optional[str], direction: SortDirection = SortDirection.ASC) -> List[Row]:
    """Stable sort by one field; ties keep their input order in either direction."""
    ordered = list(rows)
    if not key:
        return ordered
    sign = -1 if direction is SortDirection.DESC else 1

    def cmp(a: Row, b: Row) -> int:
        return sign * compare_values(_field(a, key), _field(b, key))

    ordered.sort(key=cmp_to_key(cmp))
    return ordered


def apply_view(
    rows: Optional[Sequence[Row]], query: ViewQuery, *, change_field: str = "change_24h_pct"
) -> List[Row]:
    """Filter (search, then category) and then sort ``rows`` for display."""
    visible = filter_by_search(rows or (), query.search)
    visible = filter_by_category(visible, query.filter_mode, change_field)
    return sort_rows(visible, query.sort_key, query.sort_dir)


def apply_position_view(rows: Optional[Sequence[PositionRow]], query: ViewQuery) -> List[PositionRow]:
    return apply_view(rows, query, change_field="unrealized_pnl_usd")


def apply_order_view(rows: Optional[Sequence[OrderRow]], query: ViewQuery) -> List[OrderRow]:
    return apply_view(rows, replace(query, filter_mode=FilterMode.ALL))


# ---------------------------------------------------------------------------
# Market list state


class MarketBoard:
    """Latest market rows for the watchlist; a failed refresh keeps the old rows."""

    def __init__(self, config: EngineConfig, client: Optional[EngineClient] = None) -> None:
        self._client = client or RestEngineClient(config)
        self._lock = threading.Lock()
        self._rows: Tuple[MarketRow, ...] = ()
        self._error: Optional[str] = None
        self._loading = False

    @property
    def client(self) -> EngineClient:
        return self._client

    @property
    def rows(self) -> Tuple[MarketRow, ...]:
        return self._rows

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    def refresh(self) -> bool:
        with self._lock:
            self._loading = True
            self._error = None
        try:
            rows = self._client.get_markets()
        except EngineError as exc:
            log.warning("load markets error: %s", exc)
            with self._lock:
                self._error = "Failed to fetch markets"
            return False
        finally:
            with self._lock:
                self._loading = False

        with self._lock:
            self._rows = tuple(rows or ())
        return True

    def view(self, query: ViewQuery = DEFAULT_MARKET_QUERY) -> List[MarketRow]:
        return apply_view(self._rows, query)


__all__ = [
    "DEFAULT_MARKET_QUERY",
    "FilterMode",
    "MARKET_SORT_KEYS",
    "MarketBoard",
    "ORDER_SORT_KEYS",
    "POSITION_SORT_KEYS",
    "SortDirection",
    "ViewQuery",
    "apply_order_view",
    "apply_position_view",
    "apply_view",
    "compare_values",
    "use_system_collation",
    "filter_by_category",
    "filter_by_search",
    "sort_rows",
    "toggle_sort",
]
