import locale
import math
import unittest
from unittest.mock import patch

from lighterdash.engine import (
    EngineClient,
    EngineConfig,
    EngineStatus,
    FetchError,
    MarketRow,
    OrderRow,
    PositionRow,
)
from lighterdash.markets import (
    DEFAULT_MARKET_QUERY,
    FilterMode,
    MarketBoard,
    SortDirection,
    ViewQuery,
    apply_order_view,
    apply_position_view,
    apply_view,
    compare_values,
    filter_by_category,
    filter_by_search,
    sort_rows,
    toggle_sort,
    use_system_collation,
)


def market(symbol, change=0.0, volume=0.0, **extra):
    return MarketRow.from_dict(
        {"symbol": symbol, "change_24h_pct": change, "volume_24h_usd": volume, "status": "active", **extra}
    )


ROWS = [
    market("BTC-PERP", change=2.0, volume=500),
    market("ETH", change=-1.0, volume=900),
    market("BTCDOM", change=-0.5, volume=100),
    market("SOL", change=0.0, volume=300),
    market("DOGE", change=4.2, volume=900),
]


def symbols(rows):
    return [row.symbol for row in rows]


class SearchAndFilterTests(unittest.TestCase):
    def test_search_is_case_insensitive_substring(self) -> None:
        self.assertEqual(symbols(filter_by_search(ROWS, "btc")), ["BTC-PERP", "BTCDOM"])

    def test_blank_search_is_noop(self) -> None:
        self.assertEqual(symbols(filter_by_search(ROWS, "   ")), symbols(ROWS))
        self.assertEqual(symbols(filter_by_search(ROWS, None)), symbols(ROWS))

    def test_gainers_and_losers_exclude_zero(self) -> None:
        gainers = symbols(filter_by_category(ROWS, FilterMode.GAINERS))
        losers = symbols(filter_by_category(ROWS, FilterMode.LOSERS))
        self.assertEqual(gainers, ["BTC-PERP", "DOGE"])
        self.assertEqual(losers, ["ETH", "BTCDOM"])
        self.assertNotIn("SOL", gainers + losers)

    def test_missing_change_is_in_neither_category(self) -> None:
        rows = [MarketRow.from_dict({"symbol": "NEW"})]
        self.assertEqual(filter_by_category(rows, FilterMode.GAINERS), [])
        self.assertEqual(filter_by_category(rows, FilterMode.LOSERS), [])
        self.assertEqual(len(filter_by_category(rows, FilterMode.ALL)), 1)

    def test_losers_example(self) -> None:
        rows = [market("ETH", change=-1), market("BTC", change=2)]
        result = apply_view(rows, ViewQuery(filter_mode=FilterMode.LOSERS))
        self.assertEqual(symbols(result), ["ETH"])

    def test_search_and_category_commute(self) -> None:
        combined = apply_view(ROWS, ViewQuery(search="BTC", filter_mode=FilterMode.GAINERS))
        by_search = set(symbols(filter_by_search(ROWS, "BTC")))
        by_category = set(symbols(filter_by_category(ROWS, FilterMode.GAINERS)))
        self.assertEqual(set(symbols(combined)), by_search & by_category)
        reordered = filter_by_search(filter_by_category(ROWS, FilterMode.GAINERS), "BTC")
        self.assertEqual(set(symbols(reordered)), set(symbols(combined)))


class SortTests(unittest.TestCase):
    def test_numeric_sort_both_directions(self) -> None:
        asc = sort_rows(ROWS, "change_24h_pct", SortDirection.ASC)
        desc = sort_rows(ROWS, "change_24h_pct", SortDirection.DESC)
        self.assertEqual(symbols(asc), ["ETH", "BTCDOM", "SOL", "BTC-PERP", "DOGE"])
        self.assertEqual(symbols(desc), ["DOGE", "BTC-PERP", "SOL", "BTCDOM", "ETH"])

    def test_sort_is_stable_for_equal_keys(self) -> None:
        rows = [market("A", volume=10), market("B", volume=10)]
        self.assertEqual(symbols(sort_rows(rows, "volume_24h_usd", SortDirection.ASC)), ["A", "B"])
        self.assertEqual(symbols(sort_rows(rows, "volume_24h_usd", SortDirection.DESC)), ["A", "B"])

    def test_default_query_is_volume_descending(self) -> None:
        self.assertEqual(symbols(apply_view(ROWS, DEFAULT_MARKET_QUERY)), ["ETH", "DOGE", "BTC-PERP", "SOL", "BTCDOM"])

    def test_string_sort(self) -> None:
        self.assertEqual(symbols(sort_rows(ROWS, "symbol")), ["BTC-PERP", "BTCDOM", "DOGE", "ETH", "SOL"])

    def test_string_sort_ignores_case(self) -> None:
        rows = [market("eth"), market("ZEC"), market("BTC")]
        self.assertEqual(symbols(sort_rows(rows, "symbol")), ["BTC", "eth", "ZEC"])
        self.assertEqual(symbols(sort_rows(rows, "symbol", SortDirection.DESC)), ["ZEC", "eth", "BTC"])

    def test_status_sort_with_mixed_case(self) -> None:
        rows = [
            market("A", status="paused"),
            market("B", status="Active"),
            market("C", status="halted"),
        ]
        self.assertEqual(symbols(sort_rows(rows, "status")), ["B", "C", "A"])

    def test_case_only_difference_is_not_a_tie(self) -> None:
        self.assertNotEqual(compare_values("eth", "ETH"), 0)
        self.assertEqual(compare_values("eth", "ETH"), -compare_values("ETH", "eth"))

    def test_system_collation_tolerates_missing_locale(self) -> None:
        with patch("lighterdash.markets.locale.setlocale", side_effect=locale.Error("unsupported")) as setlocale:
            use_system_collation()
        setlocale.assert_called_once_with(locale.LC_COLLATE, "")

    def test_nan_compares_equal(self) -> None:
        self.assertEqual(compare_values(math.nan, 1.0), 0)
        self.assertEqual(compare_values(1.0, math.nan), 0)
        self.assertEqual(compare_values(None, 1.0), 0)
        self.assertEqual(compare_values("a", 1.0), 0)
        self.assertEqual(compare_values(2, 1), 1)
        self.assertEqual(compare_values(1, 2.5), -1)

    def test_no_sort_key_keeps_filtered_order(self) -> None:
        self.assertEqual(symbols(apply_view(ROWS, ViewQuery())), symbols(ROWS))

    def test_apply_view_is_idempotent(self) -> None:
        queries = [
            DEFAULT_MARKET_QUERY,
            ViewQuery(search="t", filter_mode=FilterMode.LOSERS, sort_key="symbol", sort_dir=SortDirection.DESC),
            ViewQuery(filter_mode=FilterMode.GAINERS, sort_key="change_24h_pct"),
        ]
        for query in queries:
            once = apply_view(ROWS, query)
            self.assertEqual(apply_view(once, query), once)

    def test_apply_view_does_not_mutate_input(self) -> None:
        rows = list(ROWS)
        apply_view(rows, DEFAULT_MARKET_QUERY)
        self.assertEqual(rows, ROWS)

    def test_none_rows_and_dict_rows_are_tolerated(self) -> None:
        self.assertEqual(apply_view(None, DEFAULT_MARKET_QUERY), [])
        rows = [{"symbol": "x", "volume_24h_usd": "bad"}, {"volume_24h_usd": 3}]
        self.assertEqual(len(apply_view(rows, DEFAULT_MARKET_QUERY)), 2)


class QueryTests(unittest.TestCase):
    def test_toggle_sort(self) -> None:
        query = ViewQuery(sort_key="symbol")
        flipped = toggle_sort(query, "symbol")
        self.assertEqual(flipped.sort_dir, SortDirection.DESC)
        moved = toggle_sort(flipped, "volume_24h_usd")
        self.assertEqual((moved.sort_key, moved.sort_dir), ("volume_24h_usd", SortDirection.ASC))

    def test_for_rows_validates_sort_key(self) -> None:
        query = ViewQuery.for_rows(MarketRow, search="eth", filter_mode="losers", sort_key="status", sort_dir="desc")
        self.assertEqual(query.filter_mode, FilterMode.LOSERS)
        self.assertEqual(query.sort_dir, SortDirection.DESC)
        with self.assertRaises(ValueError):
            ViewQuery.for_rows(MarketRow, sort_key="unrealized_pnl_usd")
        with self.assertRaises(ValueError):
            ViewQuery.for_rows(MarketRow, filter_mode="winners")


class PositionAndOrderViewTests(unittest.TestCase):
    def test_position_view_filters_on_unrealized_pnl(self) -> None:
        positions = [
            PositionRow.from_dict({"symbol": "BTC", "unrealized_pnl_usd": 5, "size_usd": 10}),
            PositionRow.from_dict({"symbol": "ETH", "unrealized_pnl_usd": -3, "size_usd": 30}),
        ]
        losers = apply_position_view(positions, ViewQuery(filter_mode=FilterMode.LOSERS))
        self.assertEqual(symbols(losers), ["ETH"])
        by_size = apply_position_view(positions, ViewQuery(sort_key="size_usd", sort_dir=SortDirection.DESC))
        self.assertEqual(symbols(by_size), ["ETH", "BTC"])

    def test_order_view_ignores_category(self) -> None:
        orders = [
            OrderRow.from_dict({"order_id": "1", "symbol": "BTC"}),
            OrderRow.from_dict({"order_id": "2", "symbol": "ETH"}),
        ]
        result = apply_order_view(orders, ViewQuery(search="eth", filter_mode=FilterMode.GAINERS))
        self.assertEqual([o.order_id for o in result], ["2"])


class StubMarketClient(EngineClient):
    def __init__(self, rows):
        self.rows = rows
        self.error = None

    def get_account_summary(self):  # pragma: no cover - unused here
        raise NotImplementedError

    def get_positions(self):  # pragma: no cover - unused here
        return []

    def get_orders(self):  # pragma: no cover - unused here
        return []

    def get_markets(self):
        if self.error:
            raise self.error
        return self.rows

    def get_status(self):  # pragma: no cover - unused here
        return EngineStatus(healthy=True)


class MarketBoardTests(unittest.TestCase):
    def test_failed_refresh_keeps_previous_rows(self) -> None:
        client = StubMarketClient(ROWS)
        board = MarketBoard(EngineConfig(), client)
        self.assertTrue(board.refresh())
        self.assertEqual(len(board.rows), len(ROWS))

        client.error = FetchError("markets", 502)
        self.assertFalse(board.refresh())
        self.assertEqual(board.error, "Failed to fetch markets")
        self.assertEqual(len(board.rows), len(ROWS))
        self.assertFalse(board.loading)
        self.assertEqual(symbols(board.view())[0], "ETH")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
