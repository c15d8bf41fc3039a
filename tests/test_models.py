import math
import unittest

from lighterdash.engine.models import (
    AccountSummary,
    Direction,
    MarketRow,
    OrderRow,
    PositionRow,
    Side,
)


class SideTests(unittest.TestCase):
    def test_parse_is_case_insensitive(self) -> None:
        self.assertIs(Side.parse("LONG"), Side.LONG)
        self.assertIs(Side.parse(" Sell "), Side.SELL)

    def test_unrecognised_side_is_unknown(self) -> None:
        self.assertIs(Side.parse("hedge"), Side.UNKNOWN)
        self.assertIs(Side.parse(None), Side.UNKNOWN)

    def test_direction(self) -> None:
        self.assertIs(Side.BUY.direction, Direction.BULLISH)
        self.assertIs(Side.LONG.direction, Direction.BULLISH)
        self.assertIs(Side.SHORT.direction, Direction.BEARISH)
        self.assertIs(Side.SELL.direction, Direction.BEARISH)
        self.assertIs(Side.UNKNOWN.direction, Direction.NEUTRAL)


class ModelDecodingTests(unittest.TestCase):
    def test_summary_null_fields_are_zero(self) -> None:
        summary = AccountSummary.from_dict({"account_id": "7", "equity_usd": None, "sharpe_30d": "n/a"})
        self.assertEqual(summary.account_id, "7")
        self.assertEqual(summary.equity_usd, 0.0)
        self.assertEqual(summary.sharpe_30d, 0.0)
        self.assertEqual(summary.balance_usd, 0.0)

    def test_position_keeps_raw_side(self) -> None:
        row = PositionRow.from_dict({"symbol": "BTC", "side": "Long", "size_usd": "150.5"})
        self.assertIs(row.side, Side.LONG)
        self.assertEqual(row.side_raw, "Long")
        self.assertEqual(row.size_usd, 150.5)
        self.assertEqual(row.unrealized_pnl_usd, 0.0)

    def test_order_nullable_fields(self) -> None:
        order = OrderRow.from_dict(
            {
                "order_id": "abc",
                "symbol": "ETH",
                "side": "buy",
                "type": "market",
                "status": "filled",
                "price": None,
                "leverage": 3,
                "created_at_epoch": 1700000000,
            }
        )
        self.assertIsNone(order.price)
        self.assertIsNone(order.size_usd)
        self.assertEqual(order.leverage, 3.0)
        self.assertEqual(order.created_at_epoch, 1700000000)
        self.assertFalse(order.reduce_only)
        self.assertIsNone(order.client_id)

    def test_market_missing_numbers_are_nan(self) -> None:
        market = MarketRow.from_dict({"symbol": "SOL", "market_id": "2", "volume_24h_usd": 10})
        self.assertEqual(market.market_id, 2)
        self.assertEqual(market.volume_24h_usd, 10.0)
        self.assertTrue(math.isnan(market.change_24h_pct))
        self.assertEqual(market.taker_fee, "")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
