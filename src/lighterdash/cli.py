"""Command-line entry point for the lighterdash trading dashboard."""
from __future__ import annotations

import argparse
from dataclasses import dataclass, replace
from typing import Callable, Optional

from rich.console import Console
from termcolor import colored

from .account import AccountData, create_account_data
from .engine import EngineConfig, EngineError, MarketRow, OrderRow, PositionRow, RestEngineClient
from .environment import build_engine_config, load_dotenv
from .logger import configure_logging
from .markets import (
    DEFAULT_MARKET_QUERY,
    MARKET_SORT_KEYS,
    ORDER_SORT_KEYS,
    POSITION_SORT_KEYS,
    MarketBoard,
    apply_order_view,
    apply_position_view,
    apply_view,
    use_system_collation,
)
from .terminal import (
    add_view_arguments,
    query_from_args,
    render_account,
    render_error,
    render_markets,
    render_orders,
    render_positions,
    render_status,
    run_terminal,
)

console = Console()

ACCOUNT_ERROR_CONTEXT = "Failed to fetch one or more account endpoints"


@dataclass
class Dashboard:
    config: EngineConfig
    account: AccountData
    markets: MarketBoard


ConsoleAction = Callable[[Dashboard, argparse.Namespace], Optional[int]]


def create_dashboard(config: EngineConfig) -> Dashboard:
    client = RestEngineClient(config)
    return Dashboard(
        config=config,
        account=create_account_data(config, client),
        markets=MarketBoard(config, client),
    )


def run_action(args: argparse.Namespace, action: ConsoleAction) -> int:
    try:
        dashboard = create_dashboard(build_engine_config(getattr(args, "api_base", None)))
    except Exception as exc:
        message = str(exc) or exc.__class__.__name__
        console.print(colored(message, "red"))
        return 2

    try:
        return action(dashboard, args) or 0
    except (EngineError, ValueError) as exc:
        message = str(exc) or exc.__class__.__name__
        console.print(colored(message, "red"))
        return 1


# ----------------------------------------------------------------------
# Command handlers

def _refresh_account(dashboard: Dashboard) -> int:
    ok = dashboard.account.refresh()
    render_error(console, dashboard.account.error, ACCOUNT_ERROR_CONTEXT)
    return 0 if ok else 1


def handle_account(dashboard: Dashboard, _: argparse.Namespace) -> int:
    status = _refresh_account(dashboard)
    render_account(console, dashboard.config.api_base, dashboard.account)
    return status


def handle_positions(dashboard: Dashboard, args: argparse.Namespace) -> int:
    query = query_from_args(PositionRow, args)
    status = _refresh_account(dashboard)
    render_positions(console, apply_position_view(dashboard.account.positions, query))
    return status


def handle_orders(dashboard: Dashboard, args: argparse.Namespace) -> int:
    query = query_from_args(OrderRow, args)
    status = _refresh_account(dashboard)
    render_orders(console, apply_order_view(dashboard.account.orders, query))
    return status


def handle_markets(dashboard: Dashboard, args: argparse.Namespace) -> int:
    query = query_from_args(MarketRow, args)
    if query.sort_key is None:
        query = replace(query, sort_key=DEFAULT_MARKET_QUERY.sort_key, sort_dir=DEFAULT_MARKET_QUERY.sort_dir)
    if not dashboard.markets.refresh():
        render_error(console, dashboard.markets.error, "markets")
        return 1
    render_markets(console, apply_view(dashboard.markets.rows, query), query)
    return 0


def handle_status(dashboard: Dashboard, _: argparse.Namespace) -> int:
    status = dashboard.markets.client.get_status()
    render_status(console, dashboard.config.api_base, status)
    return 0 if status.healthy else 1


def handle_terminal(dashboard: Dashboard, _: argparse.Namespace) -> int:
    try:
        run_terminal(dashboard.account, dashboard.markets, dashboard.config.api_base, console=console)
    finally:
        dashboard.account.close()
    return 0


# ----------------------------------------------------------------------
# CLI wiring

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lighterdash",
        description="Terminal dashboard for a remote trading engine",
    )
    parser.add_argument(
        "--api-base",
        help="Engine base URL (defaults to $LIGHTERDASH_API_BASE or http://localhost:8080)",
    )

    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("account", help="Show balances, margin and PnL").set_defaults(func=handle_account)

    positions_parser = sub.add_parser("positions", help="List open positions")
    add_view_arguments(positions_parser, POSITION_SORT_KEYS)
    positions_parser.set_defaults(func=handle_positions)

    orders_parser = sub.add_parser("orders", help="List working and recent orders")
    add_view_arguments(orders_parser, ORDER_SORT_KEYS, category=False)
    orders_parser.set_defaults(func=handle_orders)

    markets_parser = sub.add_parser("markets", help="Show the market watchlist")
    add_view_arguments(markets_parser, MARKET_SORT_KEYS)
    markets_parser.set_defaults(func=handle_markets)

    sub.add_parser("status", help="Show backend health").set_defaults(func=handle_status)
    sub.add_parser("terminal", help="Launch the interactive dashboard").set_defaults(func=handle_terminal)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    load_dotenv()
    configure_logging()
    use_system_collation()
    parser = build_parser()
    args = parser.parse_args(argv)
    func: ConsoleAction = args.func  # type: ignore[attr-defined]
    return run_action(args, func)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
