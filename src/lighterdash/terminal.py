"""Interactive terminal experience for the lighterdash CLI."""
from __future__ import annotations

import argparse
import atexit
import cmd
import time
import readline
import shlex
from dataclasses import replace
from typing import Iterable, Optional, Sequence

from rich.console import Console
from rich.table import Table
from termcolor import colored

from .account import AccountData, effective_leverage, margin_available, pnl_percent
from .engine import EngineStatus, MarketRow, OrderRow, PositionRow
from .environment import APP_DIR, ensure_directories
from .formatting import (
    format_leverage,
    format_number,
    format_pct,
    format_price,
    format_time,
    format_usd,
    format_usd_magnitude,
    funding_tier,
    side_tone,
    sign_tone,
    styled,
    Tone,
)
from .markets import (
    DEFAULT_MARKET_QUERY,
    MARKET_SORT_KEYS,
    ORDER_SORT_KEYS,
    POSITION_SORT_KEYS,
    MarketBoard,
    ViewQuery,
    apply_order_view,
    apply_position_view,
    apply_view,
    toggle_sort,
)

HISTORY_FILE = APP_DIR / "history.txt"


# ---------------------------------------------------------------------------
# Shared render helpers (also used by the CLI commands)

def render_error(console: Console, error: Optional[str], context: str) -> None:
    if error:
        console.print(colored(f"Error: {context} ({error})", "red"))


def render_account(console: Console, api_base: str, data: AccountData) -> None:
    summary = data.summary
    positions = data.positions
    unrealized = data.total_unrealized_pnl
    realized = summary.realized_pnl_usd if summary else 0.0

    table = Table(title=f"Account Overview ({api_base})")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Account", summary.account_id if summary and summary.account_id else "-")
    table.add_row("Equity", format_usd(summary.equity_usd if summary else None))
    table.add_row("Balance", format_usd(summary.balance_usd if summary else None))
    table.add_row("Unrealized PnL", styled(format_usd(unrealized), sign_tone(unrealized)))
    table.add_row("Realized PnL", styled(format_usd(realized), sign_tone(realized)))
    table.add_row("Margin Used", format_usd(data.total_margin_used))
    table.add_row("Margin Available", format_usd(margin_available(summary, positions)))
    table.add_row("Effective Leverage", format_leverage(effective_leverage(summary, positions)))
    table.add_row("Sharpe (30d)", format_pct(summary.sharpe_30d if summary else None))
    console.print(table)


def render_positions(console: Console, positions: Iterable[PositionRow]) -> None:
    table = Table(title="Open Positions")
    table.add_column("Symbol")
    table.add_column("Side")
    table.add_column("Size (USD)", justify="right")
    table.add_column("Entry", justify="right")
    table.add_column("Mark", justify="right")
    table.add_column("Lev", justify="right")
    table.add_column("uPnL", justify="right")
    table.add_column("% uPnL", justify="right")

    count = 0
    for pos in positions:
        count += 1
        tone = sign_tone(pos.unrealized_pnl_usd)
        table.add_row(
            pos.symbol,
            styled(pos.side_raw or pos.side.value, side_tone(pos.side)),
            f"{pos.size_usd:.2f}",
            f"{pos.entry_price:.4f}",
            f"{pos.mark_price:.4f}",
            format_leverage(pos.leverage),
            styled(f"{pos.unrealized_pnl_usd:.2f}", tone),
            styled(f"{pnl_percent(pos):.2f}%", tone),
        )

    if count == 0:
        console.print(colored("No open positions.", "yellow"))
    else:
        console.print(table)


def render_orders(console: Console, orders: Iterable[OrderRow]) -> None:
    table = Table(title="Working & Recent Orders")
    table.add_column("Symbol")
    table.add_column("Side")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Px", justify="right")
    table.add_column("Size (USD)", justify="right")
    table.add_column("Lev", justify="right")
    table.add_column("Time", justify="right")

    count = 0
    for order in orders:
        count += 1
        table.add_row(
            order.symbol,
            styled(order.side_raw or order.side.value, side_tone(order.side)),
            order.type,
            order.status,
            format_price(order.price),
            format_price(order.size_usd, 2),
            format_leverage(order.leverage),
            format_time(order.created_at_epoch),
        )

    if count == 0:
        console.print(colored("No working or recent orders.", "yellow"))
    else:
        console.print(table)


def _sort_label(query: ViewQuery, key: str, label: str) -> str:
    if query.sort_key != key:
        return label
    return f"{label} ▲" if query.sort_dir.value == "asc" else f"{label} ▼"


def render_markets(console: Console, rows: Sequence[MarketRow], query: ViewQuery) -> None:
    table = Table(title="Watchlist")
    table.add_column(_sort_label(query, "symbol", "Symbol"))
    table.add_column(_sort_label(query, "index_price", "Price"), justify="right")
    table.add_column(_sort_label(query, "change_24h_pct", "24h %"), justify="right")
    table.add_column(_sort_label(query, "open_interest", "Open Interest"), justify="right")
    table.add_column(_sort_label(query, "open_interest_usd", "Open Interest (USD)"), justify="right")
    table.add_column(_sort_label(query, "volume_24h_usd", "Volume 24h (USD)"), justify="right")
    table.add_column(_sort_label(query, "funding_rate_8h", "Funding 8h"), justify="right")
    table.add_column(_sort_label(query, "status", "Status"))

    for market in rows:
        table.add_row(
            market.symbol,
            format_number(market.index_price, 4),
            styled(format_pct(market.change_24h_pct), sign_tone(market.change_24h_pct)),
            format_number(market.open_interest),
            format_usd_magnitude(market.open_interest_usd),
            format_usd_magnitude(market.volume_24h_usd),
            styled(format_number(market.funding_rate_8h, 6), funding_tier(market.funding_rate_8h)),
            market.status,
        )

    if not rows:
        console.print(colored("No markets match your filters.", "yellow"))
    else:
        console.print(table)


def render_status(console: Console, api_base: str, status: EngineStatus) -> None:
    table = Table(title=f"Engine Status ({api_base})")
    table.add_column("Field")
    table.add_column("Value")
    health = styled("ok", Tone.POSITIVE) if status.healthy else styled("down", Tone.NEGATIVE)
    table.add_row("backend", health)
    table.add_row("network_id", str(status.network_id if status.network_id is not None else "-"))
    table.add_row("status", str(status.status if status.status is not None else "-"))
    table.add_row("timestamp", format_time(status.timestamp))
    console.print(table)


# ---------------------------------------------------------------------------
# Argument helpers shared with the CLI

def add_view_arguments(parser: argparse.ArgumentParser, sort_keys: Sequence[str], *, category: bool = True) -> None:
    parser.add_argument("--search", default="", help="Case-insensitive symbol filter")
    if category:
        parser.add_argument("--filter", dest="filter_mode", choices=["all", "gainers", "losers"], default="all")
    parser.add_argument("--sort", dest="sort_key", choices=list(sort_keys), help="Column to sort by")
    parser.add_argument("--desc", action="store_true", help="Sort descending")


def query_from_args(row_type: type, args: argparse.Namespace) -> ViewQuery:
    return ViewQuery.for_rows(
        row_type,
        search=getattr(args, "search", ""),
        filter_mode=getattr(args, "filter_mode", "all"),
        sort_key=getattr(args, "sort_key", None),
        sort_dir="desc" if getattr(args, "desc", False) else "asc",
    )


# ---------------------------------------------------------------------------
# Terminal implementation

class DashboardTerminal(cmd.Cmd):
    """REPL over one account snapshot and one market board."""

    def __init__(
        self,
        account: AccountData,
        markets: MarketBoard,
        api_base: str,
        console: Optional[Console] = None,
    ) -> None:
        super().__init__()
        self._account = account
        self._markets = markets
        self._api_base = api_base
        self._market_query = DEFAULT_MARKET_QUERY
        self._account_updated: Optional[float] = None
        self._account.subscribe(self._on_account_refresh)
        self.console = console or Console()
        self.prompt = colored("lighterdash: ", "magenta")
        self.intro = self._create_welcome_banner()
        self.history_file = HISTORY_FILE
        self._load_history()
        atexit.register(self._save_history)

    # ------------------------------------------------------------------
    # Setup helpers
    def _load_history(self) -> None:
        ensure_directories((self.history_file.parent,))
        try:
            readline.read_history_file(self.history_file)
        except FileNotFoundError:
            pass

    def _save_history(self) -> None:
        try:
            readline.write_history_file(self.history_file)
        except FileNotFoundError:
            pass

    def _create_welcome_banner(self) -> str:
        lines = [
            colored("lighterdash", "magenta", attrs=["bold"]),
            colored(f"engine: {self._api_base}", "white"),
            "",
            colored("Tips:", "yellow"),
            colored("1. 'refresh' pulls account and market data.", "white"),
            colored("2. 'account', 'positions', 'orders' show the last snapshot.", "white"),
            colored("3. 'markets BTC --filter gainers' searches the watchlist.", "white"),
            colored("4. 'sort COLUMN' toggles the watchlist sort.", "white"),
            "",
        ]
        return "\n".join(lines)

    def _handle_error(self, exc: Exception) -> None:
        message = str(exc) or exc.__class__.__name__
        self.console.print(colored(message, "red"))

    def _parse(self, prog: str, arg: str, sort_keys: Sequence[str], *, category: bool = True) -> Optional[argparse.Namespace]:
        parser = argparse.ArgumentParser(prog=prog, add_help=False)
        parser.add_argument("term", nargs="?", default="")
        add_view_arguments(parser, sort_keys, category=category)
        try:
            args = parser.parse_args(shlex.split(arg))
        except (SystemExit, ValueError):
            self.console.print(colored(parser.format_usage().strip(), "yellow"))
            return None
        args.search = args.search or args.term
        return args

    def _on_account_refresh(self, account: AccountData) -> None:
        if account.error is None:
            self._account_updated = time.time()

    def _account_error(self) -> None:
        render_error(self.console, self._account.error, "Failed to fetch one or more account endpoints")

    # ------------------------------------------------------------------
    # Built-in hooks
    def preloop(self) -> None:  # type: ignore[override]
        if self.intro:
            print(self.intro)
        self.do_refresh("")

    def emptyline(self) -> None:  # type: ignore[override]
        pass

    def default(self, line: str) -> None:  # type: ignore[override]
        self.console.print(colored(f"Unknown command: {line}", "yellow"))

    # ------------------------------------------------------------------
    # Commands
    def do_refresh(self, _: str) -> None:
        """Fetch account and market data again."""
        pending = self._account.refresh_async()
        self._markets.refresh()
        pending.result()
        self._account_error()
        render_error(self.console, self._markets.error, "markets")
        self.console.print(colored(
            f"{len(self._account.positions)} positions, {len(self._account.orders)} orders, "
            f"{len(self._markets.rows)} markets",
            "cyan",
        ))

    def do_account(self, _: str) -> None:
        """Show balances, margin and PnL."""
        self._account_error()
        render_account(self.console, self._api_base, self._account)

    def do_positions(self, arg: str) -> None:
        """positions [SEARCH] [--filter gainers|losers] [--sort KEY] [--desc]"""
        args = self._parse("positions", arg, POSITION_SORT_KEYS)
        if args is None:
            return
        try:
            query = query_from_args(PositionRow, args)
        except ValueError as exc:
            self._handle_error(exc)
            return
        self._account_error()
        render_positions(self.console, apply_position_view(self._account.positions, query))

    def do_orders(self, arg: str) -> None:
        """orders [SEARCH] [--sort KEY] [--desc]"""
        args = self._parse("orders", arg, ORDER_SORT_KEYS, category=False)
        if args is None:
            return
        try:
            query = query_from_args(OrderRow, args)
        except ValueError as exc:
            self._handle_error(exc)
            return
        self._account_error()
        render_orders(self.console, apply_order_view(self._account.orders, query))

    def do_markets(self, arg: str) -> None:
        """markets [SEARCH] [--filter all|gainers|losers] [--sort KEY] [--desc]

        A bare 'markets' re-shows the last view, search included; any
        arguments replace it, so 'markets --filter all' clears the search.
        """
        if arg.strip():
            args = self._parse("markets", arg, MARKET_SORT_KEYS)
            if args is None:
                return
            try:
                query = query_from_args(MarketRow, args)
            except ValueError as exc:
                self._handle_error(exc)
                return
            if query.sort_key is None:
                query = replace(query, sort_key=self._market_query.sort_key, sort_dir=self._market_query.sort_dir)
            self._market_query = query
        render_error(self.console, self._markets.error, "markets")
        render_markets(self.console, apply_view(self._markets.rows, self._market_query), self._market_query)

    def do_sort(self, arg: str) -> None:
        """sort COLUMN -- toggle the watchlist sort on COLUMN."""
        key = arg.strip()
        if key not in MARKET_SORT_KEYS:
            self.console.print(colored("Usage: sort " + "|".join(MARKET_SORT_KEYS), "yellow"))
            return
        self._market_query = toggle_sort(self._market_query, key)
        self.do_markets("")

    def do_status(self, _: str) -> None:
        """Show backend health and network status."""
        try:
            status = self._markets.client.get_status()
            render_status(self.console, self._api_base, status)
        except Exception as exc:
            self._handle_error(exc)

    def do_env(self, _: str) -> None:
        """Show the engine this terminal is connected to."""
        self.console.print(colored(f"Engine: {self._api_base}", "cyan"))
        updated = format_time(int(self._account_updated)) if self._account_updated else "never"
        self.console.print(colored(f"Account data as of: {updated}", "cyan"))

    def do_quit(self, _: str) -> bool:  # type: ignore[override]
        """Exit the terminal."""
        self.console.print(colored("Bye.", "cyan"))
        return True

    def do_exit(self, arg: str) -> bool:  # type: ignore[override]
        return self.do_quit(arg)


def run_terminal(
    account: AccountData,
    markets: MarketBoard,
    api_base: str,
    console: Optional[Console] = None,
) -> None:
    """Launch the lighterdash interactive terminal."""
    DashboardTerminal(account, markets, api_base, console=console).cmdloop()
