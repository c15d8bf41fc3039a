"""Abstract trading-engine client interface for the dashboard."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from .models import AccountSummary, EngineStatus, MarketRow, OrderRow, PositionRow


class EngineError(RuntimeError):
    """Raised when talking to the trading engine fails."""


class FetchError(EngineError):
    """A sub-resource request did not succeed."""

    def __init__(self, resource: str, status_code: Optional[int] = None, detail: str = "") -> None:
        self.resource = resource
        self.status_code = status_code
        self.detail = detail
        super().__init__(self._describe())

    def _describe(self) -> str:
        if self.status_code is not None:
            return f"{self.resource}: {self.status_code}"
        if self.detail:
            return f"{self.resource}: {self.detail}"
        return self.resource


class DecodeError(FetchError):
    """The response body could not be decoded into the expected shape."""

    def __init__(self, resource: str, detail: str = "invalid response body") -> None:
        super().__init__(resource, None, detail)


class NetworkError(FetchError):
    """The request never completed (timeout, refused connection, ...)."""

    def __init__(self, resource: str, detail: str) -> None:
        super().__init__(resource, None, detail)


class EngineClient(ABC):
    """Read-only view of the trading engine the dashboard expects."""

    @abstractmethod
    def get_account_summary(self) -> AccountSummary:
        """Return the account summary snapshot."""

    @abstractmethod
    def get_positions(self) -> Sequence[PositionRow]:
        """Return currently open positions."""

    @abstractmethod
    def get_orders(self) -> Sequence[OrderRow]:
        """Return working and recent orders."""

    @abstractmethod
    def get_markets(self) -> Sequence[MarketRow]:
        """Return one row per tracked market."""

    @abstractmethod
    def get_status(self) -> EngineStatus:
        """Return backend health and network status."""
