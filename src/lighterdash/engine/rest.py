"""REST implementation of the engine client used by the dashboard."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping

import requests

from .base import DecodeError, EngineClient, FetchError, NetworkError
from .models import AccountSummary, EngineStatus, MarketRow, OrderRow, PositionRow

log = logging.getLogger(__name__)

DEFAULT_API_BASE = "http://localhost:8080"


@dataclass(frozen=True)
class EngineConfig:
    api_base: str = DEFAULT_API_BASE
    timeout: float = 10.0

    def url(self, path: str) -> str:
        return f"{self.api_base.rstrip('/')}/{path.lstrip('/')}"


def _rows(payload: Any, key: str, resource: str) -> List[Mapping[str, Any]]:
    """Pull ``payload[key]`` as a list of objects; an absent key means no rows."""
    if not isinstance(payload, Mapping):
        raise DecodeError(resource, "expected a JSON object")
    rows = payload.get(key)
    if rows is None:
        return []
    if not isinstance(rows, list):
        raise DecodeError(resource, f"'{key}' is not a list")
    return [row for row in rows if isinstance(row, Mapping)]


class RestEngineClient(EngineClient):
    """Thin wrapper over the engine's JSON endpoints."""

    def __init__(self, config: EngineConfig) -> None:
        self._config = config

    @property
    def config(self) -> EngineConfig:
        return self._config

    # ------------------------------------------------------------------
    # Helpers
    def _get(self, resource: str, path: str) -> requests.Response:
        url = self._config.url(path)
        try:
            response = requests.get(url, timeout=self._config.timeout)
        except requests.RequestException as exc:
            raise NetworkError(resource, str(exc) or exc.__class__.__name__) from exc

        if not 200 <= response.status_code < 300:
            log.warning("GET %s returned %s", url, response.status_code)
            raise FetchError(resource, response.status_code)
        return response

    def _get_json(self, resource: str, path: str) -> Any:
        response = self._get(resource, path)
        try:
            return response.json()
        except ValueError as exc:
            raise DecodeError(resource, "failed to decode JSON") from exc

    # ------------------------------------------------------------------
    # EngineClient interface
    def get_account_summary(self) -> AccountSummary:
        payload = self._get_json("summary", "/api/account/summary")
        if not isinstance(payload, Mapping):
            raise DecodeError("summary", "expected a JSON object")
        return AccountSummary.from_dict(payload)

    def get_positions(self) -> List[PositionRow]:
        payload = self._get_json("positions", "/api/account/positions")
        return [PositionRow.from_dict(raw) for raw in _rows(payload, "positions", "positions")]

    def get_orders(self) -> List[OrderRow]:
        payload = self._get_json("orders", "/api/account/orders")
        return [OrderRow.from_dict(raw) for raw in _rows(payload, "orders", "orders")]

    def get_markets(self) -> List[MarketRow]:
        payload = self._get_json("markets", "/api/markets")
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise DecodeError("markets", "expected a JSON array")
        return [MarketRow.from_dict(raw) for raw in payload if isinstance(raw, Mapping)]

    def get_status(self) -> EngineStatus:
        try:
            health = self._get("healthz", "/api/healthz")
            healthy = health.text.strip() == "backend-ok"
        except FetchError as exc:
            log.warning("health check failed: %s", exc)
            healthy = False

        payload = self._get_json("status", "/api/status")
        if not isinstance(payload, Mapping):
            raise DecodeError("status", "expected a JSON object")

        def _optional_int(key: str) -> int | None:
            value = payload.get(key)
            try:
                return int(value) if value is not None else None
            except (TypeError, ValueError):
                return None

        return EngineStatus(
            healthy=healthy,
            network_id=_optional_int("network_id"),
            status=_optional_int("status"),
            timestamp=_optional_int("timestamp"),
        )
