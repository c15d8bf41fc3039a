"""Pure display helpers shared by the dashboard tables."""
from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Optional

from rich.text import Text

from .engine import Direction, Side

FUNDING_EMPHASIS_THRESHOLD = 0.0002

_MAGNITUDES = (
    (1_000_000_000, "B"),
    (1_000_000, "M"),
    (1_000, "K"),
)


class Tone(str, Enum):
    """Visual emphasis tier for a value."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


TONE_STYLES = {
    Tone.POSITIVE: "green",
    Tone.NEGATIVE: "red",
    Tone.NEUTRAL: "white",
}


def _finite(value: Optional[float]) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def format_usd_magnitude(value: Optional[float]) -> str:
    """Render large dollar figures with K/M/B suffixes, e.g. ``$1.50M``."""
    if not _finite(value):
        return "$0.00"
    for threshold, suffix in _MAGNITUDES:
        if abs(value) >= threshold:  # type: ignore[arg-type]
            return f"${value / threshold:.2f}{suffix}"  # type: ignore[operator]
    return f"${value:.2f}"


def format_usd(value: Optional[float]) -> str:
    if not _finite(value):
        return "$0.00"
    return f"${value:.2f}"


def format_pct(value: Optional[float]) -> str:
    if not _finite(value) or value == 0:
        return "0.00%"
    return f"{value:.2f}%"


def format_leverage(value: Optional[float]) -> str:
    return f"{value if _finite(value) else 0.0:.2f}x"


def format_price(value: Optional[float], decimals: int = 4) -> str:
    """Fixed-point price; missing or zero prices (market orders) render as ``-``."""
    if not _finite(value) or value == 0:
        return "-"
    return f"{value:.{decimals}f}"


def format_number(value: Optional[float], decimals: int = 2) -> str:
    if not _finite(value):
        return "-"
    return f"{value:,.{decimals}f}"


def format_time(epoch_seconds: Optional[int]) -> str:
    if not epoch_seconds:
        return "-"
    try:
        return datetime.fromtimestamp(epoch_seconds).strftime("%H:%M:%S")
    except (OverflowError, OSError, ValueError):
        return "-"


def sign_tone(value: Optional[float]) -> Tone:
    if not _finite(value) or value == 0:
        return Tone.NEUTRAL
    return Tone.POSITIVE if value > 0 else Tone.NEGATIVE  # type: ignore[operator]


def funding_tier(rate: Optional[float]) -> Tone:
    """Classify an 8h funding rate; only rates beyond +/-0.0002 are emphasised."""
    if not _finite(rate):
        return Tone.NEUTRAL
    if rate > FUNDING_EMPHASIS_THRESHOLD:  # type: ignore[operator]
        return Tone.POSITIVE
    if rate < -FUNDING_EMPHASIS_THRESHOLD:  # type: ignore[operator]
        return Tone.NEGATIVE
    return Tone.NEUTRAL


def side_tone(side: Side) -> Tone:
    direction = side.direction
    if direction is Direction.BULLISH:
        return Tone.POSITIVE
    if direction is Direction.BEARISH:
        return Tone.NEGATIVE
    return Tone.NEUTRAL


def styled(text: str, tone: Tone) -> Text:
    """Wrap text for a rich table cell in the colour of its tone."""
    if tone is Tone.NEUTRAL:
        return Text(text)
    return Text(text, style=TONE_STYLES[tone])
