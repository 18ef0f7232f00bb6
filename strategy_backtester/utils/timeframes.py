"""Timeframe string to minutes / milliseconds conversion."""

from __future__ import annotations


def timeframe_minutes(tf: str) -> int:
    """Convert Binance-style timeframe (e.g. '5m', '1h', '1d', '1w') to minutes."""
    tf = tf.strip().lower()
    try:
        if tf.endswith("m"):
            value = int(tf[:-1])
        elif tf.endswith("h"):
            value = int(tf[:-1]) * 60
        elif tf.endswith("d"):
            value = int(tf[:-1]) * 60 * 24
        elif tf.endswith("w"):
            value = int(tf[:-1]) * 60 * 24 * 7
        else:
            raise ValueError(f"Unsupported timeframe: {tf}")
    except ValueError:
        raise ValueError(f"Unsupported timeframe: {tf}") from None
    if value <= 0:
        raise ValueError(f"Unsupported timeframe: {tf}")
    return value


def timeframe_ms(tf: str) -> int:
    """Candle spacing in epoch milliseconds."""
    return timeframe_minutes(tf) * 60_000
