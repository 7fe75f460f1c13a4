"""Interval string ('30s', '5m', '1h', '1d') to seconds."""

_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def timeframe_seconds(tf: str) -> int:
    """Convert a Binance-style interval to seconds. Raises ValueError on bad input."""
    tf = tf.strip().lower()
    unit = tf[-1:] if tf else ""
    if unit not in _UNIT_SECONDS or not tf[:-1].isdigit() or int(tf[:-1]) <= 0:
        raise ValueError(f"Unsupported timeframe: {tf}")
    return int(tf[:-1]) * _UNIT_SECONDS[unit]
