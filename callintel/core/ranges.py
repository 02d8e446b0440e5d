"""Clamping helpers for confidence, score and percentage fields."""


def clamp(value: float | None, low: float, high: float, default: float | None = None):
    if value is None:
        return default
    return max(low, min(high, value))


def clamp_unit(value: float | None, default: float = 0.0) -> float:
    """Confidence-style value in [0, 1]."""
    return clamp(value, 0.0, 1.0, default)


def clamp_percent(value: float | None) -> int | None:
    """Probability-style value as an integer in [0, 100]."""
    if value is None:
        return None
    return int(round(clamp(value, 0, 100)))
