from typing import Any, Iterable, Optional

# Used when the model omits a confidence value.
DEFAULT_CONFIDENCE = 0.9


def normalize_confidence(value: Any, default: float = DEFAULT_CONFIDENCE) -> float:
    """
    Bring a model-reported confidence onto [0, 1].

    Models answer on either a 0–1 or a 0–100 scale: anything above 1 is
    read as a percentage.  Missing or non-numeric values give *default*.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    if number > 1:
        number = number / 100
    return min(max(number, 0.0), 1.0)


def mean_confidence(values: Iterable[Optional[float]]) -> float:
    """Arithmetic mean of the non-None values, 0.0 when there are none."""
    present = [v for v in values if v is not None]
    if not present:
        return 0.0
    return round(sum(present) / len(present), 4)
