"""Threshold breach evaluation for warehouse readings."""

from dataclasses import dataclass

from warehouse.lib.config import BreachType, Parameter
from warehouse.lib.models import Reading, ThresholdSet


@dataclass(frozen=True, slots=True)
class BreachCandidate:
    """A reading value outside its configured limits."""

    parameter: Parameter
    breach_type: BreachType
    value: float
    data_timestamp: str
    message: str


def check_threshold_breach(
    value: float, high: float, low: float
) -> BreachType | None:
    """Return which limit the value crosses, if any.

    Comparisons are strict: a value equal to a limit is in range.
    """
    if value > high:
        return BreachType.HIGH
    if value < low:
        return BreachType.LOW
    return None


def _format_limit(limit: float) -> str:
    # 30.0 -> "30", 30.5 -> "30.5"
    return f"{limit:g}"


def format_breach_message(
    parameter: Parameter,
    breach_type: BreachType,
    limit: float,
    timestamp: str,
) -> str:
    """Format a breach as a human-readable sentence."""
    bound = (
        "above maximum" if breach_type == BreachType.HIGH else "below minimum"
    )
    return (
        f"{parameter.label} {bound} threshold of "
        f"{_format_limit(limit)}{parameter.unit} at {timestamp}"
    )


def evaluate(
    reading: Reading, thresholds: ThresholdSet
) -> list[BreachCandidate]:
    """Compare a reading against thresholds and return any breaches."""
    candidates: list[BreachCandidate] = []
    for parameter in Parameter:
        value = reading.value(parameter)
        high, low = thresholds.limits(parameter)
        breach_type = check_threshold_breach(value, high, low)
        if breach_type is None:
            continue
        limit = high if breach_type == BreachType.HIGH else low
        candidates.append(
            BreachCandidate(
                parameter=parameter,
                breach_type=breach_type,
                value=value,
                data_timestamp=reading.timestamp,
                message=format_breach_message(
                    parameter, breach_type, limit, reading.timestamp
                ),
            )
        )
    return candidates
