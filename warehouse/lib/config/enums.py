"""Enumerations for the warehouse monitor."""

from enum import StrEnum


class Parameter(StrEnum):
    """Monitored sensor parameters."""

    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def unit(self) -> "Unit":
        return _PARAMETER_UNITS[self]


class Unit(StrEnum):
    """Measurement units for sensor readings."""

    CELSIUS = "°C"
    PERCENT = "%"


class BreachType(StrEnum):
    """Which limit a reading crossed."""

    HIGH = "high"  # value > high threshold
    LOW = "low"  # value < low threshold


class NotificationType(StrEnum):
    THRESHOLD_BREACH = "threshold_breach"


class StoreBackend(StrEnum):
    REDIS = "redis"
    MEMORY = "memory"


class DedupStrategy(StrEnum):
    """How notification duplicates are detected."""

    DURABLE = "durable"  # look up existing notifications in the store
    MEMORY = "memory"  # process-lifetime set, lost on restart


_PARAMETER_UNITS: dict[Parameter, Unit] = {
    Parameter.TEMPERATURE: Unit.CELSIUS,
    Parameter.HUMIDITY: Unit.PERCENT,
}
