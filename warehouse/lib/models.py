"""Domain records stored in the realtime store.

Records are validated with pydantic when read from the store. Field names
follow the stored documents (camelCase), attribute names are snake_case.
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Self

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from warehouse.lib.config import BreachType, NotificationType, Parameter
from warehouse.lib.exceptions import MalformedDataError

type Snapshot = dict[str, Any] | None
"""Value of a store node: mapping of child key to value, None when absent."""


def parse_timestamp(value: str) -> datetime:
    """Parse a reading timestamp such as '2024-01-01T00:00:00'.

    Store keys use '_' as the date/time separator. Naive values are UTC.

    Raises:
        ValueError: If the value is not an ISO-8601-like timestamp.
    """
    parsed = datetime.fromisoformat(value.strip().replace("_", "T", 1))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _describe(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'record'}: {err['msg']}"
        for err in error.errors()
    )


class Reading(BaseModel):
    """A single temperature/humidity sensor reading."""

    model_config = ConfigDict(frozen=True)

    timestamp: str = Field(
        validation_alias=AliasChoices("createdAt_time", "timestamp")
    )
    temperature: float
    humidity: float

    @field_validator("timestamp")
    @classmethod
    def _check_timestamp(cls, v: str) -> str:
        parse_timestamp(v)
        return v

    @property
    def recorded_at(self) -> datetime:
        return parse_timestamp(self.timestamp)

    def value(self, parameter: Parameter) -> float:
        return getattr(self, parameter.value)

    @classmethod
    def from_record(cls, key: str, record: Any) -> Self:
        """Build a reading from a stored record, keyed by its timestamp.

        The record's own ``createdAt_time`` wins over the store key.
        """
        if not isinstance(record, Mapping):
            raise MalformedDataError(f"Reading {key!r} is not an object")
        try:
            return cls.model_validate({"timestamp": key, **record})
        except ValidationError as e:
            raise MalformedDataError(
                f"Reading {key!r} is malformed: {_describe(e)}"
            ) from None


def latest_reading(snapshot: Snapshot) -> Reading | None:
    """Return the most recent valid reading of a readings snapshot.

    Malformed entries are skipped. Returns None if there is no valid reading.
    """
    if not snapshot:
        return None

    latest: Reading | None = None
    for key, record in snapshot.items():
        try:
            reading = Reading.from_record(key, record)
        except MalformedDataError:
            continue
        if latest is None or reading.recorded_at > latest.recorded_at:
            latest = reading
    return latest


class ThresholdSet(BaseModel):
    """Operator-configured high/low limits for each parameter."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    temp_high: float = Field(
        validation_alias=AliasChoices(
            "tempHighThreshold", "tempHigh", "temp_high"
        ),
        serialization_alias="tempHighThreshold",
    )
    temp_low: float = Field(
        validation_alias=AliasChoices(
            "tempLowThreshold", "tempLow", "temp_low"
        ),
        serialization_alias="tempLowThreshold",
    )
    hum_high: float = Field(
        validation_alias=AliasChoices(
            "humHighThreshold", "humHigh", "hum_high"
        ),
        serialization_alias="humHighThreshold",
    )
    hum_low: float = Field(
        validation_alias=AliasChoices(
            "humLowThreshold", "humLow", "hum_low"
        ),
        serialization_alias="humLowThreshold",
    )
    updated_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("updatedAt", "updated_at"),
        serialization_alias="updatedAt",
    )

    @field_validator("updated_at")
    @classmethod
    def _assume_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    def limits(self, parameter: Parameter) -> tuple[float, float]:
        """Return the (high, low) limits for a parameter."""
        if parameter == Parameter.TEMPERATURE:
            return self.temp_high, self.temp_low
        return self.hum_high, self.hum_low

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_snapshot(cls, snapshot: Mapping[str, Any]) -> Self:
        """Build a threshold set from the thresholds node.

        Raises:
            MalformedDataError: If a limit is missing or not a number.
        """
        try:
            return cls.model_validate(dict(snapshot))
        except ValidationError as e:
            raise MalformedDataError(
                f"Thresholds are malformed: {_describe(e)}"
            ) from None


class Notification(BaseModel):
    """A stored threshold breach notification."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str | None = Field(default=None, exclude=True)
    type: NotificationType = NotificationType.THRESHOLD_BREACH
    parameter: Parameter
    breach_type: BreachType = Field(alias="breachType")
    value: float
    data_timestamp: str = Field(alias="dataTimestamp")
    message: str
    created_at: str = Field(
        validation_alias=AliasChoices("createdAt", "timestamp", "created_at"),
        serialization_alias="createdAt",
    )
    read_by: dict[str, Any] = Field(default_factory=dict, alias="readBy")

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_record(cls, key: str, record: Any) -> Self:
        if not isinstance(record, Mapping):
            raise MalformedDataError(f"Notification {key!r} is not an object")
        try:
            return cls.model_validate({**record, "id": key})
        except ValidationError as e:
            raise MalformedDataError(
                f"Notification {key!r} is malformed: {_describe(e)}"
            ) from None
