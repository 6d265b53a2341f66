from datetime import date, datetime
from enum import Enum
from typing import Any, List, Mapping, Optional, Set

from pydantic import BaseModel, Field


class Phenomenon(str, Enum):
    PRECIPITATION = "precipitation"
    WIND = "wind"
    BOTH = "both"


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class Precipitation(BaseModel):
    """
    Precipitation for one forecast interval, in mm.
    Feeds publish either a single figure or a min/max band around it.
    """

    value: Optional[float] = Field(None, ge=0)
    min_value: Optional[float] = Field(None, ge=0)
    max_value: Optional[float] = Field(None, ge=0)

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["Precipitation"]:
        """
        Accept a scalar (number or numeric string) or a mapping with
        value/minvalue/maxvalue keys. Returns None when nothing numeric is present.
        """
        if isinstance(raw, Mapping):
            precipitation = cls(
                value=_to_float(raw.get("value")),
                min_value=_to_float(raw.get("minvalue")),
                max_value=_to_float(raw.get("maxvalue")),
            )
        else:
            precipitation = cls(value=_to_float(raw))
        if precipitation.amount is None:
            return None
        return precipitation

    @property
    def amount(self) -> Optional[float]:
        """Representative magnitude compared against thresholds."""
        if self.value is not None:
            return self.value
        if self.max_value is not None:
            return self.max_value
        return self.min_value

    @property
    def is_range(self) -> bool:
        return (
            self.min_value is not None
            and self.max_value is not None
            and self.min_value != self.max_value
        )

    def describe(self) -> str:
        if self.is_range:
            return f"{self.min_value:.1f} - {self.max_value:.1f}"
        return f"{self.amount:.1f}"


class Observation(BaseModel):
    timestamp: datetime
    date: date
    wind_gust: Optional[float] = Field(None, ge=0)
    wind_speed: Optional[float] = Field(None, ge=0)
    precipitation: Optional[Precipitation] = None

    @property
    def has_data(self) -> bool:
        return (
            self.wind_gust is not None
            or self.wind_speed is not None
            or self.precipitation is not None
        )


class WeatherWarning(Observation):
    reasons: List[str] = Field(min_length=1)


class EvaluationResult(BaseModel):
    warnings: List[WeatherWarning] = []
    warning_dates: Set[date] = set()


class Message(BaseModel):
    recipient: str
    body: str
    phenomenon: Phenomenon

    def payload(self) -> dict:
        """JSON body expected by the notification webhook."""
        return {"discordid": self.recipient, "message": self.body}
