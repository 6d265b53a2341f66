from functools import lru_cache
from typing import Annotated, List, Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .errors import ConfigurationError

REQUIRED_FIELDS = (
    "latitude",
    "longitude",
    "wind_gust_threshold",
    "precipitation_threshold",
)


class Settings(BaseSettings):
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # thresholds: m/s for wind, mm per forecast interval for precipitation
    wind_gust_threshold: Optional[float] = None
    wind_speed_threshold: Optional[float] = None
    precipitation_threshold: Optional[float] = None
    threshold_comparison: Literal[">", ">="] = ">="

    precipitation_days_ahead: int = 2
    wind_days_ahead: int = 2
    wind_aggregation: Literal["daily_max", "per_instant"] = "daily_max"

    precipitation_user_ids: Annotated[List[str], NoDecode] = []
    wind_user_ids: Annotated[List[str], NoDecode] = []

    bearer_token: Optional[str] = None
    endpoint_url: Optional[str] = None

    forecast_base_url: str = "https://api.met.no/weatherapi/locationforecast/2.0/classic"
    user_agent: str = "WeatherChecker/1.0 (Weather monitoring script)"
    http_timeout_seconds: float = 10.0

    log_level: str = "INFO"
    log_file: str = "weather-checker.log"

    pushgateway_url: Optional[str] = None
    metrics_job: str = "weather_checker"

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", env_ignore_empty=True
    )

    @field_validator("precipitation_user_ids", "wind_user_ids", mode="before")
    @classmethod
    def _split_ids(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @property
    def forecast_url(self) -> str:
        return f"{self.forecast_base_url}?lat={self.latitude}&lon={self.longitude}"

    def validate_required(self) -> None:
        """
        Raise ConfigurationError naming every required value that is unset.
        Must run before any network activity.
        """
        missing = [name for name in REQUIRED_FIELDS if getattr(self, name) is None]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )


@lru_cache
def get_settings() -> Settings:
    return Settings()
