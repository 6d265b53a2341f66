import os
from datetime import datetime, timezone

import pytest

from weather_checker.config import Settings
from weather_checker.schemas import Observation, Precipitation

NOW = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)


def make_observation(day=2, hour=12, gust=None, speed=None, precipitation=None) -> Observation:
    timestamp = datetime(2024, 3, day, hour, tzinfo=timezone.utc)
    if precipitation is not None and not isinstance(precipitation, Precipitation):
        precipitation = Precipitation.from_raw(precipitation)
    return Observation(
        timestamp=timestamp,
        date=timestamp.date(),
        wind_gust=gust,
        wind_speed=speed,
        precipitation=precipitation,
    )


def time_node(start, end=None, gust=None, speed=None, precipitation=None, extra=""):
    """Build one <time> node in the locationforecast classic format."""
    parts = []
    if gust is not None:
        parts.append(f'<windGust id="ff_gust" mps="{gust}"/>')
    if speed is not None:
        parts.append(f'<windSpeed id="ff" mps="{speed}" beaufort="5" name="Frisk bris"/>')
    if precipitation is not None:
        if isinstance(precipitation, dict):
            attrs = " ".join(f'{key}="{value}"' for key, value in precipitation.items())
        else:
            attrs = f'value="{precipitation}"'
        parts.append(f'<precipitation unit="mm" {attrs}/>')
    parts.append(extra)
    return (
        f'<time datatype="forecast" from="{start}" to="{end or start}">'
        f'<location altitude="10" latitude="56.9496" longitude="24.1052">'
        f'{"".join(parts)}'
        f"</location></time>"
    )


def forecast_document(*nodes):
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<weatherdata created="2024-03-01T09:00:00Z">'
        '<product class="pointData">'
        f'{"".join(nodes)}'
        "</product></weatherdata>"
    )


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        latitude=56.9496,
        longitude=24.1052,
        wind_gust_threshold=15.0,
        wind_speed_threshold=10.0,
        precipitation_threshold=5.0,
        precipitation_days_ahead=3,
        wind_days_ahead=3,
        precipitation_user_ids=["111", "222"],
        wind_user_ids=["333"],
        bearer_token="secret",
        endpoint_url="https://hooks.example.com/notify",
        log_file=os.devnull,
    )


@pytest.fixture
def sample_feed():
    return forecast_document(
        # today: always excluded
        time_node("2024-03-01T18:00:00Z", gust=25.0, speed=12.0),
        time_node("2024-03-01T18:00:00Z", "2024-03-01T19:00:00Z", precipitation=9.0),
        time_node("2024-03-02T12:00:00Z", gust=18.3, speed=9.0),
        time_node("2024-03-02T12:00:00Z", "2024-03-02T13:00:00Z", precipitation=6.5),
        time_node("2024-03-02T13:00:00Z", "2024-03-02T14:00:00Z", precipitation=1.0),
        time_node("2024-03-03T06:00:00Z", speed=11.4),
        time_node(
            "2024-03-03T06:00:00Z",
            "2024-03-03T12:00:00Z",
            precipitation={"value": "5.2", "minvalue": "3.0", "maxvalue": "8.0"},
        ),
        # beyond a three day horizon
        time_node("2024-03-05T12:00:00Z", gust=30.0),
    )
