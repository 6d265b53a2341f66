import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import httpx
from pydantic import ValidationError

from .config import Settings
from .errors import FeedParseError, FetchError
from .schemas import Observation, Precipitation

logger = logging.getLogger(__name__)

# element id the feed uses for each wind figure; other ids under the same tag are ignored
WIND_GUST_ID = "ff_gust"
WIND_SPEED_ID = "ff"


async def fetch_forecast(
    settings: Settings, client: Optional[httpx.AsyncClient] = None
) -> str:
    """
    Download the raw forecast document. Any transport error or non-2xx
    status is raised as FetchError.
    """
    headers = {"User-Agent": settings.user_agent}
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as own_client:
                resp = await own_client.get(settings.forecast_url, headers=headers)
        else:
            resp = await client.get(settings.forecast_url, headers=headers)
        resp.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise FetchError(
            f"HTTP {exc.response.status_code}: {exc.response.reason_phrase}"
        ) from exc
    except httpx.HTTPError as exc:
        raise FetchError(f"Forecast request failed: {exc}") from exc
    return resp.text


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_within_horizon(start: datetime, horizon_days: int, now: datetime) -> bool:
    """
    Today's partial day is always excluded; otherwise anything up to
    now + horizon_days is kept, including instants earlier than now.
    """
    if start.date() == now.date():
        return False
    return start <= now + timedelta(days=horizon_days)


def _extract_wind(location: ET.Element, tag: str, expected_id: str) -> Optional[float]:
    for element in location.iter(tag):
        if element.get("id") == expected_id:
            try:
                return float(element.get("mps"))
            except (TypeError, ValueError):
                return None
    return None


def _extract_precipitation(location: ET.Element) -> Optional[Precipitation]:
    element = location.find(".//precipitation")
    if element is None:
        return None
    try:
        return Precipitation.from_raw(element.attrib)
    except ValidationError:
        return None


def parse_time_element(
    time_element: ET.Element, horizon_days: int, now: datetime
) -> Optional[Observation]:
    start = parse_timestamp(time_element.get("from"))
    end = parse_timestamp(time_element.get("to"))
    if start is None or end is None:
        return None
    if not is_within_horizon(start, horizon_days, now):
        return None

    location = time_element.find(".//location")
    if location is None:
        return None

    try:
        observation = Observation(
            timestamp=start,
            date=start.date(),
            wind_gust=_extract_wind(location, "windGust", WIND_GUST_ID),
            wind_speed=_extract_wind(location, "windSpeed", WIND_SPEED_ID),
            precipitation=_extract_precipitation(location),
        )
    except ValidationError as exc:
        logger.debug("Skipping interval %s: %s", time_element.get("from"), exc)
        return None
    return observation if observation.has_data else None


def parse_forecast(
    raw: str, horizon_days: int, now: Optional[datetime] = None
) -> List[Observation]:
    """
    Turn a locationforecast "classic" XML document into observations within
    the horizon, in document order. Intervals with missing attributes or no
    usable values are skipped; unparsable markup raises FeedParseError.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    try:
        root = ET.fromstring(raw)
    except ET.ParseError as exc:
        raise FeedParseError(f"Unparsable forecast document: {exc}") from exc

    observations: List[Observation] = []
    for time_element in root.iter("time"):
        observation = parse_time_element(time_element, horizon_days, now)
        if observation is not None:
            observations.append(observation)
    return observations
