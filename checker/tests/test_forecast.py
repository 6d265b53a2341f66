from datetime import date, datetime, timezone

import httpx
import pytest
from conftest import NOW, forecast_document, time_node
from weather_checker.errors import FeedParseError, FetchError
from weather_checker.forecast import (
    fetch_forecast,
    is_within_horizon,
    parse_forecast,
    parse_timestamp,
)


def test_parse_sample_feed(sample_feed) -> None:
    observations = parse_forecast(sample_feed, 3, NOW)

    assert [o.timestamp.isoformat() for o in observations] == [
        "2024-03-02T12:00:00+00:00",
        "2024-03-02T12:00:00+00:00",
        "2024-03-02T13:00:00+00:00",
        "2024-03-03T06:00:00+00:00",
        "2024-03-03T06:00:00+00:00",
    ]
    first = observations[0]
    assert first.date == date(2024, 3, 2)
    assert first.wind_gust == 18.3
    assert first.wind_speed == 9.0
    assert first.precipitation is None


def test_today_is_always_excluded() -> None:
    doc = forecast_document(
        time_node("2024-03-01T23:00:00Z", gust=40.0),
        time_node("2024-03-01T00:00:00Z", precipitation=12.0),
    )
    for horizon in (0, 1, 10):
        assert parse_forecast(doc, horizon, NOW) == []


def test_horizon_upper_bound_is_inclusive() -> None:
    doc = forecast_document(
        time_node("2024-03-03T10:00:00Z", gust=20.0),
        time_node("2024-03-03T10:00:01Z", gust=21.0),
    )
    observations = parse_forecast(doc, 2, NOW)
    assert [o.wind_gust for o in observations] == [20.0]


def test_past_days_are_not_filtered() -> None:
    doc = forecast_document(time_node("2024-02-29T12:00:00Z", gust=20.0))
    observations = parse_forecast(doc, 2, NOW)
    assert len(observations) == 1
    assert observations[0].date == date(2024, 2, 29)


def test_is_within_horizon() -> None:
    assert not is_within_horizon(datetime(2024, 3, 1, 23, 59, tzinfo=timezone.utc), 5, NOW)
    assert is_within_horizon(datetime(2024, 3, 2, 0, 0, tzinfo=timezone.utc), 1, NOW)
    assert not is_within_horizon(datetime(2024, 3, 2, 10, 1, tzinfo=timezone.utc), 1, NOW)


def test_intervals_with_missing_attributes_are_skipped() -> None:
    doc = forecast_document(
        '<time from="2024-03-02T12:00:00Z"><location><windGust id="ff_gust" mps="20"/></location></time>',
        '<time to="2024-03-02T12:00:00Z"><location><windGust id="ff_gust" mps="20"/></location></time>',
        '<time from="not-a-date" to="2024-03-02T12:00:00Z"><location><windGust id="ff_gust" mps="20"/></location></time>',
        '<time from="2024-03-02T12:00:00Z" to="2024-03-02T12:00:00Z"></time>',
        time_node("2024-03-02T15:00:00Z", extra='<temperature id="TTT" unit="celsius" value="4.1"/>'),
        time_node("2024-03-02T18:00:00Z", gust=16.0),
    )
    observations = parse_forecast(doc, 3, NOW)
    assert len(observations) == 1
    assert observations[0].wind_gust == 16.0


def test_only_canonical_wind_ids_are_read() -> None:
    doc = forecast_document(
        time_node(
            "2024-03-02T12:00:00Z",
            extra=(
                '<windGust id="ff_gust_max" mps="33.0"/>'
                '<windGust id="ff_gust" mps="17.5"/>'
                '<windSpeed id="ff_10m" mps="14.0"/>'
            ),
        ),
        time_node("2024-03-02T13:00:00Z", extra='<windGust id="other" mps="40.0"/>'),
    )
    observations = parse_forecast(doc, 3, NOW)
    assert len(observations) == 1
    assert observations[0].wind_gust == 17.5
    assert observations[0].wind_speed is None


def test_precipitation_band_is_normalized() -> None:
    doc = forecast_document(
        time_node(
            "2024-03-02T12:00:00Z",
            "2024-03-02T18:00:00Z",
            precipitation={"minvalue": "1.0", "maxvalue": "6.0"},
        ),
        time_node("2024-03-02T18:00:00Z", "2024-03-02T19:00:00Z", precipitation="0.4"),
    )
    banded, scalar = parse_forecast(doc, 3, NOW)

    assert banded.precipitation.value is None
    assert banded.precipitation.is_range
    assert banded.precipitation.amount == 6.0
    assert scalar.precipitation.value == 0.4
    assert not scalar.precipitation.is_range


def test_zero_wind_is_present_not_absent() -> None:
    doc = forecast_document(time_node("2024-03-02T12:00:00Z", gust=0.0))
    observations = parse_forecast(doc, 3, NOW)
    assert observations[0].wind_gust == 0.0


def test_unparsable_document_raises() -> None:
    with pytest.raises(FeedParseError):
        parse_forecast("<weatherdata><time", 3, NOW)


def test_parse_timestamp_handles_zulu_and_naive() -> None:
    assert parse_timestamp("2024-03-02T12:00:00Z") == datetime(2024, 3, 2, 12, tzinfo=timezone.utc)
    assert parse_timestamp("2024-03-02T12:00:00") == datetime(2024, 3, 2, 12, tzinfo=timezone.utc)
    assert parse_timestamp("2024-03-02T14:00:00+02:00") == datetime(2024, 3, 2, 12, tzinfo=timezone.utc)
    assert parse_timestamp("") is None
    assert parse_timestamp(None) is None


@pytest.mark.asyncio
async def test_fetch_forecast_returns_body(settings) -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["user_agent"] = request.headers["User-Agent"]
        return httpx.Response(200, text="<weatherdata/>")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        body = await fetch_forecast(settings, client)

    assert body == "<weatherdata/>"
    assert "lat=56.9496" in seen["url"]
    assert "lon=24.1052" in seen["url"]
    assert seen["user_agent"] == settings.user_agent


@pytest.mark.asyncio
async def test_fetch_forecast_non_success_raises(settings) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(FetchError, match="503"):
            await fetch_forecast(settings, client)


@pytest.mark.asyncio
async def test_fetch_forecast_transport_error_raises(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(FetchError):
            await fetch_forecast(settings, client)
