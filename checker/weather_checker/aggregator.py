from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

from . import alerts
from .config import Settings
from .schemas import Observation, Phenomenon, WeatherWarning

PRECIPITATION_HEADER = "⚠️ Heavy precipitation expected:"
WIND_HEADER = "⚠️ Strong wind gusts expected:"

DAILY_MAX = "daily_max"
PER_INSTANT = "per_instant"


def _group_by_date(warnings: Iterable[WeatherWarning]) -> Dict[date, List[WeatherWarning]]:
    days: Dict[date, List[WeatherWarning]] = defaultdict(list)
    for warning in warnings:
        days[warning.date].append(warning)
    return days


def _render(header: str, lines: List[str]) -> Optional[str]:
    if not any(lines):
        return None
    return header + "\n" + "\n".join(lines)


def format_precipitation_message(
    warnings: Sequence[WeatherWarning], settings: Settings
) -> Optional[str]:
    """
    One line per day with the summed precipitation of that day's qualifying
    intervals. Banded values are summed bound by bound.
    """
    lines = []
    for day, day_warnings in sorted(_group_by_date(warnings).items()):
        total = low = high = 0.0
        banded = False
        for warning in day_warnings:
            if not alerts.has_heavy_precipitation(warning, settings):
                continue
            precipitation = warning.precipitation
            total += precipitation.amount
            if precipitation.is_range:
                banded = True
                low += precipitation.min_value
                high += precipitation.max_value
            else:
                low += precipitation.amount
                high += precipitation.amount
        if total <= 0:
            continue
        if banded and round(low, 1) != round(high, 1):
            lines.append(f"{day.isoformat()} – precipitation {low:.1f} - {high:.1f} mm")
        else:
            lines.append(f"{day.isoformat()} – precipitation {total:.1f} mm")
    return _render(PRECIPITATION_HEADER, lines)


def _daily_max_lines(warnings: Sequence[WeatherWarning], settings: Settings) -> List[str]:
    lines = []
    for day, day_warnings in sorted(_group_by_date(warnings).items()):
        max_gust = 0.0
        max_speed = 0.0
        sustained_only = False
        for warning in day_warnings:
            if alerts.has_strong_gust(warning, settings):
                max_gust = max(max_gust, warning.wind_gust)
            elif alerts.has_strong_sustained_wind(warning, settings):
                sustained_only = True
            if warning.wind_speed is not None:
                max_speed = max(max_speed, warning.wind_speed)
        if max_gust > 0:
            line = f"{day.isoformat()} – gusts up to {max_gust:.1f} m/s"
            if max_speed > 0:
                line += f", wind up to {max_speed:.1f} m/s"
            lines.append(line)
        elif sustained_only and max_speed > 0:
            lines.append(f"{day.isoformat()} – wind up to {max_speed:.1f} m/s")
    return lines


def _per_instant_lines(warnings: Sequence[WeatherWarning], settings: Settings) -> List[str]:
    blocks = []
    for day, day_warnings in sorted(_group_by_date(warnings).items()):
        day_warnings = sorted(day_warnings, key=lambda w: w.timestamp)
        sustained = [
            w for w in day_warnings
            if alerts.has_strong_sustained_wind(w, settings) and w.wind_speed > 0
        ]
        if any(w.wind_gust is not None for w in day_warnings):
            block = []
            for w in day_warnings:
                if alerts.has_strong_gust(w, settings) and w.wind_gust > 0:
                    block.append(f"{day.isoformat()} {w.timestamp:%H:%M} – gusts {w.wind_gust:.1f} m/s")
                elif alerts.has_strong_sustained_wind(w, settings) and w.wind_speed > 0:
                    block.append(f"{day.isoformat()} {w.timestamp:%H:%M} – wind {w.wind_speed:.1f} m/s")
        elif sustained:
            # first instant wins on ties
            best = max(sustained, key=lambda w: w.wind_speed)
            block = [f"{day.isoformat()} {best.timestamp:%H:%M} – wind {best.wind_speed:.1f} m/s"]
        else:
            block = []
        if block:
            blocks.append(block)

    lines: List[str] = []
    for i, block in enumerate(blocks):
        if i:
            lines.append("")
        lines.extend(block)
    return lines


def format_wind_message(
    warnings: Sequence[WeatherWarning], settings: Settings
) -> Optional[str]:
    if settings.wind_aggregation == PER_INSTANT:
        lines = _per_instant_lines(warnings, settings)
    else:
        lines = _daily_max_lines(warnings, settings)
    return _render(WIND_HEADER, lines)


def summarize_by_day(observations: Iterable[Observation], phenomenon: Phenomenon) -> List[str]:
    """
    Per-day overview of all parsed observations, for the run log.
    """
    days: Dict[date, dict] = {}
    for observation in observations:
        bucket = days.setdefault(
            observation.date,
            {"max_gust": 0.0, "max_speed": 0.0, "precipitation": 0.0, "wind_count": 0, "precip_count": 0},
        )
        if observation.wind_gust is not None:
            bucket["max_gust"] = max(bucket["max_gust"], observation.wind_gust)
            bucket["wind_count"] += 1
        if observation.wind_speed is not None:
            bucket["max_speed"] = max(bucket["max_speed"], observation.wind_speed)
            bucket["wind_count"] += 1
        if observation.precipitation is not None:
            bucket["precipitation"] += observation.precipitation.amount
            bucket["precip_count"] += 1

    lines = []
    for day in sorted(days):
        bucket = days[day]
        if phenomenon == Phenomenon.PRECIPITATION:
            detail = (
                f"{bucket['precipitation']:.1f} mm"
                if bucket["precip_count"]
                else "no precipitation data"
            )
        else:
            if not bucket["wind_count"]:
                detail = "no wind data"
            else:
                detail = f"gusts {bucket['max_gust']:.1f} m/s"
                if bucket["max_speed"] > 0:
                    detail += f", wind {bucket['max_speed']:.1f} m/s"
        lines.append(f"{day.isoformat()}: {detail}")
    return lines
