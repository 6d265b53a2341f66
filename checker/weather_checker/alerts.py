import logging
from typing import Iterable, List, Optional

from .config import Settings
from .schemas import EvaluationResult, Observation, Phenomenon, WeatherWarning

logger = logging.getLogger(__name__)


def _compare(value: Optional[float], op: str, threshold: Optional[float]) -> bool:
    if value is None or threshold is None:
        return False
    if op == ">":
        return value > threshold
    if op == ">=":
        return value >= threshold
    return False


def has_strong_gust(observation: Observation, settings: Settings) -> bool:
    return _compare(
        observation.wind_gust, settings.threshold_comparison, settings.wind_gust_threshold
    )


def has_strong_sustained_wind(observation: Observation, settings: Settings) -> bool:
    # gust figures take precedence; sustained wind only counts when no gust was published
    if observation.wind_gust is not None:
        return False
    return _compare(
        observation.wind_speed, settings.threshold_comparison, settings.wind_speed_threshold
    )


def has_heavy_precipitation(observation: Observation, settings: Settings) -> bool:
    if observation.precipitation is None:
        return False
    return _compare(
        observation.precipitation.amount,
        settings.threshold_comparison,
        settings.precipitation_threshold,
    )


def _reasons(observation: Observation, gust: bool, sustained: bool, rain: bool) -> List[str]:
    reasons = []
    if gust:
        reasons.append(f"Strong wind: {observation.wind_gust:.1f} m/s (gusts)")
    if sustained:
        reasons.append(f"Strong wind: {observation.wind_speed:.1f} m/s (sustained)")
    if rain:
        reasons.append(f"Precipitation: {observation.precipitation.describe()} mm")
    return reasons


def evaluate_observations(
    observations: Iterable[Observation],
    phenomenon: Phenomenon,
    settings: Settings,
) -> EvaluationResult:
    """
    Keep the observations that cross a threshold for the requested phenomenon,
    annotating each with one reason per crossed threshold.
    """
    warnings: List[WeatherWarning] = []
    for observation in observations:
        gust = has_strong_gust(observation, settings)
        sustained = has_strong_sustained_wind(observation, settings)
        rain = has_heavy_precipitation(observation, settings)

        if phenomenon == Phenomenon.WIND:
            include = gust or sustained
        elif phenomenon == Phenomenon.PRECIPITATION:
            include = rain
        else:
            include = gust or sustained or rain
        if not include:
            continue

        warnings.append(
            WeatherWarning(
                **observation.model_dump(exclude={"reasons"}),
                reasons=_reasons(observation, gust, sustained, rain),
            )
        )

    result = EvaluationResult(
        warnings=warnings, warning_dates={w.date for w in warnings}
    )
    logger.debug(
        "Evaluated %s: %d warnings over %d days",
        phenomenon.value,
        len(result.warnings),
        len(result.warning_dates),
    )
    return result
