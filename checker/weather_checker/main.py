import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

import httpx
from pydantic import ValidationError

from .aggregator import summarize_by_day
from .alerts import evaluate_observations
from .config import Settings, get_settings
from .errors import ConfigurationError, WeatherCheckError
from .forecast import fetch_forecast, parse_forecast
from .metrics import RunMetrics, push_metrics
from .notifier import WebhookNotifier, generate_messages
from .schemas import Message, Observation, Phenomenon, WeatherWarning

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
RUN_SEPARATOR = "=" * 80


class RunOutcome(str, Enum):
    NO_WARNINGS = "no_warnings"
    DELIVERED = "delivered"
    DELIVERY_FAILED = "delivery_failed"


EXIT_CODES = {
    RunOutcome.NO_WARNINGS: 0,
    RunOutcome.DELIVERED: 1,
    RunOutcome.DELIVERY_FAILED: 2,
}
EXIT_FATAL = 3


def setup_logging(settings: Settings, level: Optional[str] = None) -> None:
    """
    Log to stdout and append to the run log file, opening each run with a
    separator line.
    """
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    try:
        file_handler = logging.FileHandler(settings.log_file, mode="a", encoding="utf-8")
        file_handler.stream.write("\n" + RUN_SEPARATOR + "\n")
        handlers.append(file_handler)
    except OSError as exc:
        print(f"Cannot open log file {settings.log_file}: {exc}", file=sys.stderr)

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
    logging.basicConfig(level=(level or settings.log_level).upper(), handlers=handlers, force=True)


def _log_summary(title: str, observations: List[Observation], days: int, phenomenon: Phenomenon) -> None:
    logger.info("%s (%d days):", title, days)
    for line in summarize_by_day(observations, phenomenon):
        logger.info("  %s", line)


def _log_wind_preview(warnings: List[WeatherWarning], limit: int = 5) -> None:
    if not warnings:
        return
    logger.info("First %d wind warnings:", min(limit, len(warnings)))
    for i, warning in enumerate(warnings[:limit], start=1):
        logger.info("  %d. %s %s: %s", i, warning.date, f"{warning.timestamp:%H:%M}", "; ".join(warning.reasons))
    if len(warnings) > limit:
        logger.info("  ... and %d more", len(warnings) - limit)


def _log_messages(messages: List[Message]) -> None:
    for phenomenon in (Phenomenon.PRECIPITATION, Phenomenon.WIND):
        group = [m for m in messages if m.phenomenon == phenomenon]
        if not group:
            continue
        logger.info("%s messages:", phenomenon.value.upper())
        for i, message in enumerate(group, start=1):
            logger.info("Message %d:\n%s", i, json.dumps(message.payload(), indent=2, ensure_ascii=False))


async def run_check(
    settings: Settings,
    now: Optional[datetime] = None,
    client: Optional[httpx.AsyncClient] = None,
    dry_run: bool = False,
) -> RunOutcome:
    """
    Fetch, evaluate and deliver once. Configuration, fetch and parse errors
    propagate; delivery failures are reported through the outcome.
    """
    settings.validate_required()
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    metrics = RunMetrics()

    logger.info("Location: LAT %s, LON %s", settings.latitude, settings.longitude)
    logger.info(
        "Thresholds: gusts %s%s m/s, wind %s%s m/s, precipitation %s%s mm",
        settings.threshold_comparison,
        settings.wind_gust_threshold,
        settings.threshold_comparison,
        settings.wind_speed_threshold if settings.wind_speed_threshold is not None else "-",
        settings.threshold_comparison,
        settings.precipitation_threshold,
    )
    logger.info("Today: %s", now.astimezone(timezone.utc).date().isoformat())

    raw = await fetch_forecast(settings, client)

    precipitation_data = parse_forecast(raw, settings.precipitation_days_ahead, now)
    _log_summary("PRECIPITATION DATA", precipitation_data, settings.precipitation_days_ahead, Phenomenon.PRECIPITATION)
    precipitation = evaluate_observations(precipitation_data, Phenomenon.PRECIPITATION, settings)

    wind_data = parse_forecast(raw, settings.wind_days_ahead, now)
    _log_summary("WIND DATA", wind_data, settings.wind_days_ahead, Phenomenon.WIND)
    wind = evaluate_observations(wind_data, Phenomenon.WIND, settings)

    metrics.warnings.labels(phenomenon=Phenomenon.PRECIPITATION.value).inc(len(precipitation.warnings))
    metrics.warnings.labels(phenomenon=Phenomenon.WIND.value).inc(len(wind.warnings))
    logger.info(
        "Warnings: %d precipitation, %d wind",
        len(precipitation.warnings),
        len(wind.warnings),
    )
    _log_wind_preview(wind.warnings)

    messages = generate_messages(precipitation.warnings, wind.warnings, settings)
    metrics.messages.inc(len(messages))
    if not messages:
        if precipitation.warnings or wind.warnings:
            logger.info(
                "No messages: %d precipitation, %d wind warnings but no recipients configured",
                len(precipitation.warnings),
                len(wind.warnings),
            )
        else:
            logger.info("No warnings - conditions are fine")
        metrics.last_run_success.set(1)
        push_metrics(metrics, settings)
        return RunOutcome.NO_WARNINGS

    logger.info("Sending %d messages", len(messages))
    _log_messages(messages)

    if dry_run:
        logger.info("Dry run: skipping delivery")
        push_metrics(metrics, settings)
        return RunOutcome.DELIVERED

    notifier = WebhookNotifier(settings, client)
    all_sent = await notifier.deliver_all(messages)
    metrics.delivery_failures.inc(len(notifier.failed))
    metrics.last_run_success.set(1 if all_sent else 0)
    push_metrics(metrics, settings)
    return RunOutcome.DELIVERED if all_sent else RunOutcome.DELIVERY_FAILED


def cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Check the forecast for strong wind and heavy precipitation and notify recipients."
    )
    parser.add_argument("--dry-run", action="store_true", help="Render messages without sending them")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as exc:
        logging.basicConfig(level=logging.INFO)
        logger.error("Error: invalid configuration: %s", exc)
        return EXIT_FATAL

    setup_logging(settings, args.log_level)
    try:
        outcome = asyncio.run(run_check(settings, dry_run=args.dry_run))
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_FATAL
    except WeatherCheckError as exc:
        logger.error("Error: %s", exc)
        return EXIT_FATAL
    return EXIT_CODES[outcome]


def main() -> None:
    sys.exit(cli())


if __name__ == "__main__":
    main()
