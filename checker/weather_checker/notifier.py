import logging
from typing import Iterable, List, Optional, Sequence

import httpx

from .aggregator import format_precipitation_message, format_wind_message
from .config import Settings
from .schemas import Message, Phenomenon, WeatherWarning

logger = logging.getLogger(__name__)


def expand(
    body: Optional[str], recipients: Sequence[str], phenomenon: Phenomenon
) -> List[Message]:
    """
    Broadcast one rendered body to every recipient, in recipient order.
    """
    if body is None or not recipients:
        return []
    return [
        Message(recipient=recipient, body=body, phenomenon=phenomenon)
        for recipient in recipients
    ]


def generate_precipitation_messages(
    warnings: Sequence[WeatherWarning], settings: Settings
) -> List[Message]:
    if not warnings or not settings.precipitation_user_ids:
        return []
    body = format_precipitation_message(warnings, settings)
    return expand(body, settings.precipitation_user_ids, Phenomenon.PRECIPITATION)


def generate_wind_messages(
    warnings: Sequence[WeatherWarning], settings: Settings
) -> List[Message]:
    if not warnings or not settings.wind_user_ids:
        return []
    body = format_wind_message(warnings, settings)
    return expand(body, settings.wind_user_ids, Phenomenon.WIND)


def generate_messages(
    precipitation_warnings: Sequence[WeatherWarning],
    wind_warnings: Sequence[WeatherWarning],
    settings: Settings,
) -> List[Message]:
    return generate_precipitation_messages(
        precipitation_warnings, settings
    ) + generate_wind_messages(wind_warnings, settings)


class WebhookNotifier:
    """
    Posts messages to the notification webhook, one attempt each.
    """

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self.client = client
        self.failed: List[Message] = []

    async def send(self, message: Message) -> bool:
        if not self.settings.bearer_token or not self.settings.endpoint_url:
            logger.error("BEARER_TOKEN or ENDPOINT_URL is not configured; cannot send message")
            return False

        headers = {"Authorization": f"Bearer {self.settings.bearer_token}"}
        try:
            if self.client is None:
                async with httpx.AsyncClient(timeout=self.settings.http_timeout_seconds) as client:
                    resp = await client.post(
                        self.settings.endpoint_url, json=message.payload(), headers=headers
                    )
            else:
                resp = await self.client.post(
                    self.settings.endpoint_url, json=message.payload(), headers=headers
                )
        except httpx.HTTPError as exc:
            logger.warning("Failed to send message to %s: %s", message.recipient, exc)
            return False

        if resp.is_success:
            logger.info("Message delivered to %s", message.recipient)
            return True
        logger.warning(
            "Failed to send message to %s: HTTP %s %s",
            message.recipient,
            resp.status_code,
            resp.text,
        )
        return False

    async def deliver_all(self, messages: Iterable[Message]) -> bool:
        """
        Deliver sequentially; a failed recipient does not stop the rest.
        """
        all_sent = True
        for message in messages:
            logger.info("-> Sending %s message to %s", message.phenomenon.value, message.recipient)
            if not await self.send(message):
                self.failed.append(message)
                all_sent = False
        return all_sent
