"""Telegram notification sink.

Best-effort broadcast of metrics, status updates and operator alerts to a
Telegram chat. send_message() never raises: failures are logged and
reported through the return value.
"""

import logging

import httpx

from reporeply.config import Settings
from reporeply.delivery.errors import CircuitOpenError
from reporeply.resilience.circuit_breaker import CircuitBreakerRegistry

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"
TELEGRAM_MESSAGE_LIMIT = 4096
TELEGRAM_SERVICE = "telegram"


class TelegramNotifier:
    """Sends Markdown messages to one Telegram chat."""

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        breakers: CircuitBreakerRegistry,
        timeout_seconds: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.breakers = breakers
        self.timeout_seconds = timeout_seconds
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings, breakers: CircuitBreakerRegistry) -> "TelegramNotifier":
        return cls(
            bot_token=settings.TELEGRAM_BOT_TOKEN,
            chat_id=settings.TELEGRAM_CHAT_ID,
            breakers=breakers,
            timeout_seconds=float(settings.TELEGRAM_TIMEOUT_SECONDS),
        )

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    @property
    def client(self) -> httpx.Client:
        """Lazy-initialize HTTP client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout_seconds)
        return self._client

    def send_message(self, text: str) -> bool:
        """Send a message to the configured chat.

        Returns:
            True if Telegram accepted the message, False otherwise
        """
        if not self.enabled:
            logger.debug("Telegram not configured, skipping notification")
            return False

        try:
            self.breakers.check(TELEGRAM_SERVICE)
        except CircuitOpenError:
            logger.warning("[Telegram] Circuit open, notification dropped")
            return False

        try:
            response = self.client.post(
                f"{TELEGRAM_API_URL}/bot{self.bot_token}/sendMessage",
                json={
                    "chat_id": self.chat_id,
                    "text": text[:TELEGRAM_MESSAGE_LIMIT],
                    "parse_mode": "Markdown",
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self.breakers.record_failure(TELEGRAM_SERVICE)
            logger.error(
                f"[Telegram] Notification failed: API error {e.response.status_code}",
                extra={"status_code": e.response.status_code},
            )
            return False
        except httpx.HTTPError as e:
            self.breakers.record_failure(TELEGRAM_SERVICE)
            logger.error(f"[Telegram] Notification failed: {e}")
            return False

        self.breakers.record_success(TELEGRAM_SERVICE)
        return True

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None
