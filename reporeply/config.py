"""Environment configuration for the RepoReply reminder scheduler."""

import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int_list(name: str, default: list[int]) -> list[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return list(default)
    return [int(part) for part in value.split(",") if part.strip()]


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self) -> None:
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "")
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

        # Scheduler loop
        self.SCHEDULER_ENABLED: bool = _env_bool("SCHEDULER_ENABLED", True)
        self.SCHEDULER_BATCH_SIZE: int = _env_int("SCHEDULER_BATCH_SIZE", 50)
        self.SCHEDULER_POLL_INTERVAL_SECONDS: int = _env_int("SCHEDULER_POLL_INTERVAL_SECONDS", 30)
        self.SCHEDULER_STARTUP_DELAY_SECONDS: int = _env_int("SCHEDULER_STARTUP_DELAY_SECONDS", 5)
        self.SCHEDULER_SHUTDOWN_GRACE_SECONDS: int = _env_int("SCHEDULER_SHUTDOWN_GRACE_SECONDS", 30)
        self.SCHEDULER_UNHEALTHY_AFTER_FAILURES: int = _env_int("SCHEDULER_UNHEALTHY_AFTER_FAILURES", 3)

        # Retry policy
        self.SCHEDULER_MAX_RETRIES: int = _env_int("SCHEDULER_MAX_RETRIES", 5)
        self.SCHEDULER_PERMANENT_DEAD_AFTER: int = _env_int("SCHEDULER_PERMANENT_DEAD_AFTER", 3)
        self.SCHEDULER_RETRY_DELAYS_MINUTES: list[int] = _env_int_list(
            "SCHEDULER_RETRY_DELAYS_MINUTES", [5, 15, 30, 60, 120]
        )
        self.SCHEDULER_PROCESSING_TIMEOUT_SECONDS: int = _env_int("SCHEDULER_PROCESSING_TIMEOUT_SECONDS", 300)
        self.ERROR_MESSAGE_MAX_LENGTH: int = _env_int("ERROR_MESSAGE_MAX_LENGTH", 500)

        # Delivery platform protection
        self.RATE_LIMIT_BUFFER: int = _env_int("RATE_LIMIT_BUFFER", 100)
        self.RATE_LIMIT_MAX_WAIT_SECONDS: int = _env_int("RATE_LIMIT_MAX_WAIT_SECONDS", 300)
        self.CIRCUIT_BREAKER_THRESHOLD: int = _env_int("CIRCUIT_BREAKER_THRESHOLD", 5)
        self.CIRCUIT_BREAKER_COOLDOWN_SECONDS: int = _env_int("CIRCUIT_BREAKER_COOLDOWN_SECONDS", 60)
        self.TOKEN_CACHE_TTL_SECONDS: int = _env_int("TOKEN_CACHE_TTL_SECONDS", 50 * 60)
        self.HTTP_TIMEOUT_SECONDS: int = _env_int("HTTP_TIMEOUT_SECONDS", 15)

        # GitHub App
        self.GITHUB_APP_ID: str = os.getenv("GITHUB_APP_ID", "")
        self.GITHUB_PRIVATE_KEY: str = os.getenv("GITHUB_PRIVATE_KEY", "")
        self.GITHUB_PRIVATE_KEY_PATH: str = os.getenv("GITHUB_PRIVATE_KEY_PATH", "")
        self.GITHUB_API_URL: str = os.getenv("GITHUB_API_URL", "https://api.github.com")

        # GitLab
        self.GITLAB_API_URL: str = os.getenv("GITLAB_API_URL", "https://gitlab.com/api/v4")

        # Telegram notification sink
        self.TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")
        self.TELEGRAM_CHAT_ID: str = os.getenv("TELEGRAM_CHAT_ID", "")
        self.TELEGRAM_TIMEOUT_SECONDS: int = _env_int("TELEGRAM_TIMEOUT_SECONDS", 10)
        self.STATUS_BROADCAST_INTERVAL_SECONDS: int = _env_int("STATUS_BROADCAST_INTERVAL_SECONDS", 3600)
        self.FAILURE_ALERT_THROTTLE_SECONDS: int = _env_int("FAILURE_ALERT_THROTTLE_SECONDS", 600)

        self.DEFAULT_REMINDER_MESSAGE: str = os.getenv("DEFAULT_REMINDER_MESSAGE", "🔔 Reminder")

    def validate(self) -> None:
        """Validate that required environment variables are set."""
        if not self.DATABASE_URL:
            raise ValueError("DATABASE_URL environment variable is required")
        if not self.SCHEDULER_RETRY_DELAYS_MINUTES:
            raise ValueError("SCHEDULER_RETRY_DELAYS_MINUTES must contain at least one delay")
        if self.SCHEDULER_BATCH_SIZE < 1:
            raise ValueError("SCHEDULER_BATCH_SIZE must be positive")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    settings = Settings()
    return settings
