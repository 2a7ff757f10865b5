"""Side-channel notifications (Telegram) for metrics, status and alerts."""

from reporeply.notifications.alerts import NotificationSink, ThrottledAlerter
from reporeply.notifications.telegram import TelegramNotifier

__all__ = [
    "NotificationSink",
    "ThrottledAlerter",
    "TelegramNotifier",
]
