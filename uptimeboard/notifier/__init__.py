from .base import CompositeNotifier, DeliveryError, Notifier
from .factory import build_notifier
from .log import LogNotifier
from .message import format_notification_message, join_names
from .ntfy import NtfyNotifier
from .types import Alert
from .webhook import WebhookNotifier

__all__ = [
	"Alert",
	"CompositeNotifier",
	"DeliveryError",
	"LogNotifier",
	"Notifier",
	"NtfyNotifier",
	"WebhookNotifier",
	"build_notifier",
	"format_notification_message",
	"join_names",
]
