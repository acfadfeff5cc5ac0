from __future__ import annotations

from uptimeboard.config import NtfyTarget, WebhookTarget

from .base import CompositeNotifier, Notifier
from .log import LogNotifier
from .ntfy import NtfyNotifier
from .webhook import WebhookNotifier


def build_notifier(target: NtfyTarget | WebhookTarget) -> Notifier:
	"""Канал для цели из секции notify; каждое уведомление дублируется в лог."""
	channel: Notifier
	if isinstance(target, NtfyTarget):
		channel = NtfyNotifier(target.topic, server=target.server)
	elif isinstance(target, WebhookTarget):
		channel = WebhookNotifier(target.url)
	else:
		raise TypeError(f"unsupported notify target: {type(target).__name__}")
	return CompositeNotifier([LogNotifier(target.key), channel])
