from __future__ import annotations

from typing import Iterable, Mapping, Optional


def join_names(names: list[str]) -> str:
	"""a -> "a"; a, b -> "a and b"; a, b, c -> "a, b and c"."""
	if not names:
		return ""
	if len(names) == 1:
		return names[0]
	return f"{', '.join(names[:-1])} and {names[-1]}"


def format_notification_message(statuses: Iterable[Mapping]) -> Optional[str]:
	"""Текст оповещения по последним статусам; None, если всё работает."""
	down = [s["service"] for s in statuses if not s["ok"]]
	if not down:
		return None
	noun = "service" if len(down) == 1 else "services"
	return f"{len(down)} {noun} down: {join_names(down)}"
