from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class Alert:
	title: str
	message: str
	level: str = "error"  # info, warn, error
	tags: str = "warning"
	ts: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
