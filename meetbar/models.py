from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Meeting:
    summary: str
    start: datetime
    end: datetime
    meet_link: str

    def in_progress(self, now: datetime) -> bool:
        return self.start <= now < self.end
