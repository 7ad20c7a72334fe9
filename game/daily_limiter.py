"""One action per location and per suspect per calendar day.

"Today" is the calendar date at a single fixed UTC offset (IST, +05:30, by
default), recomputed from the clock on every call.
"""

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from config.settings import get_env_settings
from game.models import InterrogationRecord, InvestigationProgress, LocationVisit

logger = logging.getLogger(__name__)


class ActionKind(str, Enum):
    VISIT = "visit"
    INTERROGATION = "interrogation"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DailyLimiter:
    def __init__(
        self,
        utc_offset_minutes: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        if utc_offset_minutes is None:
            utc_offset_minutes = get_env_settings().utc_offset_minutes
        self.tz = timezone(timedelta(minutes=utc_offset_minutes))
        self.clock = clock

    def now(self) -> datetime:
        current = self.clock()
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        return current

    def timestamp(self) -> str:
        return self.now().isoformat()

    def today(self) -> str:
        """Current date (YYYY-MM-DD) in the game timezone."""
        return self.now().astimezone(self.tz).strftime("%Y-%m-%d")

    def last_action_date(self, progress: InvestigationProgress, kind: ActionKind, key: str) -> Optional[str]:
        if kind == ActionKind.VISIT:
            visit = progress.visited_locations.get(key)
            return visit.last_visit_date if visit else None
        record = progress.interrogated_suspects.get(key)
        return record.last_interrogation_date if record else None

    def can_act(self, progress: InvestigationProgress, kind: ActionKind, key: str) -> bool:
        """True if `key` was never acted on, or last acted on an earlier day."""
        last = self.last_action_date(progress, kind, key)
        return last is None or last != self.today()

    def record_action(self, progress: InvestigationProgress, kind: ActionKind, key: str) -> InvestigationProgress:
        """Copy of `progress` with today's action stamped on `key`.

        Artifacts already accumulated under the key are kept.
        """
        updated = progress.model_copy(deep=True)
        stamp, today = self.timestamp(), self.today()
        if kind == ActionKind.VISIT:
            existing = updated.visited_locations.get(key)
            if existing:
                existing.visited_at, existing.last_visit_date = stamp, today
            else:
                updated.visited_locations[key] = LocationVisit(visited_at=stamp, last_visit_date=today)
        else:
            existing = updated.interrogated_suspects.get(key)
            if existing:
                existing.interrogated_at, existing.last_interrogation_date = stamp, today
            else:
                updated.interrogated_suspects[key] = InterrogationRecord(
                    interrogated_at=stamp, last_interrogation_date=today
                )
        logger.info("[PROGRESS] Recorded %s for %s on %s", kind.value, key, today)
        return updated
