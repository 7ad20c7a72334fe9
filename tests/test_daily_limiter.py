from datetime import datetime, timezone

from fakes import MutableClock

from game.daily_limiter import ActionKind, DailyLimiter
from game.models import InvestigationProgress, LocationVisit


def test_today_uses_ist_by_default():
    clock = MutableClock(datetime(2024, 3, 10, 18, 29, tzinfo=timezone.utc))
    limiter = DailyLimiter(utc_offset_minutes=330, clock=clock)
    assert limiter.today() == "2024-03-10"

    clock.advance(minutes=1)
    assert limiter.today() == "2024-03-11"


def test_naive_clock_is_treated_as_utc():
    limiter = DailyLimiter(utc_offset_minutes=0, clock=lambda: datetime(2024, 1, 1, 23, 59))
    assert limiter.today() == "2024-01-01"
    assert limiter.timestamp().endswith("+00:00")


def test_visit_allowed_once_per_game_day():
    clock = MutableClock()
    limiter = DailyLimiter(utc_offset_minutes=330, clock=clock)
    progress = InvestigationProgress()

    assert limiter.can_act(progress, ActionKind.VISIT, "L1")
    progress = limiter.record_action(progress, ActionKind.VISIT, "L1")
    assert not limiter.can_act(progress, ActionKind.VISIT, "L1")
    assert limiter.can_act(progress, ActionKind.VISIT, "L2")

    clock.advance(hours=6)  # 23:30 IST, same day
    assert not limiter.can_act(progress, ActionKind.VISIT, "L1")

    clock.advance(hours=1)  # 00:30 IST next day
    assert limiter.can_act(progress, ActionKind.VISIT, "L1")


def test_interrogations_are_tracked_separately_from_visits():
    limiter = DailyLimiter(utc_offset_minutes=330, clock=MutableClock())
    progress = limiter.record_action(InvestigationProgress(), ActionKind.INTERROGATION, "Raj Patel")

    assert not limiter.can_act(progress, ActionKind.INTERROGATION, "Raj Patel")
    assert limiter.can_act(progress, ActionKind.VISIT, "Raj Patel")


def test_record_action_keeps_artifacts_and_does_not_mutate_input():
    clock = MutableClock()
    limiter = DailyLimiter(utc_offset_minutes=330, clock=clock)
    progress = InvestigationProgress(
        visited_locations={
            "L1": LocationVisit(
                visited_at="2024-03-01T10:00:00+00:00",
                last_visit_date="2024-03-01",
                discovered_clues=["A torn letter"],
            )
        }
    )

    updated = limiter.record_action(progress, ActionKind.VISIT, "L1")

    visit = updated.visited_locations["L1"]
    assert visit.last_visit_date == "2024-03-10"
    assert visit.discovered_clues == ["A torn letter"]
    assert progress.visited_locations["L1"].last_visit_date == "2024-03-01"
