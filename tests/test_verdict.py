from datetime import datetime, timezone

from game.models import InterrogationRecord, InvestigationProgress, LocationVisit
from game.verdict import days_taken, is_correct_accusation, judge, score_verdict


def progress(locations=0, suspects=0, clues=0):
    return InvestigationProgress(
        visited_locations={
            f"L{i}": LocationVisit(visited_at="2024-03-10T12:00:00+00:00", last_visit_date="2024-03-10")
            for i in range(locations)
        },
        interrogated_suspects={
            f"Suspect {i}": InterrogationRecord(
                interrogated_at="2024-03-10T12:00:00+00:00", last_interrogation_date="2024-03-10"
            )
            for i in range(suspects)
        },
        discovered_clues=[f"clue {i}" for i in range(clues)],
    )


def test_accusation_ignores_case_and_whitespace():
    assert is_correct_accusation("  raj patel ", "Raj Patel")
    assert not is_correct_accusation("Mira Chen", "Raj Patel")


def test_days_taken_rounds_up():
    created = "2024-03-10T12:00:00+00:00"
    assert days_taken(created, datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)) == 0
    assert days_taken(created, datetime(2024, 3, 10, 18, 0, tzinfo=timezone.utc)) == 1
    assert days_taken(created, datetime(2024, 3, 13, 0, 0, tzinfo=timezone.utc)) == 3
    assert days_taken(None, datetime(2024, 3, 13, tzinfo=timezone.utc)) is None
    assert days_taken("not a date", datetime(2024, 3, 13, tzinfo=timezone.utc)) is None


def test_correct_verdict_score():
    score = score_verdict(True, "x" * 250, progress(locations=2, suspects=1, clues=3), days=1)
    assert score == 100 + 20 + 15 + 15 + 20 + 50


def test_speed_bonus_tiers():
    base = progress()
    assert score_verdict(True, "", base, days=3) == 130
    assert score_verdict(True, "", base, days=7) == 110
    assert score_verdict(True, "", base, days=8) == 100
    assert score_verdict(True, "", base, days=None) == 100


def test_long_reasoning_earns_both_bonuses():
    assert score_verdict(True, "x" * 501, progress(), days=None) == 150


def test_wrong_verdict_score():
    assert score_verdict(False, "short", progress(locations=5, clues=10), days=1) == 20
    assert score_verdict(False, "x" * 201, progress(), days=1) == 30


def test_score_is_capped():
    assert score_verdict(True, "x" * 600, progress(locations=6, suspects=8, clues=60), days=1) == 500


def test_judge_builds_verdict():
    submitted = datetime(2024, 3, 11, 9, 0, tzinfo=timezone.utc)
    verdict = judge("Mira Chen", "She forged the letter", "Raj Patel", progress(), "2024-03-10T12:00:00+00:00", submitted)

    assert not verdict.is_correct
    assert verdict.correct_suspect == "Raj Patel"
    assert verdict.selected_suspect == "Mira Chen"
    assert verdict.score == 20
    assert verdict.submitted_at == "2024-03-11T09:00:00+00:00"
