"""Final accusation scoring."""

import logging
import math
from datetime import datetime
from typing import Optional

from game.models import InvestigationProgress, Verdict

logger = logging.getLogger(__name__)

BASE_SCORE = 100
MAX_SCORE = 500
WRONG_SCORE_FLOOR = 10


def is_correct_accusation(accused: str, killer: str) -> bool:
    return accused.strip().lower() == killer.strip().lower()


def days_taken(created_at: Optional[str], submitted_at: datetime) -> Optional[int]:
    """Whole days (rounded up) between case creation and the verdict."""
    if not created_at:
        return None
    try:
        started = datetime.fromisoformat(created_at)
    except ValueError:
        logger.warning("[VERDICT] Unreadable case creation time %r", created_at)
        return None
    if started.tzinfo is None and submitted_at.tzinfo is not None:
        started = started.replace(tzinfo=submitted_at.tzinfo)
    seconds = (submitted_at - started).total_seconds()
    return max(0, math.ceil(seconds / 86400))


def score_verdict(correct: bool, reasoning: str, progress: InvestigationProgress, days: Optional[int]) -> int:
    """Points for a verdict, capped at 500.

    A correct accusation earns thoroughness, reasoning and speed bonuses; a
    wrong one only a small consolation score.
    """
    length = len(reasoning)
    if correct:
        score = BASE_SCORE
        score += len(progress.visited_locations) * 10
        score += len(progress.interrogated_suspects) * 15
        score += len(progress.discovered_clues) * 5
        if length > 200:
            score += 20
        if length > 500:
            score += 30
        if days is not None:
            if days <= 1:
                score += 50
            elif days <= 3:
                score += 30
            elif days <= 7:
                score += 10
    else:
        score = max(WRONG_SCORE_FLOOR, int(BASE_SCORE * 0.2))
        if length > 200:
            score += 10
    return min(score, MAX_SCORE)


def judge(
    accused: str,
    reasoning: str,
    killer: str,
    progress: InvestigationProgress,
    created_at: Optional[str],
    submitted_at: datetime,
) -> Verdict:
    correct = is_correct_accusation(accused, killer)
    score = score_verdict(correct, reasoning, progress, days_taken(created_at, submitted_at))
    logger.info("[VERDICT] Accused %s: %s, score %d", accused, "correct" if correct else "wrong", score)
    return Verdict(
        selected_suspect=accused,
        reasoning=reasoning,
        is_correct=correct,
        score=score,
        submitted_at=submitted_at.isoformat(),
        correct_suspect=killer,
    )
