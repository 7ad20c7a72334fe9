"""Bounded retry-until-valid wrapper around the text generator.

Every story stage asks the model for JSON, parses it leniently and checks it
with a stage-specific predicate. When the attempt budget runs out the last
candidate is handed back together with a flag, so the caller decides whether
an invalid result is fatal or acceptable.
"""

import logging
from typing import Any, Callable, Optional, Tuple, TypeVar

from game.errors import LenientJsonError
from config.settings import get_env_settings
from game.lenient_json import parse_lenient_json

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


def retry_until(
    generate: Callable[[], Optional[T]],
    validate: Callable[[T], bool],
    budget: int = DEFAULT_MAX_ATTEMPTS,
    label: str = "generation",
) -> Tuple[Optional[T], bool]:
    """Call `generate` until `validate` accepts its result.

    Returns (value, succeeded). On exhaustion `value` is the last candidate
    produced (None if no attempt produced anything).
    """
    last: Optional[T] = None
    for attempt in range(1, max(1, budget) + 1):
        candidate = generate()
        if candidate is None:
            logger.warning("[RETRY] %s attempt %d/%d produced nothing", label, attempt, budget)
            continue
        last = candidate
        try:
            ok = bool(validate(candidate))
        except Exception as e:
            logger.warning("[RETRY] %s attempt %d/%d validator raised: %s", label, attempt, budget, e)
            ok = False
        if ok:
            if attempt > 1:
                logger.info("[RETRY] %s valid on attempt %d", label, attempt)
            return candidate, True
        logger.warning("[RETRY] %s attempt %d/%d failed validation", label, attempt, budget)

    logger.warning("[RETRY] %s: no valid result after %d attempts, using best effort", label, budget)
    return last, False


def resolve_attempts(max_attempts: Optional[int] = None) -> int:
    """An explicit budget, else GENERATION_ATTEMPTS from the environment."""
    if max_attempts is None:
        max_attempts = get_env_settings().generation_attempts
    return max(1, int(max_attempts))


def generate_validated(
    generator,
    prompt: str,
    validate: Callable[[Any], bool],
    max_attempts: Optional[int] = None,
    expect: str = "object",
    label: str = "generation",
) -> Tuple[Any, bool]:
    """Generate JSON from `prompt`, retrying until `validate` holds.

    `generator` is any object with `generate(prompt) -> str`. Unparseable
    output and backend exceptions both count as a failed attempt.
    """

    def attempt():
        try:
            raw = generator.generate(prompt)
        except Exception as e:
            logger.warning("[RETRY] %s backend error: %s", label, e)
            return None
        try:
            return parse_lenient_json(raw, expect=expect)
        except LenientJsonError as e:
            logger.warning("[RETRY] %s unparseable output: %s", label, e)
            return None

    return retry_until(attempt, validate, budget=resolve_attempts(max_attempts), label=label)
