"""Case configuration and validation for game setup options."""

import logging
import random
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


# ============================================================================
# PREDEFINED OPTIONS
# ============================================================================

SETTINGS = [
    "Cyberpunk Mars Colony",
    "Victorian Manor",
    "Space Station Outpost",
    "Tropical Island Resort",
    "Underground Research Facility",
    "Luxury Cruise Ship",
    "Ancient Archaeological Site",
    "High-Tech Corporate Tower",
    "Remote Mountain Lodge",
    "Desert Oasis Casino",
]

STORY_ARCHETYPES = [
    "Love Triangle Gone Wrong",
    "Corporate Espionage",
    "Revenge Plot",
    "Inheritance Dispute",
    "Scientific Discovery Cover-up",
    "Political Conspiracy",
    "Personal Vendetta",
    "Blackmail Gone Wrong",
    "Identity Theft Scheme",
    "Whistleblower Silencing",
]

DIFFICULTY_LEVELS = ["easy", "medium", "hard"]

DEFAULT_SUSPECT_COUNT = 4
MIN_SUSPECTS = 2
MAX_SUSPECTS = 8

# Minutes of play before clue/suspect adjustments
BASE_DURATION_MINUTES = {"easy": 15, "medium": 30, "hard": 45}


# ============================================================================
# CONFIGURATION DATACLASS
# ============================================================================


@dataclass
class CaseConfig:
    """Validated configuration for case generation."""

    difficulty: str = "medium"
    suspect_count: int = DEFAULT_SUSPECT_COUNT
    player_name: Optional[str] = None
    seed: Optional[str] = None

    def get_rng(self) -> random.Random:
        """RNG used for archetype choice; seeded when a seed is set."""
        return random.Random(self.seed) if self.seed is not None else random.Random()

    def get_complexity_instruction(self) -> str:
        """Narrative complexity guidance for intro generation."""
        guidance = {
            "easy": "Keep language straightforward and clues obvious. Focus on clear connections.",
            "medium": (
                "Use moderate complexity in language and clue presentation. "
                "Balance obvious and subtle hints."
            ),
            "hard": (
                "Use sophisticated language and complex narrative layers. "
                "Embed subtle clues and misdirections."
            ),
        }
        return guidance.get(self.difficulty, guidance["medium"])

    def get_urgency_instruction(self) -> str:
        """Time-pressure wording for the journal entry."""
        urgency = {
            "easy": "You have plenty of time to investigate thoroughly.",
            "medium": "Time is limited, but manageable.",
            "hard": "Time is critically short, and the pressure is intense.",
        }
        return urgency.get(self.difficulty, urgency["medium"])


# ============================================================================
# VALIDATION FUNCTIONS
# ============================================================================


def validate_difficulty(value: Optional[str]) -> str:
    """Validate difficulty, defaulting to medium."""
    if not value:
        return "medium"
    normalized = value.strip().lower()
    if normalized in DIFFICULTY_LEVELS:
        return normalized
    logger.warning("Invalid difficulty '%s', defaulting to 'medium'", value)
    return "medium"


def validate_suspect_count(value: Optional[int]) -> int:
    """Clamp the suspect count into the supported range."""
    if value is None:
        return DEFAULT_SUSPECT_COUNT
    try:
        count = int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid suspect count '%s', defaulting to %d", value, DEFAULT_SUSPECT_COUNT)
        return DEFAULT_SUSPECT_COUNT
    clamped = max(MIN_SUSPECTS, min(MAX_SUSPECTS, count))
    if clamped != count:
        logger.warning("Suspect count %d out of range, using %d", count, clamped)
    return clamped


def create_validated_config(
    difficulty: Optional[str] = None,
    suspect_count: Optional[int] = None,
    player_name: Optional[str] = None,
    seed: Optional[str] = None,
) -> CaseConfig:
    """Create a validated CaseConfig from user inputs.

    Invalid values fall back to defaults instead of raising, so a bad form
    field never blocks case creation.
    """
    name = player_name.strip() if player_name and player_name.strip() else None
    return CaseConfig(
        difficulty=validate_difficulty(difficulty),
        suspect_count=validate_suspect_count(suspect_count),
        player_name=name,
        seed=seed,
    )


def estimate_case_duration(difficulty: str, clue_count: int, suspect_count: int) -> int:
    """Estimated minutes of play: base by difficulty + 2/clue + 3/suspect."""
    base = BASE_DURATION_MINUTES.get(difficulty, BASE_DURATION_MINUTES["medium"])
    return base + clue_count * 2 + suspect_count * 3
