"""Deterministic clue classification.

Turns the raw clue and witness text of a Story into ProcessedClue records.
Nothing here calls a model, so the same story always classifies the same way.
"""

import logging
from typing import Iterable, List, Optional

from game.models import (
    ClueCategory,
    ClueDiscovery,
    ClueType,
    DiscoveryRequirement,
    ProcessedClue,
    ProcessedClues,
    Story,
    Witness,
    WitnessInfo,
)

logger = logging.getLogger(__name__)

MAX_DIFFICULTY = 5

# Checked in order; the first table with a matching keyword wins.
TYPE_KEYWORDS = [
    (ClueType.BIOLOGICAL_TRACE, ("blood", "dna", "fingerprint")),
    (ClueType.DIGITAL_RECORD, ("computer", "log", "camera", "footage")),
    (ClueType.WITNESS_TESTIMONY, ("witness", "saw", "heard")),
    (ClueType.ENVIRONMENTAL_ANOMALY, ("weather", "temperature", "marks")),
]

CATEGORY_DIFFICULTY = {
    ClueCategory.DIRECT: 4,
    ClueCategory.INDIRECT: 2,
    ClueCategory.RED_HERRING: 1,
}


def categorize(text: str, killer: str, suspect_names: Iterable[str]) -> ClueCategory:
    """direct if the killer is named, red_herring if another suspect is, else indirect."""
    lowered = text.lower()
    if killer and killer.lower() in lowered:
        return ClueCategory.DIRECT
    for name in suspect_names:
        if name != killer and name and name.lower() in lowered:
            return ClueCategory.RED_HERRING
    return ClueCategory.INDIRECT


def classify_type(text: str) -> ClueType:
    lowered = text.lower()
    for clue_type, keywords in TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return clue_type
    return ClueType.PHYSICAL_OBJECT


def assign_discovery(category: ClueCategory, clue_type: ClueType) -> ClueDiscovery:
    """Discovery mechanism and difficulty (always within 1..5)."""
    difficulty = min(1 + CATEGORY_DIFFICULTY[ClueCategory(category)], MAX_DIFFICULTY)

    if clue_type == ClueType.BIOLOGICAL_TRACE:
        return ClueDiscovery(
            requires=DiscoveryRequirement.FORENSIC_KIT,
            difficulty=min(difficulty + 1, MAX_DIFFICULTY),
            requires_item="UV Light and Sample Kit",
        )
    if clue_type == ClueType.DIGITAL_RECORD:
        return ClueDiscovery(
            requires=DiscoveryRequirement.HACK,
            difficulty=difficulty,
            requires_action="Bypass Security",
        )
    if clue_type == ClueType.WITNESS_TESTIMONY:
        return ClueDiscovery(
            requires=DiscoveryRequirement.WITNESS_HELP,
            difficulty=difficulty,
            requires_witness_help="Build Trust",
        )
    if clue_type == ClueType.ENVIRONMENTAL_ANOMALY:
        return ClueDiscovery(
            requires=DiscoveryRequirement.OBSERVATION,
            difficulty=difficulty,
            requires_item="Environmental Scanner",
        )
    return ClueDiscovery(requires=DiscoveryRequirement.DEEP_SEARCH, difficulty=difficulty)


def find_related_suspects(text: str, suspect_names: Iterable[str]) -> List[str]:
    """Suspect names found in the text, in suspect-list order."""
    lowered = text.lower()
    return [name for name in suspect_names if name and name.lower() in lowered]


def find_time_relevance(text: str, story: Story) -> Optional[str]:
    """Time of the first timeline event whose text appears in the clue."""
    lowered = text.lower()
    for entry in story.timeline:
        if entry.event and entry.event.lower() in lowered:
            return entry.time
    return None


def process_clue(text: str, location: str, story: Story) -> ProcessedClue:
    names = story.suspect_names
    category = categorize(text, story.killer, names)
    clue_type = classify_type(text)
    return ProcessedClue(
        type=clue_type,
        content=text,
        category=category,
        discovery=assign_discovery(category, clue_type),
        related_suspects=find_related_suspects(text, names),
        time_relevance=find_time_relevance(text, story),
        location_context=location,
    )


def witness_clue(witness: Witness, location: str, story: Story) -> ProcessedClue:
    """Fold a witness testimony into the location's clue list."""
    names = story.suspect_names
    category = categorize(witness.testimony, story.killer, names)
    return ProcessedClue(
        type=ClueType.WITNESS_TESTIMONY,
        content=witness.testimony,
        category=category,
        discovery=ClueDiscovery(
            requires=DiscoveryRequirement.WITNESS_HELP,
            difficulty=5 if category == ClueCategory.DIRECT else 3,
            requires_witness_help=f"Gain {witness.name}'s trust ({witness.reliability})",
        ),
        related_suspects=find_related_suspects(witness.testimony, names),
        time_relevance=find_time_relevance(witness.testimony, story),
        location_context=location,
        witness_info=WitnessInfo(
            name=witness.name,
            reliability=witness.reliability,
            hidden_agenda=witness.hidden_agenda,
        ),
    )


def process_story_clues(story: Story) -> ProcessedClues:
    """Classify every clue and witness testimony, keyed by location name."""
    processed: ProcessedClues = {}
    for location in story.locations:
        clues = [process_clue(text, location, story) for text in story.clues.get(location, [])]
        clues.extend(
            witness_clue(witness, location, story)
            for witness in story.witnesses.get(location, [])
            if witness.testimony
        )
        processed[location] = clues

    total = sum(len(v) for v in processed.values())
    logger.info("[CLUES] Classified %d clues across %d locations", total, len(processed))
    return processed
