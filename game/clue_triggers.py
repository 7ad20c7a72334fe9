"""Interrogation clue triggers for suspects and witnesses.

Each character gets a handful of ClueWithTrigger records describing what
they give up and under which approach. Enrichment never mutates the story
it is given.
"""

import logging
from typing import List, Optional

from game.models import ClueWithTrigger, Story, Suspect, Witness
from game.validated_generator import generate_validated
from services.perf_tracker import perf

logger = logging.getLogger(__name__)

TRIGGER_TYPES = ("pressing", "gentle", "aggressive", "sympathetic", "specific_question")
IMPORTANCE_LEVELS = ("critical", "important", "minor")

_FORMAT = """Return ONLY a JSON array of clue objects:
[
  {
    "clue": "specific information they might reveal",
    "triggerType": "pressing" | "gentle" | "aggressive" | "sympathetic" | "specific_question",
    "triggerLevel": 1-5,
    "triggerDescription": "what exactly the detective must do to get this",
    "isRedHerring": true/false,
    "importance": "critical" | "important" | "minor"
  }
]"""


def valid_triggers(candidate, minimum: int, maximum: int) -> bool:
    if not isinstance(candidate, list) or not minimum <= len(candidate) <= maximum:
        return False
    for entry in candidate:
        if not isinstance(entry, dict) or not isinstance(entry.get("clue"), str) or not entry["clue"].strip():
            return False
        if entry.get("triggerType") not in TRIGGER_TYPES:
            return False
        level = entry.get("triggerLevel")
        if isinstance(level, bool) or not isinstance(level, int) or not 1 <= level <= 5:
            return False
        if not isinstance(entry.get("isRedHerring"), bool):
            return False
        if entry.get("importance") not in IMPORTANCE_LEVELS:
            return False
    return True


def suspect_trigger_prompt(suspect: Suspect, story: Story) -> str:
    others = ", ".join(s.name for s in story.suspects if s.name != suspect.name)
    guilt = "YES" if suspect.is_killer else "NO"
    return f"""Generate 3-5 clue triggers for a suspect in a murder investigation.

SUSPECT PROFILE:
- Name: {suspect.name}
- Role: {suspect.role}
- Personality: {suspect.personality}
- Alibi: {suspect.alibi}
- Motives: {', '.join(suspect.motives)}
- Is Killer: {guilt}

CASE CONTEXT:
- Victim: {story.victim.name}
- Setting: {story.setting}
- Other Suspects: {others}

Focus on things that could be seen or photographed: objects handled, items moved,
clothing, stains, footprints. If they are the killer, include misleading clues and
make critical ones hard to obtain. Personality decides which approaches work.

{_FORMAT}"""


def witness_trigger_prompt(witness: Witness, location: str, story: Story) -> str:
    return f"""Generate 2-4 clue triggers for a witness in a murder investigation.

WITNESS PROFILE:
- Name: {witness.name}
- Role: {witness.role}
- Background: {witness.background}
- Reliability: {witness.reliability}
- Hidden Agenda: {witness.hidden_agenda}
- Location: {location}

CASE CONTEXT:
- Victim: {story.victim.name}
- Setting: {story.setting}
- Suspects: {', '.join(story.suspect_names)}

Focus on what the witness could realistically have seen. Reliability affects quality,
the hidden agenda may make them withhold or distort information.

{_FORMAT}"""


def _to_triggers(candidate) -> List[ClueWithTrigger]:
    return [ClueWithTrigger.model_validate({**entry, "revealed": False}) for entry in candidate]


def suspect_triggers(text, suspect: Suspect, story: Story, max_attempts: Optional[int] = None) -> List[ClueWithTrigger]:
    candidate, ok = generate_validated(
        text,
        suspect_trigger_prompt(suspect, story),
        lambda c: valid_triggers(c, 3, 5),
        max_attempts=max_attempts,
        expect="array",
        label=f"triggers {suspect.name}",
    )
    if ok:
        return _to_triggers(candidate)
    logger.warning("[CLUES] Using fallback trigger for suspect %s", suspect.name)
    return [
        ClueWithTrigger(
            clue=f"{suspect.name} mentioned something during questioning",
            trigger_type="pressing",
            trigger_level=3,
            trigger_description="Ask direct questions about their whereabouts",
            is_red_herring=suspect.is_killer,
            importance="minor",
        )
    ]


def witness_triggers(text, witness: Witness, location: str, story: Story, max_attempts: Optional[int] = None) -> List[ClueWithTrigger]:
    candidate, ok = generate_validated(
        text,
        witness_trigger_prompt(witness, location, story),
        lambda c: valid_triggers(c, 2, 4),
        max_attempts=max_attempts,
        expect="array",
        label=f"triggers {witness.name}",
    )
    if ok:
        return _to_triggers(candidate)
    logger.warning("[CLUES] Using fallback trigger for witness %s", witness.name)
    return [
        ClueWithTrigger(
            clue=f"{witness.name} saw something at {location}",
            trigger_type="sympathetic",
            trigger_level=2,
            trigger_description="Build trust and ask gently about what they witnessed",
            is_red_herring=False,
            importance="minor",
        )
    ]


def enrich_with_triggers(story: Story, text, max_attempts: Optional[int] = None) -> Story:
    """Return a new Story whose suspects and witnesses carry clue triggers."""
    with perf.track("story.triggers"):
        suspects = [
            s.model_copy(update={"clues_triggers": suspect_triggers(text, s, story, max_attempts)})
            for s in story.suspects
        ]
        witnesses = {
            location: [
                w.model_copy(update={"clues_triggers": witness_triggers(text, w, location, story, max_attempts)})
                for w in people
            ]
            for location, people in story.witnesses.items()
        }
    logger.info(
        "[CLUES] Added triggers for %d suspects and %d witnesses",
        len(suspects), sum(len(p) for p in witnesses.values()),
    )
    return story.model_copy(update={"suspects": suspects, "witnesses": witnesses})
