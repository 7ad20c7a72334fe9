"""Opening narrative and journal entry shown when a case starts."""

import logging
from typing import Optional

from game.models import CaseIntro, DisplayData, Story
from mystery_config import CaseConfig

logger = logging.getLogger(__name__)


def narrative_style(setting: str) -> str:
    lowered = setting.lower()
    if any(word in lowered for word in ("space", "mars", "colony")):
        return "sci-fi"
    if any(word in lowered for word in ("manor", "mansion", "estate")):
        return "gothic"
    if any(word in lowered for word in ("island", "resort")):
        return "tropical noir"
    return "noir"


def display_data(story: Story) -> DisplayData:
    return DisplayData(
        victim_name=story.victim.name,
        last_known_location=story.victim.last_known_location,
        cause_of_death=story.victim.cause_of_death,
        initial_suspects=story.suspect_names,
        main_location=story.setting,
    )


def intro_prompt(story: Story, style: str, config: CaseConfig) -> str:
    suspects = "\n".join(
        f"- {s.name} ({s.role}): {s.personality}. Claims: {s.alibi}" for s in story.suspects
    )
    earlier = [e for e in story.timeline if e.time < story.victim.death_time_estimate][-2:]
    events = "\n".join(f"{e.time}: {e.event}" for e in earlier) or "(none recorded)"
    detective = f"Investigator: Detective {config.player_name}\n" if config.player_name else ""
    address = (
        f"\n- Address the narrative to Detective {config.player_name} where appropriate"
        if config.player_name
        else ""
    )
    return f"""Write a {style} detective story introduction for this murder:

Setting: {story.setting}
Victim: {story.victim.name}, a {story.victim.profession}
Time of Death: {story.victim.death_time_estimate}
Cause of Death: {story.victim.cause_of_death}
Last Known Location: {story.victim.last_known_location}
{detective}
Key Suspects:
{suspects}

Important Earlier Events:
{events}

Requirements:
- 3-5 paragraphs in {style} style with an atmospheric opening
- Introduce the suspects with subtle hints, never reveal the killer
- End with a sense of urgency{address}

Complexity: {config.get_complexity_instruction()}"""


def journal_prompt(story: Story, style: str, config: CaseConfig) -> str:
    detective = f"Assigned Detective: {config.player_name}\n" if config.player_name else ""
    return f"""Write a two-sentence {style} mission briefing for a detective's journal.

Victim: {story.victim.name} ({story.victim.profession})
Setting: {story.setting}
Circumstances: found dead at {story.victim.last_known_location}, killed by {story.victim.cause_of_death}
{detective}Case Urgency: {config.get_urgency_instruction()}

First sentence: the core fact of the murder. Second sentence: the investigative challenge.
Return only the two sentences."""


def _generate_text(text, prompt: str, fallback: str, label: str) -> str:
    try:
        result = (text.generate(prompt) or "").strip()
    except Exception as e:
        logger.warning("[CASE] %s generation failed: %s", label, e)
        return fallback
    if not result:
        logger.warning("[CASE] %s generation returned nothing", label)
        return fallback
    return result


def compose_case_intro(story: Story, text, config: Optional[CaseConfig] = None) -> CaseIntro:
    config = config or CaseConfig()
    style = narrative_style(story.setting)
    victim = story.victim

    narrative = _generate_text(
        text,
        intro_prompt(story, style, config),
        (
            f"{victim.name}, {victim.profession}, was found dead at {victim.last_known_location} "
            f"in the {story.setting}. Cause of death: {victim.cause_of_death}. "
            f"{len(story.suspects)} people had reason to want them gone."
        ),
        "Intro narrative",
    )
    journal = _generate_text(
        text,
        journal_prompt(story, style, config),
        (
            f"{victim.name} was killed by {victim.cause_of_death} at {victim.last_known_location}. "
            f"{config.get_urgency_instruction()}"
        ),
        "Journal entry",
    )
    logger.info("[CASE] Composed %s intro for '%s'", style, story.title)
    return CaseIntro(intro_narrative=narrative, journal_entry=journal, display_data=display_data(story))
