"""Multi-stage story generation.

Stages run in order, each one fed the output of the ones before it:

    setting -> victim -> suspects -> locations/clues/witnesses
            -> timeline -> title -> portraits

Every text stage goes through `generate_validated`. When a stage never
validates, structural problems (no victim name, not exactly one killer, no
locations) raise StoryGenerationError; flavor problems (title, timeline
order) are patched and logged.
"""

import json
import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional

from pydantic import ValidationError

from game.errors import StoryGenerationError
from game.models import Story, Suspect, TimelineEvent, Victim, Witness
from game.validated_generator import generate_validated, resolve_attempts
from mystery_config import SETTINGS, STORY_ARCHETYPES, CaseConfig
from services.image_service import portrait_prompt
from services.perf_tracker import perf

logger = logging.getLogger(__name__)

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

ESCAPE_NOTE = (
    "If you use special characters in any field, escape them "
    "(for example a quote must be written as \\\")."
)


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value >= 0x80000000 else value


def seeded_fraction(seed: str) -> float:
    """Map a seed string to [0, 1): 32-bit string hash then one LCG step."""
    h = 0
    for ch in seed:
        h = _to_int32((h << 5) - h + ord(ch))
    value = (abs(h) * 9301 + 49297) % 233280
    return value / 233280


def choose_setting(seed: str) -> str:
    return SETTINGS[int(seeded_fraction(seed) * len(SETTINGS))]


# =============================================================================
# STAGE VALIDATORS (raw JSON candidates)
# =============================================================================


def _non_empty_str(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _by_location(mapping) -> dict:
    """Copy of a location-keyed mapping with whitespace-trimmed keys."""
    if not isinstance(mapping, dict):
        return {}
    return {key.strip(): value for key, value in mapping.items() if isinstance(key, str)}


def valid_victim(candidate) -> bool:
    if not isinstance(candidate, dict):
        return False
    keys = ("name", "profession", "lastKnownLocation", "deathTimeEstimate", "causeOfDeath")
    if not all(_non_empty_str(candidate.get(k)) for k in keys):
        return False
    return bool(_HHMM.match(candidate["deathTimeEstimate"].strip()))


def valid_suspects(candidate, count: int) -> bool:
    if not isinstance(candidate, list) or len(candidate) != count:
        return False
    for entry in candidate:
        if not isinstance(entry, dict):
            return False
        if not all(_non_empty_str(entry.get(k)) for k in ("name", "role", "alibi", "personality")):
            return False
        motives = entry.get("motives")
        if not isinstance(motives, list) or not motives or not all(_non_empty_str(m) for m in motives):
            return False
        if not isinstance(entry.get("isKiller"), bool):
            return False
    names = [entry["name"].strip() for entry in candidate]
    if len(set(names)) != len(names):
        return False
    return sum(1 for entry in candidate if entry["isKiller"]) == 1


def valid_world(candidate) -> bool:
    if not isinstance(candidate, dict):
        return False
    locations = candidate.get("locations")
    if not isinstance(locations, list) or not locations:
        return False
    if not all(_non_empty_str(loc) for loc in locations):
        return False
    locations = [loc.strip() for loc in locations]
    if len(set(locations)) != len(locations):
        return False
    if not isinstance(candidate.get("clues"), dict):
        return False
    clues = _by_location(candidate["clues"])
    for location in locations:
        texts = clues.get(location)
        if not isinstance(texts, list) or not texts or not all(_non_empty_str(t) for t in texts):
            return False
    witnesses = candidate.get("witnesses", {})
    if not isinstance(witnesses, dict):
        return False
    for people in witnesses.values():
        if not isinstance(people, list):
            return False
        for person in people:
            if not isinstance(person, dict) or not _non_empty_str(person.get("name")):
                return False
            if not _non_empty_str(person.get("testimony")):
                return False
    return True


def valid_timeline(candidate) -> bool:
    if not isinstance(candidate, list) or not candidate:
        return False
    previous = ""
    for entry in candidate:
        if not isinstance(entry, dict) or not _non_empty_str(entry.get("event")):
            return False
        stamp = entry.get("time")
        if not isinstance(stamp, str) or not _HHMM.match(stamp.strip()):
            return False
        stamp = stamp.strip()
        if stamp < previous:
            return False
        previous = stamp
    return True


def valid_title(candidate) -> bool:
    return isinstance(candidate, dict) and _non_empty_str(candidate.get("title"))


# =============================================================================
# PROMPTS
# =============================================================================


def victim_prompt(setting: str, archetype: str) -> str:
    return f"""Create a murder victim profile for a {setting} with a {archetype} storyline.
Include: full name, profession relevant to the setting, the location where they were
last seen, time of death (HH:MM, 24-hour clock) and cause of death.

Return ONLY a JSON object:
{{
  "name": "<name of victim>",
  "profession": "<profession of victim>",
  "lastKnownLocation": "<location of last known sighting>",
  "deathTimeEstimate": "<HH:MM>",
  "causeOfDeath": "<cause of death>"
}}

{ESCAPE_NOTE}
Make it creative but believable within the setting."""


def suspects_prompt(setting: str, archetype: str, victim: Victim, count: int, complexity: str) -> str:
    return f"""Create {count} detailed suspects for a murder mystery in {setting} where
{victim.name} ({victim.profession}) was killed at {victim.death_time_estimate} by {victim.cause_of_death}.
Story archetype: {archetype}.

Return ONLY a JSON array of {count} objects:
{{
  "name": "<full name>",
  "role": "<their role in the setting>",
  "alibi": "<specific alibi for the time of death>",
  "motives": ["<primary motive>", "<optional further motives>"],
  "isKiller": <true or false>,
  "personality": "<personality, quirks and mannerisms>"
}}

Requirements:
- Exactly ONE suspect has "isKiller": true
- Every suspect has at least one motive
- Names are unique and distinct
- Alibis are detailed but potentially flawed
- {complexity}

{ESCAPE_NOTE}"""


def world_prompt(setting: str, archetype: str, victim: Victim, suspects: List[Suspect], killer: str) -> str:
    victim_json = json.dumps(victim.to_document())
    suspects_json = json.dumps([s.to_document() for s in suspects])
    return f"""Create the locations, clues and witnesses for a murder mystery in {setting}
with a story archetype of {archetype}. The victim is {victim.name} and the killer is {killer}.

Victim: {victim_json}
Suspects: {suspects_json}

Create 4-6 locations authentic to the setting where evidence could realistically be found.
For each location give 2-4 specific clues: a mix of direct evidence pointing to the killer,
circumstantial evidence and red herrings implicating other suspects. Mix physical,
biological, digital, testimonial and environmental evidence.
For each location add 0-2 witnesses who are not suspects, with their own secrets.

Return ONLY a JSON object:
{{
  "locations": ["location1", "location2"],
  "clues": {{"location1": ["clue", "clue"], "location2": ["clue"]}},
  "witnesses": {{
    "location1": [{{"name": "", "role": "", "background": "", "testimony": "",
                    "reliability": "", "hiddenAgenda": ""}}],
    "location2": []
  }}
}}
Every key of "clues" and "witnesses" must be exactly one of the location names.

{ESCAPE_NOTE}"""


def timeline_prompt(
    setting: str,
    archetype: str,
    victim: Victim,
    suspects: List[Suspect],
    killer: str,
    locations: List[str],
    witnesses: Dict[str, List[Witness]],
) -> str:
    witness_json = json.dumps({loc: [w.to_document() for w in ws] for loc, ws in witnesses.items()})
    return f"""Create the timeline of the day of the murder in {setting}, following the {archetype} archetype.

Victim: {json.dumps(victim.to_document())}
Suspects: {json.dumps([s.to_document() for s in suspects])}
Killer: {killer}
Locations: {json.dumps(locations)}
Witnesses: {witness_json}

Requirements:
- 10-20 events, each with an HH:MM (24-hour) time, all on the same day
- Events in chronological order, ending with the discovery of the body
- Show the killer's preparation, the murder itself and how each clue came to exist
- Include witness sightings and red-herring events implicating innocent suspects

Return ONLY a JSON array:
[{{"time": "HH:MM", "event": "what happened, who was involved and where"}}]

{ESCAPE_NOTE}"""


def title_prompt(
    setting: str,
    archetype: str,
    victim: Victim,
    suspects: List[Suspect],
    locations: List[str],
    witnesses: Dict[str, List[Witness]],
    timeline: List[TimelineEvent],
) -> str:
    names = ", ".join(s.name for s in suspects)
    witness_names = ", ".join(w.name for ws in witnesses.values() for w in ws) or "none"
    events = "; ".join(f"{t.time} {t.event}" for t in timeline)
    return f"""Create a title for a murder mystery in {setting} with a story archetype of {archetype}.
The victim is {victim.name} ({victim.profession}). Suspects: {names}.
Locations: {', '.join(locations)}. Witnesses: {witness_names}.
Timeline: {events}

Do not reveal the killer in the title.
Return ONLY a JSON object: {{"title": "<title of the story>"}}"""


def fallback_title(victim: Victim, setting: str) -> str:
    place = setting.split(",")[0].strip() or setting
    return f"The {victim.profession or 'Stranger'} of {place}: {victim.name}'s Case"


# =============================================================================
# ORCHESTRATOR
# =============================================================================


class StoryGenerator:
    """Builds one validated Story from a text generator.

    `images` and `storage` are optional; without them portraits are skipped.
    """

    def __init__(self, text, images=None, storage=None, max_attempts: Optional[int] = None):
        self.text = text
        self.images = images
        self.storage = storage
        self.max_attempts = resolve_attempts(max_attempts)

    def _stage(self, prompt: str, validate, label: str, expect: str = "object"):
        with perf.track(f"story.{label}"):
            return generate_validated(
                self.text, prompt, validate, max_attempts=self.max_attempts, expect=expect, label=label
            )

    def generate(self, config: Optional[CaseConfig] = None) -> Story:
        config = config or CaseConfig()
        seed = config.seed if config.seed is not None else str(int(time.time() * 1000))
        setting = choose_setting(seed)
        archetype = config.get_rng().choice(STORY_ARCHETYPES)
        logger.info("[STORY] Setting '%s', archetype '%s'", setting, archetype)

        victim = self._victim(setting, archetype)
        suspects = self._suspects(setting, archetype, victim, config)
        killer = next(s.name for s in suspects if s.is_killer)
        locations, clues, witnesses = self._world(setting, archetype, victim, suspects, killer)
        timeline = self._timeline(setting, archetype, victim, suspects, killer, locations, witnesses)
        title = self._title(setting, archetype, victim, suspects, locations, witnesses, timeline)

        try:
            story = Story(
                title=title,
                setting=setting,
                victim=victim,
                suspects=suspects,
                killer=killer,
                locations=locations,
                clues=clues,
                witnesses=witnesses,
                timeline=timeline,
            )
        except ValidationError as e:
            logger.error("[STORY] Assembled story is invalid: %s", e)
            raise StoryGenerationError(str(e)) from e

        logger.info(
            "[STORY] '%s': %d suspects, %d locations, %d timeline events",
            story.title, len(story.suspects), len(story.locations), len(story.timeline),
        )
        return self.add_portraits(story)

    def _victim(self, setting: str, archetype: str) -> Victim:
        candidate, ok = self._stage(victim_prompt(setting, archetype), valid_victim, "victim")
        if not isinstance(candidate, dict) or not _non_empty_str(candidate.get("name")):
            logger.error("[STORY] No usable victim after %d attempts", self.max_attempts)
            raise StoryGenerationError("victim generation produced no named victim")
        if not ok:
            logger.warning("[STORY] Accepting incomplete victim profile for %s", candidate.get("name"))
        try:
            return Victim.model_validate(candidate)
        except ValidationError as e:
            raise StoryGenerationError(f"victim profile unusable: {e}") from e

    def _suspects(self, setting: str, archetype: str, victim: Victim, config: CaseConfig) -> List[Suspect]:
        count = config.suspect_count
        prompt = suspects_prompt(setting, archetype, victim, count, config.get_complexity_instruction())
        candidate, ok = self._stage(
            prompt, lambda c: valid_suspects(c, count), "suspects", expect="array"
        )
        if not isinstance(candidate, list) or not candidate:
            logger.error("[STORY] No usable suspects after %d attempts", self.max_attempts)
            raise StoryGenerationError("suspect generation produced no suspects")
        try:
            suspects = [Suspect.model_validate(entry) for entry in candidate]
        except ValidationError as e:
            raise StoryGenerationError(f"suspect profiles unusable: {e}") from e

        killers = [s.name for s in suspects if s.is_killer]
        if len(killers) != 1:
            logger.error("[STORY] Expected exactly one killer, got %d: %s", len(killers), killers)
            raise StoryGenerationError(f"expected exactly one killer, found {len(killers)}")
        if not ok:
            logger.warning("[STORY] Accepting suspects that failed validation (%d)", len(suspects))
        return suspects

    def _world(self, setting, archetype, victim, suspects, killer):
        candidate, ok = self._stage(
            world_prompt(setting, archetype, victim, suspects, killer), valid_world, "world"
        )
        locations = candidate.get("locations") if isinstance(candidate, dict) else None
        if not isinstance(locations, list):
            locations = []
        locations = list(dict.fromkeys(loc.strip() for loc in locations if _non_empty_str(loc)))
        if not locations:
            logger.error("[STORY] No locations after %d attempts", self.max_attempts)
            raise StoryGenerationError("location generation produced no locations")
        if not ok:
            logger.warning("[STORY] Accepting locations/clues that failed validation")

        raw_clues = _by_location(candidate.get("clues"))
        clues = {}
        for location in locations:
            texts = raw_clues.get(location, [])
            clues[location] = [t for t in texts if _non_empty_str(t)] if isinstance(texts, list) else []
        dropped = set(raw_clues) - set(locations)
        if dropped:
            logger.warning("[STORY] Dropping clues for unknown locations: %s", sorted(dropped))

        raw_witnesses = _by_location(candidate.get("witnesses"))
        witnesses = {}
        for location in locations:
            people = raw_witnesses.get(location, [])
            if not isinstance(people, list):
                continue
            parsed = []
            for person in people:
                try:
                    parsed.append(Witness.model_validate(person))
                except ValidationError:
                    logger.warning("[STORY] Skipping malformed witness at %s", location)
            witnesses[location] = parsed
        return locations, clues, witnesses

    def _timeline(self, setting, archetype, victim, suspects, killer, locations, witnesses) -> List[TimelineEvent]:
        prompt = timeline_prompt(setting, archetype, victim, suspects, killer, locations, witnesses)
        candidate, ok = self._stage(prompt, valid_timeline, "timeline", expect="array")
        events = []
        for entry in candidate if isinstance(candidate, list) else []:
            if not isinstance(entry, dict):
                continue
            stamp = str(entry.get("time", "")).strip()
            if _HHMM.match(stamp) and _non_empty_str(entry.get("event")):
                events.append(TimelineEvent(time=stamp, event=entry["event"].strip()))
        if not ok:
            logger.warning("[STORY] Timeline failed validation, keeping %d well-formed events in time order", len(events))
            events.sort(key=lambda e: e.time)
        return events

    def _title(self, setting, archetype, victim, suspects, locations, witnesses, timeline) -> str:
        prompt = title_prompt(setting, archetype, victim, suspects, locations, witnesses, timeline)
        candidate, ok = self._stage(prompt, valid_title, "title")
        if ok:
            return candidate["title"].strip()
        title = fallback_title(victim, setting)
        logger.warning("[STORY] Title generation failed, using '%s'", title)
        return title

    def add_portraits(self, story: Story) -> Story:
        """Return a copy of `story` with portrait URLs where generation worked."""
        if self.images is None or self.storage is None:
            return story

        # keyed by position, 0 is the victim
        people = [(story.victim.name, story.victim.profession, story.victim.cause_of_death)]
        people += [(s.name, s.role, s.personality) for s in story.suspects]
        portraits: Dict[int, str] = {}

        def render(index: int, name: str, role: str, trait: str) -> Optional[str]:
            data = self.images.generate_image(portrait_prompt(name, role, trait, story.setting))
            if not data:
                return None
            return self.storage.upload(data, f"portrait_{index}_{name}.png", "portraits").url

        perf.start("story.portraits", parallel_count=len(people))
        with ThreadPoolExecutor(max_workers=min(len(people), 8)) as executor:
            future_to_index = {
                executor.submit(render, index, *person): index for index, person in enumerate(people)
            }
            for future in as_completed(future_to_index):
                index = future_to_index[future]
                name = people[index][0]
                try:
                    url = future.result()
                except Exception as e:
                    logger.warning("[STORY] Portrait for %s failed: %s", name, e)
                    continue
                if url:
                    portraits[index] = url
                else:
                    logger.warning("[STORY] No portrait produced for %s", name)
        perf.end("story.portraits", details=f"{len(portraits)}/{len(people)} portraits")

        victim = story.victim
        if 0 in portraits:
            victim = victim.model_copy(update={"portrait": portraits[0]})
        suspects = [
            s.model_copy(update={"portrait": portraits[i]}) if i in portraits else s
            for i, s in enumerate(story.suspects, 1)
        ]
        return story.model_copy(update={"victim": victim, "suspects": suspects})
