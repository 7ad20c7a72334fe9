"""Case assembly and persistence.

`build_case` runs the whole pipeline (story, clue triggers, clue
classification, map, intro) and returns an unsaved CaseRecord.
`start_case` stores a placeholder straight away and does the generation on a
background thread, so callers can poll the case status.
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional

from game.case_intro import compose_case_intro
from game.clue_classifier import process_story_clues
from game.clue_triggers import enrich_with_triggers
from game.location_graph import build_case_map
from game.models import CaseRecord, CaseStatus, InvestigationProgress, Story
from game.story_generator import StoryGenerator
from game.validated_generator import resolve_attempts
from mystery_config import CaseConfig, estimate_case_duration
from services.perf_tracker import perf

logger = logging.getLogger(__name__)

GENERATING_TITLE = "Generating Case..."
FAILED_TITLE = "Generation Failed - Please Try Again"

CAUSE_TAGS = [
    (("poison",), "poisoning"),
    (("gun",), "firearms"),
    (("knife", "stab"), "stabbing"),
    (("blunt",), "blunt-force"),
    (("strangulation",), "strangulation"),
]


def case_tags(story: Story) -> List[str]:
    tags = []
    if story.victim.profession:
        tags.append(story.victim.profession.lower())
    tags.append(story.setting.split(",")[0].strip().lower())
    cause = story.victim.cause_of_death.lower()
    for keywords, tag in CAUSE_TAGS:
        if any(k in cause for k in keywords):
            tags.append(tag)
    tags.append("complex" if len(story.suspects) > 3 else "simple")
    tags.extend(["mystery", "investigation", "detective"])
    return list(dict.fromkeys(tags))


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CaseBuilder:
    """Generates cases and saves them to a CaseStore."""

    def __init__(
        self,
        text,
        store,
        images=None,
        storage=None,
        max_attempts: Optional[int] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.text = text
        self.store = store
        self.images = images
        self.storage = storage
        self.max_attempts = resolve_attempts(max_attempts)
        self.clock = clock
        self.stories = StoryGenerator(text, images=images, storage=storage, max_attempts=self.max_attempts)

    def build_case(self, user_id: str, config: Optional[CaseConfig] = None) -> CaseRecord:
        """Generate every part of a case. StoryGenerationError propagates."""
        config = config or CaseConfig()
        perf.reset(user_id)

        story = self.stories.generate(config)
        story = enrich_with_triggers(story, self.text, self.max_attempts)
        with perf.track("case.clues"):
            clues = process_story_clues(story)
        with perf.track("case.map"):
            case_map = build_case_map(story, self.text, self.images, self.storage, self.max_attempts)
        with perf.track("case.intro"):
            intro = compose_case_intro(story, self.text, config)

        clue_count = sum(len(items) for items in clues.values())
        record = CaseRecord(
            user_id=user_id,
            title=story.title,
            story=story,
            case_intro=intro,
            clues=clues,
            map=case_map,
            status=CaseStatus.ACTIVE,
            difficulty=config.difficulty,
            estimated_duration=estimate_case_duration(config.difficulty, clue_count, len(story.suspects)),
            tags=case_tags(story),
            investigation_progress=InvestigationProgress(),
            created_at=self.clock().isoformat(),
        )
        logger.info("[CASE] Built '%s' (%d clues, ~%d min)", record.title, clue_count, record.estimated_duration)
        logger.debug("[CASE] Timing:\n%s", perf.get_summary())
        return record

    def create_case(self, user_id: str, config: Optional[CaseConfig] = None) -> str:
        """Generate and store a case synchronously."""
        return self.store.create_case(self.build_case(user_id, config))

    def start_case(self, user_id: str, config: Optional[CaseConfig] = None) -> str:
        """Store a 'generating' placeholder and fill it in on a daemon thread.

        Returns the case id immediately. If generation fails the case is
        archived with a failure title.
        """
        config = config or CaseConfig()
        case_id = self.store.create_case(
            CaseRecord(
                id=uuid.uuid4().hex,
                user_id=user_id,
                title=GENERATING_TITLE,
                status=CaseStatus.GENERATING,
                difficulty=config.difficulty,
                created_at=self.clock().isoformat(),
            )
        )

        thread = threading.Thread(
            target=self._generate_into,
            args=(case_id, user_id, config),
            name=f"case-{case_id[:8]}",
            daemon=True,
        )
        thread.start()
        logger.info("[CASE] Started background generation for %s", case_id)
        return case_id

    def _generate_into(self, case_id: str, user_id: str, config: CaseConfig) -> None:
        try:
            record = self.build_case(user_id, config)
        except Exception as e:
            logger.error("[CASE] Generation failed for %s: %s", case_id, e)
            self.store.update_case(case_id, status=CaseStatus.ARCHIVED, title=FAILED_TITLE)
            return
        self.store.update_case(
            case_id,
            title=record.title,
            story=record.story,
            case_intro=record.case_intro,
            clues=record.clues,
            map=record.map,
            status=CaseStatus.ACTIVE,
            estimated_duration=record.estimated_duration,
            tags=record.tags,
        )
        logger.info("[CASE] Case %s ready: '%s'", case_id, record.title)
