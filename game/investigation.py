"""Day-by-day investigation of a generated case.

Location visits and interrogations are limited to one per key per game day
by `DailyLimiter`. Rejections come back as an `ActionOutcome` with
`accepted=False` rather than as exceptions. Slow work (crime-scene images,
interrogation dialogue and audio) runs through the operation tracker, and
every write goes through `merge_progress` so accumulated data is never lost.
"""

import logging
import random
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from game.daily_limiter import ActionKind, DailyLimiter
from game.errors import (
    CaseNotFoundError,
    CaseNotReadyError,
    UnknownLocationError,
    UnknownSuspectError,
    VerdictAlreadySubmittedError,
)
from game.models import (
    CaseRecord,
    CaseStatus,
    ClueCategory,
    ClueType,
    FindingSource,
    Importance,
    InterrogationQA,
    InterrogationSession,
    InvestigationFinding,
    InvestigationProgress,
    LocationImage,
    LocationNode,
    ProcessedClue,
    Story,
    Suspect,
    Verdict,
)
from game.progress import merge_progress
from game.transcript_analyzer import NewFinding, analyze_transcript, revealed_trigger_clues, to_findings
from game.verdict import judge
from services.image_service import scene_prompt
from services.operation_tracker import OperationTracker, ProgressCallback, get_operation_tracker
from services.voice_service import cast_voices, parse_script

logger = logging.getLogger(__name__)

ALREADY_VISITED = "You have already visited this location today. Try again after midnight IST."
ALREADY_INTERROGATED = "You have already interrogated this suspect today. Try again after midnight IST."
NOT_VISITED = "Visit this location before investigating it."

IMAGE_LABELS = {
    ClueType.PHYSICAL_OBJECT: "Physical Evidence",
    ClueType.BIOLOGICAL_TRACE: "Biological Evidence",
    ClueType.ENVIRONMENTAL_ANOMALY: "Environmental Disturbance",
    ClueType.DIGITAL_RECORD: "Digital Evidence",
}


@dataclass
class ActionOutcome:
    """Result of a player action."""

    accepted: bool
    message: str
    operation_id: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


def conversation_prompt(story: Story, suspect: Suspect, questions: List[str], detective: str, previous: List[str]) -> str:
    planned = "\n".join(f"{i}. {q}" for i, q in enumerate(questions, 1))
    asked = ""
    if previous:
        asked = "\n\nPrevious questions asked to this suspect:\n" + "\n".join(
            f"{i}. {q}" for i, q in enumerate(previous, 1)
        )
    if suspect.is_killer:
        guilt = f"{suspect.name} IS the killer but will NOT confess; evasive, defensive or misleading when pressed."
    else:
        guilt = f"{suspect.name} is INNOCENT; helpful but possibly nervous or frustrated."
    return f"""Write a realistic interrogation between {detective} and {suspect.name}, a suspect in a murder investigation.

CASE CONTEXT:
- Victim: {story.victim.name} ({story.victim.profession})
- Setting: {story.setting}
- Suspect role: {suspect.role}
- Suspect personality: {suspect.personality}
- Suspect alibi: {suspect.alibi}
- Suspect motives: {', '.join(suspect.motives)}

DETECTIVE'S PLANNED QUESTIONS:
{planned}{asked}

{guilt}
Use the questions as a guide, with natural follow-ups. Spoken words only, no stage directions.

FORMAT (nothing before or after):
{detective}: [question]
{suspect.name}: [response]"""


def fallback_conversation(suspect: Suspect, questions: List[str], detective: str) -> str:
    return (
        f"{detective}: {questions[0]}\n"
        f"{suspect.name}: I've already told you everything I know. {suspect.alibi}\n"
        f"{detective}: Thank you for your cooperation.\n"
        f"{suspect.name}: I just want to help find who did this."
    )


def question_pairs(script: str, detective: str, timestamp: str) -> List[InterrogationQA]:
    """Pair each detective line with the reply that follows it."""
    pairs = []
    pending = None
    for speaker, line in parse_script(script):
        if speaker.lower() == detective.lower():
            pending = line
        elif pending is not None:
            pairs.append(InterrogationQA(question=pending, response=line, timestamp=timestamp))
            pending = None
    return pairs


def clue_image_prompt(location: str, setting: str, clue: ProcessedClue) -> str:
    detail = f"{clue.content} ({clue.type.value}, {clue.category.value} evidence)"
    return "Forensic documentation photograph. " + scene_prompt(location, setting, detail)


class InvestigationService:
    """Player actions against stored cases."""

    def __init__(
        self,
        store,
        text,
        tracker: Optional[OperationTracker] = None,
        limiter: Optional[DailyLimiter] = None,
        images=None,
        voices=None,
        storage=None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.text = text
        self.tracker = tracker or get_operation_tracker()
        self.limiter = limiter or DailyLimiter()
        self.images = images
        self.voices = voices
        self.storage = storage
        self.rng = rng or random.Random()
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Loading and committing
    # -------------------------------------------------------------------------

    def _load(self, case_id: str) -> CaseRecord:
        record = self.store.get_case(case_id)
        if record is None:
            raise CaseNotFoundError(case_id)
        if record.story is None:
            raise CaseNotReadyError(f"Case {case_id} is {record.status.value}")
        return record

    def _location(self, record: CaseRecord, location_id: str) -> LocationNode:
        node = record.map.get_node(location_id) if record.map else None
        if node is None:
            raise UnknownLocationError(location_id)
        return node

    def _suspect(self, record: CaseRecord, name: str) -> Suspect:
        suspect = record.story.get_suspect(name)
        if suspect is None:
            raise UnknownSuspectError(name)
        return suspect

    def _commit(self, case_id: str, change: Callable[[InvestigationProgress], InvestigationProgress]) -> InvestigationProgress:
        """Read the stored progress, apply `change` to a copy and merge it back."""
        with self._lock:
            current = self._load(case_id).investigation_progress
            updated = merge_progress(current, change(current.model_copy(deep=True)))
            self.store.update_case(case_id, investigation_progress=updated)
            return updated

    def _finding(self, new: NewFinding) -> InvestigationFinding:
        return InvestigationFinding(
            id=f"finding_{uuid.uuid4().hex[:12]}",
            source=new.source,
            source_details=new.source_details,
            finding=new.finding,
            importance=new.importance,
            timestamp=self.limiter.timestamp(),
        )

    def _record_findings(self, case_id: str, new_findings: List[NewFinding]) -> List[InvestigationFinding]:
        findings = [self._finding(f) for f in new_findings]
        if findings:

            def change(progress):
                progress.investigation_findings.extend(findings)
                return progress

            self._commit(case_id, change)
        return findings

    def get_progress(self, case_id: str) -> InvestigationProgress:
        return self._load(case_id).investigation_progress

    # -------------------------------------------------------------------------
    # Locations
    # -------------------------------------------------------------------------

    def can_visit(self, case_id: str, location_id: str) -> bool:
        record = self._load(case_id)
        self._location(record, location_id)
        return self.limiter.can_act(record.investigation_progress, ActionKind.VISIT, location_id)

    def visit_location(self, case_id: str, location_id: str) -> ActionOutcome:
        record = self._load(case_id)
        node = self._location(record, location_id)

        accepted = []

        def change(progress):
            if not self.limiter.can_act(progress, ActionKind.VISIT, location_id):
                return progress
            accepted.append(True)
            return self.limiter.record_action(progress, ActionKind.VISIT, location_id)

        progress = self._commit(case_id, change)
        if not accepted:
            logger.info("[PROGRESS] Visit to %s rejected for case %s (already today)", location_id, case_id)
            return ActionOutcome(accepted=False, message=ALREADY_VISITED)

        clues = record.clues.get(node.full_name, [])
        return ActionOutcome(
            accepted=True,
            message=f"Visited {node.full_name}",
            data={
                "location": node.to_document(),
                "clues": [c.to_document() for c in clues],
                "witnesses": [w.to_document() for w in record.story.witnesses.get(node.full_name, [])],
                "visit": progress.visited_locations[location_id].to_document(),
            },
        )

    def discover_clues(self, case_id: str, location_id: str, clue_texts: List[str]) -> ActionOutcome:
        """Record clues the player found at a visited location."""
        record = self._load(case_id)
        node = self._location(record, location_id)
        if location_id not in record.investigation_progress.visited_locations:
            return ActionOutcome(accepted=False, message=NOT_VISITED)

        texts = list(dict.fromkeys(t.strip() for t in clue_texts if t and t.strip()))
        known = set(record.investigation_progress.discovered_clues)
        fresh = [t for t in texts if t not in known]
        by_content = {c.content: c for c in record.clues.get(node.full_name, [])}

        def change(progress):
            progress.visited_locations[location_id].discovered_clues.extend(texts)
            progress.discovered_clues.extend(texts)
            return progress

        self._commit(case_id, change)
        findings = self._record_findings(
            case_id,
            [
                NewFinding(
                    source=FindingSource.CLUE_DISCOVERY,
                    source_details=f"Evidence found at {node.full_name}",
                    finding=text,
                    importance=(
                        Importance.IMPORTANT
                        if text in by_content and by_content[text].category == ClueCategory.DIRECT
                        else Importance.MINOR
                    ),
                )
                for text in fresh
            ],
        )
        logger.info("[PROGRESS] %d new clues at %s for case %s", len(fresh), node.full_name, case_id)
        return ActionOutcome(
            accepted=True,
            message=f"{len(fresh)} new clues recorded",
            data={"newClues": fresh, "findings": [f.to_document() for f in findings]},
        )

    def start_location_images(self, case_id: str, location_id: str) -> ActionOutcome:
        """Generate crime-scene images for a visited location in the background."""
        record = self._load(case_id)
        node = self._location(record, location_id)
        visit = record.investigation_progress.visited_locations.get(location_id)
        if visit is None:
            return ActionOutcome(accepted=False, message=NOT_VISITED)

        clues = record.clues.get(node.full_name, [])
        witness_count = len(record.story.witnesses.get(node.full_name, []))
        setting = record.story.setting

        def worker(report: ProgressCallback):
            if visit.generated_images:
                logger.info("[PROGRESS] Reusing %d images for %s", len(visit.generated_images), node.full_name)
                images = visit.generated_images
            else:
                images = self._render_location(case_id, node, setting, clues, report)
            return {
                "images": [i.to_document() for i in images],
                "clueCount": len(clues),
                "witnessCount": witness_count,
            }

        operation_id = self.tracker.run_in_background(
            "location_images", f"Investigating {node.full_name}...", worker
        )
        return ActionOutcome(accepted=True, message="Investigation started", operation_id=operation_id)

    def _render_location(self, case_id, node, setting, clues, report) -> List[LocationImage]:
        if self.images is None or self.storage is None:
            raise RuntimeError("Image generation is not configured")

        visual = [c for c in clues if c.type != ClueType.WITNESS_TESTIMONY]
        report(20, "Analyzing location clues...")
        images = []
        for index, clue in enumerate(visual, 1):
            data = self.images.generate_image(clue_image_prompt(node.full_name, setting, clue))
            if data:
                stored = self.storage.upload(data, f"{case_id}_{node.id}_clue{index}.png", "locations")
                label = IMAGE_LABELS.get(clue.type, "Evidence")
                images.append(
                    LocationImage(url=stored.url, description=f"{label} at {node.full_name}", clue_hints=[clue.content])
                )
            else:
                logger.warning("[PROGRESS] No image for clue %d at %s", index, node.full_name)
            report(20 + int(60 * index / max(1, len(visual))), f"Documented {index}/{len(visual)} pieces of evidence")

        overview = self.images.generate_image(scene_prompt(node.full_name, setting))
        if overview:
            stored = self.storage.upload(overview, f"{case_id}_{node.id}_overview.png", "locations")
            images.append(
                LocationImage(
                    url=stored.url,
                    description=f"Overview of {node.full_name}",
                    clue_hints=[c.content for c in visual],
                )
            )
        if not images:
            raise RuntimeError(f"No images could be generated for {node.full_name}")

        report(90, "Saving crime scene photographs...")

        def change(progress):
            progress.visited_locations[node.id].generated_images.extend(images)
            return progress

        self._commit(case_id, change)
        self._record_findings(
            case_id,
            [
                NewFinding(
                    source=FindingSource.LOCATION_VISIT,
                    source_details=f"Crime scene at {node.full_name}",
                    finding=f"{len(images)} photographs of {node.full_name} documented",
                    importance=Importance.MINOR,
                )
            ],
        )
        return images

    # -------------------------------------------------------------------------
    # Suspects
    # -------------------------------------------------------------------------

    def can_interrogate(self, case_id: str, suspect_name: str) -> bool:
        record = self._load(case_id)
        self._suspect(record, suspect_name)
        return self.limiter.can_act(record.investigation_progress, ActionKind.INTERROGATION, suspect_name)

    def interrogate_suspect(
        self,
        case_id: str,
        suspect_name: str,
        questions: List[str],
        detective_name: str = "Detective",
    ) -> ActionOutcome:
        """Start an interrogation; dialogue, audio and analysis run in the background."""
        questions = [q.strip() for q in questions if q and q.strip()]
        if not questions:
            raise ValueError("At least one question is required")
        record = self._load(case_id)
        suspect = self._suspect(record, suspect_name)
        story = record.story

        accepted = []

        def claim(progress):
            if not self.limiter.can_act(progress, ActionKind.INTERROGATION, suspect.name):
                return progress
            accepted.append(True)
            return self.limiter.record_action(progress, ActionKind.INTERROGATION, suspect.name)

        self._commit(case_id, claim)
        if not accepted:
            logger.info("[PROGRESS] Interrogation of %s rejected for case %s (already today)", suspect.name, case_id)
            return ActionOutcome(accepted=False, message=ALREADY_INTERROGATED)

        prior = record.investigation_progress.interrogated_suspects.get(suspect.name)
        previous = [qa.question for s in prior.sessions for qa in s.questions] if prior else []
        known_findings = [f.finding for f in record.investigation_progress.investigation_findings]

        def worker(report: ProgressCallback):
            return self._run_interrogation(
                case_id, story, suspect, questions, detective_name, previous, known_findings, report
            )

        operation_id = self.tracker.run_in_background(
            "interrogation", f"Interrogating {suspect.name}...", worker
        )
        return ActionOutcome(accepted=True, message="Interrogation started", operation_id=operation_id)

    def _run_interrogation(self, case_id, story, suspect, questions, detective, previous, known_findings, report):
        report(20, "Generating conversation...")
        try:
            conversation = (self.text.generate(conversation_prompt(story, suspect, questions, detective, previous)) or "").strip()
        except Exception as e:
            logger.warning("[PROGRESS] Conversation generation failed for %s: %s", suspect.name, e)
            conversation = ""
        if not parse_script(conversation):
            conversation = fallback_conversation(suspect, questions, detective)

        report(45, "Generating audio...")
        audio_id, audio_url = None, None
        if self.voices is not None and self.storage is not None:
            try:
                cast = cast_voices([detective, suspect.name], self.text, self.rng)
                audio = self.voices.generate_audio(conversation, cast)
                if audio:
                    stored = self.storage.upload(audio, f"interrogation_{case_id}_{suspect.name}.mp3", "audio")
                    audio_id, audio_url = stored.id, stored.url
            except Exception as e:
                logger.warning("[PROGRESS] Audio for %s failed: %s", suspect.name, e)

        report(65, "Analyzing testimony...")
        analysis = analyze_transcript(self.text, conversation, suspect, story, known_findings)
        revealed = revealed_trigger_clues(self.text, conversation, suspect.clues_triggers)

        report(85, "Recording session and findings...")
        timestamp = self.limiter.timestamp()
        session = InterrogationSession(
            session_id=f"session_{uuid.uuid4().hex[:12]}",
            timestamp=timestamp,
            questions=question_pairs(conversation, detective, timestamp),
            full_transcript=conversation,
            audio_id=audio_id,
            findings=[f.finding for f in analysis.findings if f.is_new],
            # analysis-only clues go on the session, never into discovered_clues
            clues_revealed=list(dict.fromkeys(revealed + analysis.clues_revealed)),
        )

        def change(progress):
            progress.interrogated_suspects[suspect.name].sessions.append(session)
            progress.discovered_clues.extend(revealed)
            return progress

        self._commit(case_id, change)
        findings = self._record_findings(case_id, to_findings(analysis, suspect.name))
        logger.info(
            "[PROGRESS] Interrogation of %s: %d findings, %d clues revealed",
            suspect.name, len(findings), len(revealed),
        )
        return {
            "conversation": conversation,
            "audioId": audio_id,
            "audioUrl": audio_url,
            "sessionId": session.session_id,
            "findings": [f.to_document() for f in findings],
            "revealedClues": revealed,
        }

    # -------------------------------------------------------------------------
    # Findings
    # -------------------------------------------------------------------------

    def add_finding(
        self,
        case_id: str,
        source: FindingSource,
        source_details: str,
        finding: str,
        importance: Importance = Importance.MINOR,
    ) -> InvestigationFinding:
        self._load(case_id)
        new = NewFinding(
            source=FindingSource(source),
            source_details=source_details,
            finding=finding,
            importance=Importance(importance),
        )
        return self._record_findings(case_id, [new])[0]

    def list_findings(self, case_id: str, only_new: bool = False) -> List[InvestigationFinding]:
        """Findings newest first."""
        findings = self._load(case_id).investigation_progress.investigation_findings
        if only_new:
            findings = [f for f in findings if f.is_new]
        # reversed first so findings sharing a timestamp also come out newest first
        return sorted(reversed(findings), key=lambda f: f.timestamp, reverse=True)

    def mark_findings_seen(self, case_id: str, finding_ids: Optional[List[str]] = None) -> int:
        """Clear the freshness flag (on all findings when no ids are given)."""
        wanted = set(finding_ids) if finding_ids is not None else None
        cleared = []

        def change(progress):
            for finding in progress.investigation_findings:
                if finding.is_new and (wanted is None or finding.id in wanted):
                    finding.is_new = False
                    cleared.append(finding.id)
            return progress

        self._commit(case_id, change)
        return len(cleared)

    # -------------------------------------------------------------------------
    # Verdict
    # -------------------------------------------------------------------------

    def submit_verdict(self, case_id: str, accused: str, reasoning: str) -> Verdict:
        with self._lock:
            record = self._load(case_id)
            if record.verdict_submitted:
                raise VerdictAlreadySubmittedError(case_id)
            verdict = judge(
                accused,
                reasoning,
                record.story.killer,
                record.investigation_progress,
                record.created_at,
                self.limiter.now(),
            )
            self.store.update_case(
                case_id,
                verdict=verdict,
                verdict_submitted=True,
                status=CaseStatus.COMPLETED,
                completed_at=verdict.submitted_at,
            )
        return verdict
