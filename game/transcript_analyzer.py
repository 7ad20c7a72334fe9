"""Post-interrogation analysis.

Turns a transcript into investigation findings and works out which of the
suspect's trigger clues the conversation would have shaken loose.
"""

import logging
from dataclasses import dataclass, field
from typing import List

from game.errors import LenientJsonError
from game.lenient_json import parse_lenient_json
from game.models import ClueWithTrigger, FindingSource, Importance, Story, Suspect

logger = logging.getLogger(__name__)


@dataclass
class AnalysisFinding:
    finding: str
    importance: Importance = Importance.MINOR
    is_new: bool = True


@dataclass
class TranscriptAnalysis:
    findings: List[AnalysisFinding] = field(default_factory=list)
    clues_revealed: List[str] = field(default_factory=list)
    suspicious_answers: List[str] = field(default_factory=list)
    inconsistencies: List[str] = field(default_factory=list)


@dataclass
class NewFinding:
    """A finding ready to be recorded (id and timestamp assigned on save)."""

    source: FindingSource
    source_details: str
    finding: str
    importance: Importance


def analysis_prompt(transcript: str, suspect: Suspect, story: Story, known_findings: List[str]) -> str:
    timeline = ", ".join(f"{t.time}: {t.event}" for t in story.timeline)
    return f"""You are a detective analysing an interrogation transcript from a murder investigation.

CASE CONTEXT:
- Victim: {story.victim.name}
- Setting: {story.setting}
- Suspect: {suspect.name} ({suspect.role})
- Timeline: {timeline}
- Existing Findings: {', '.join(known_findings) or 'None'}

INTERROGATION TRANSCRIPT:
{transcript}

Focus on NEW information, evasive or suspicious answers and contradictions with the timeline.

Return ONLY a JSON object:
{{
  "findings": [{{"finding": "...", "importance": "critical" | "important" | "minor", "isNew": true}}],
  "cluesRevealed": ["physical clues or evidence mentioned"],
  "suspiciousAnswers": ["quotes that seemed evasive or suspicious"],
  "inconsistencies": ["contradictions with the timeline or known facts"]
}}"""


def _strings(value) -> List[str]:
    if not isinstance(value, list):
        return []
    return [v.strip() for v in value if isinstance(v, str) and v.strip()]


def _fallback_analysis(suspect_name: str) -> TranscriptAnalysis:
    return TranscriptAnalysis(
        findings=[
            AnalysisFinding(
                finding=f"{suspect_name} provided responses during interrogation - detailed analysis failed",
            )
        ]
    )


def analyze_transcript(text, transcript: str, suspect: Suspect, story: Story, known_findings: List[str] = ()) -> TranscriptAnalysis:
    """Ask the text model for an analysis; a single minor finding on failure."""
    try:
        raw = text.generate(analysis_prompt(transcript, suspect, story, list(known_findings)))
        data = parse_lenient_json(raw, expect="object")
    except LenientJsonError as e:
        logger.warning("[PROGRESS] Transcript analysis unparseable for %s: %s", suspect.name, e)
        return _fallback_analysis(suspect.name)
    except Exception as e:
        logger.warning("[PROGRESS] Transcript analysis failed for %s: %s", suspect.name, e)
        return _fallback_analysis(suspect.name)

    if not isinstance(data.get("findings"), list):
        logger.warning("[PROGRESS] Transcript analysis for %s has no findings list", suspect.name)
        return _fallback_analysis(suspect.name)

    findings = []
    for entry in data["findings"]:
        if not isinstance(entry, dict) or not isinstance(entry.get("finding"), str):
            continue
        try:
            importance = Importance(entry.get("importance", "minor"))
        except ValueError:
            importance = Importance.MINOR
        findings.append(
            AnalysisFinding(
                finding=entry["finding"].strip(),
                importance=importance,
                is_new=entry.get("isNew", True) is not False,
            )
        )
    return TranscriptAnalysis(
        findings=findings,
        clues_revealed=_strings(data.get("cluesRevealed")),
        suspicious_answers=_strings(data.get("suspiciousAnswers")),
        inconsistencies=_strings(data.get("inconsistencies")),
    )


def to_findings(analysis: TranscriptAnalysis, suspect_name: str) -> List[NewFinding]:
    """New findings, then suspicious answers (important), then inconsistencies (critical)."""
    results = [
        NewFinding(
            source=FindingSource.INTERROGATION,
            source_details=f"Interrogation with {suspect_name}",
            finding=f.finding,
            importance=f.importance,
        )
        for f in analysis.findings
        if f.is_new
    ]
    results += [
        NewFinding(
            source=FindingSource.INTERROGATION,
            source_details=f"Suspicious response from {suspect_name}",
            finding=f'Suspicious answer: "{answer}"',
            importance=Importance.IMPORTANT,
        )
        for answer in analysis.suspicious_answers
    ]
    results += [
        NewFinding(
            source=FindingSource.INTERROGATION,
            source_details=f"Timeline inconsistency - {suspect_name}",
            finding=f"Inconsistency detected: {item}",
            importance=Importance.CRITICAL,
        )
        for item in analysis.inconsistencies
    ]
    return results


def revealed_trigger_clues(text, transcript: str, triggers: List[ClueWithTrigger]) -> List[str]:
    """Trigger clue texts the interrogation would have revealed.

    Only texts that match one of `triggers` are returned; any failure means
    nothing was revealed.
    """
    if not triggers:
        return []
    listing = "\n\n".join(
        f'{i}. "{t.clue}"\n   Trigger: {t.trigger_type} approach (level {t.trigger_level})\n'
        f"   Required: {t.trigger_description}\n   Importance: {t.importance}"
        for i, t in enumerate(triggers, 1)
    )
    prompt = f"""Decide which clues an interrogation revealed, based on their trigger conditions.

INTERROGATION TRANSCRIPT:
{transcript}

AVAILABLE CLUES WITH TRIGGERS:
{listing}

Return ONLY a JSON array of the clue texts that were revealed, e.g. ["clue text 1"].
If no clues were revealed, return []."""
    try:
        revealed = parse_lenient_json(text.generate(prompt), expect="array")
    except Exception as e:
        logger.warning("[PROGRESS] Trigger check failed: %s", e)
        return []

    known = {t.clue.strip().lower(): t.clue for t in triggers}
    matched = []
    for item in _strings(revealed):
        clue = known.get(item.lower())
        if clue and clue not in matched:
            matched.append(clue)
    return matched
