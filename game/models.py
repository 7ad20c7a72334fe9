"""Data models for generated cases and investigation progress.

Field names are snake_case in Python and camelCase on the wire
(`model_dump(by_alias=True)`), so stored documents keep the shapes
existing clients already read: `isKiller`, `lastKnownLocation`,
`visitedLocations`, and so on.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CaseModel(BaseModel):
    """Base model: camelCase aliases, construction by either name."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        """JSON-ready dict using the wire (camelCase) field names."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# =============================================================================
# STORY
# =============================================================================


class ClueWithTrigger(CaseModel):
    """A clue a character only gives up under a specific interrogation approach."""

    clue: str
    trigger_type: str = Field(
        default="pressing",
        description="'pressing', 'gentle', 'aggressive', 'sympathetic' or 'specific_question'",
    )
    trigger_level: int = Field(default=3, ge=1, le=5)
    trigger_description: str = ""
    is_red_herring: bool = False
    importance: str = Field(default="minor", description="'critical', 'important' or 'minor'")
    revealed: bool = False


class Victim(CaseModel):
    """Victim information."""

    model_config = ConfigDict(frozen=True)

    name: str
    profession: str = ""
    last_known_location: str = ""
    death_time_estimate: str = Field(default="", description="HH:MM")
    cause_of_death: str = ""
    portrait: Optional[str] = None


class Suspect(CaseModel):
    """Suspect information."""

    model_config = ConfigDict(frozen=True)

    name: str
    role: str = ""
    alibi: str = ""
    motives: List[str] = Field(default_factory=list)
    is_killer: bool = False
    personality: str = ""
    portrait: Optional[str] = None
    clues_triggers: List[ClueWithTrigger] = Field(default_factory=list)


class Witness(CaseModel):
    """A non-suspect character found at a location."""

    model_config = ConfigDict(frozen=True)

    name: str
    role: str = ""
    background: str = ""
    testimony: str = ""
    reliability: str = ""
    hidden_agenda: str = ""
    clues_triggers: List[ClueWithTrigger] = Field(default_factory=list)


class TimelineEvent(CaseModel):
    """One timestamped event of the murder timeline."""

    model_config = ConfigDict(frozen=True)

    time: str = Field(description="HH:MM")
    event: str


class Story(CaseModel):
    """The immutable narrative core of a case."""

    model_config = ConfigDict(frozen=True)

    title: str
    setting: str
    victim: Victim
    suspects: List[Suspect]
    killer: str
    locations: List[str]
    clues: Dict[str, List[str]] = Field(default_factory=dict)
    witnesses: Dict[str, List[Witness]] = Field(default_factory=dict)
    timeline: List[TimelineEvent] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_killer(self) -> "Story":
        killers = [s for s in self.suspects if s.is_killer]
        if len(killers) != 1:
            raise ValueError(f"exactly one suspect must be the killer, found {len(killers)}")
        if killers[0].name != self.killer:
            raise ValueError(
                f"killer '{self.killer}' does not match flagged suspect '{killers[0].name}'"
            )
        if len(set(self.locations)) != len(self.locations):
            raise ValueError("location names must be unique")
        return self

    @property
    def suspect_names(self) -> List[str]:
        return [s.name for s in self.suspects]

    def get_suspect(self, name: str) -> Optional[Suspect]:
        for suspect in self.suspects:
            if suspect.name == name:
                return suspect
        return None


# =============================================================================
# PROCESSED CLUES
# =============================================================================


class ClueType(str, Enum):
    PHYSICAL_OBJECT = "Physical Object"
    DIGITAL_RECORD = "Digital Record"
    BIOLOGICAL_TRACE = "Biological Trace"
    WITNESS_TESTIMONY = "Witness Testimony"
    ENVIRONMENTAL_ANOMALY = "Environmental Anomaly"


class ClueCategory(str, Enum):
    DIRECT = "direct"
    INDIRECT = "indirect"
    RED_HERRING = "red_herring"


class DiscoveryRequirement(str, Enum):
    FORENSIC_KIT = "forensic_kit"
    HACK = "hack"
    DEEP_SEARCH = "deep_search"
    WITNESS_HELP = "witness_help"
    OBSERVATION = "observation"


class ClueDiscovery(CaseModel):
    """How a clue is revealed in play."""

    requires: DiscoveryRequirement
    difficulty: int = Field(ge=1, le=5)
    requires_item: Optional[str] = None
    requires_action: Optional[str] = None
    requires_witness_help: Optional[str] = None


class WitnessInfo(CaseModel):
    name: str
    reliability: str = ""
    hidden_agenda: str = ""


class ProcessedClue(CaseModel):
    """A clue after deterministic classification of its raw text."""

    type: ClueType
    content: str
    category: ClueCategory
    discovery: ClueDiscovery
    related_suspects: List[str] = Field(default_factory=list)
    time_relevance: Optional[str] = None
    location_context: str
    witness_info: Optional[WitnessInfo] = None


ProcessedClues = Dict[str, List[ProcessedClue]]


# =============================================================================
# MAP AND INTRO
# =============================================================================


class LocationNode(CaseModel):
    """A node of the case map. Ids are L1..LN in story order."""

    id: str
    full_name: str
    connections: List[str] = Field(default_factory=list)


class CaseMap(CaseModel):
    nodes: List[LocationNode]
    mermaid_diagram: str = ""
    map_image_url: Optional[str] = None

    def get_node(self, location_id: str) -> Optional[LocationNode]:
        for node in self.nodes:
            if node.id == location_id:
                return node
        return None


class DisplayData(CaseModel):
    victim_name: str
    last_known_location: str
    cause_of_death: str
    initial_suspects: List[str]
    main_location: str


class CaseIntro(CaseModel):
    intro_narrative: str
    journal_entry: str
    display_data: DisplayData


# =============================================================================
# INVESTIGATION PROGRESS
# =============================================================================


class FindingSource(str, Enum):
    INTERROGATION = "interrogation"
    LOCATION_VISIT = "location_visit"
    CLUE_DISCOVERY = "clue_discovery"


class Importance(str, Enum):
    CRITICAL = "critical"
    IMPORTANT = "important"
    MINOR = "minor"


class LocationImage(CaseModel):
    url: str
    description: str = ""
    clue_hints: List[str] = Field(default_factory=list)


class LocationVisit(CaseModel):
    visited_at: str
    last_visit_date: str
    discovered_clues: List[str] = Field(default_factory=list)
    generated_images: List[LocationImage] = Field(default_factory=list)


class InterrogationQA(CaseModel):
    question: str
    response: str
    timestamp: str


class InterrogationSession(CaseModel):
    session_id: str
    timestamp: str
    questions: List[InterrogationQA] = Field(default_factory=list)
    full_transcript: str = ""
    audio_id: Optional[str] = None
    findings: List[str] = Field(default_factory=list)
    clues_revealed: List[str] = Field(default_factory=list)


class InterrogationRecord(CaseModel):
    interrogated_at: str
    last_interrogation_date: str
    sessions: List[InterrogationSession] = Field(default_factory=list)


class InvestigationFinding(CaseModel):
    id: str
    source: FindingSource
    source_details: str
    finding: str
    importance: Importance = Importance.MINOR
    timestamp: str
    is_new: bool = True


class InvestigationProgress(CaseModel):
    """Per-case mutable record of what the player has done so far."""

    visited_locations: Dict[str, LocationVisit] = Field(default_factory=dict)
    interrogated_suspects: Dict[str, InterrogationRecord] = Field(default_factory=dict)
    discovered_clues: List[str] = Field(default_factory=list)
    current_day: int = 1
    investigation_findings: List[InvestigationFinding] = Field(default_factory=list)


# =============================================================================
# CASE RECORD
# =============================================================================


class CaseStatus(str, Enum):
    GENERATING = "generating"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class Verdict(CaseModel):
    selected_suspect: str
    reasoning: str
    is_correct: bool
    score: int
    submitted_at: str
    correct_suspect: str


class CaseRecord(CaseModel):
    """Everything persisted for one case."""

    id: Optional[str] = None
    user_id: str
    title: str
    story: Optional[Story] = None
    case_intro: Optional[CaseIntro] = None
    clues: Dict[str, List[ProcessedClue]] = Field(default_factory=dict)
    map: Optional[CaseMap] = None
    status: CaseStatus = CaseStatus.GENERATING
    difficulty: str = "medium"
    estimated_duration: int = 45
    tags: List[str] = Field(default_factory=list)
    investigation_progress: InvestigationProgress = Field(default_factory=InvestigationProgress)
    verdict_submitted: bool = False
    verdict: Optional[Verdict] = None
    created_at: Optional[str] = None
    completed_at: Optional[str] = None
