"""Additive merging of investigation progress.

Writers read the stored progress, build their change on a copy and merge it
back. Scalars take the incoming value; lists only ever grow, without
duplicates, so replaying the same change is harmless.
"""

from typing import Callable, Iterable, List, TypeVar

from game.models import InterrogationRecord, InvestigationProgress, LocationVisit

T = TypeVar("T")


def _union(existing: Iterable[T], incoming: Iterable[T], key: Callable[[T], object] = lambda x: x) -> List[T]:
    merged = list(existing)
    seen = {key(item) for item in merged}
    for item in incoming:
        marker = key(item)
        if marker not in seen:
            seen.add(marker)
            merged.append(item)
    return merged


def merge_visit(existing: LocationVisit, incoming: LocationVisit) -> LocationVisit:
    return LocationVisit(
        visited_at=incoming.visited_at,
        last_visit_date=incoming.last_visit_date,
        discovered_clues=_union(existing.discovered_clues, incoming.discovered_clues),
        generated_images=_union(existing.generated_images, incoming.generated_images, key=lambda i: i.url),
    )


def merge_interrogation(existing: InterrogationRecord, incoming: InterrogationRecord) -> InterrogationRecord:
    return InterrogationRecord(
        interrogated_at=incoming.interrogated_at,
        last_interrogation_date=incoming.last_interrogation_date,
        sessions=_union(existing.sessions, incoming.sessions, key=lambda s: s.session_id),
    )


def merge_progress(existing: InvestigationProgress, incoming: InvestigationProgress) -> InvestigationProgress:
    """Combine two progress records without losing anything from either."""
    visited = {k: v.model_copy(deep=True) for k, v in existing.visited_locations.items()}
    for key, visit in incoming.visited_locations.items():
        visited[key] = merge_visit(visited[key], visit) if key in visited else visit.model_copy(deep=True)

    interrogated = {k: v.model_copy(deep=True) for k, v in existing.interrogated_suspects.items()}
    for key, record in incoming.interrogated_suspects.items():
        interrogated[key] = (
            merge_interrogation(interrogated[key], record) if key in interrogated else record.model_copy(deep=True)
        )

    # Findings keep the stored freshness flag unless the incoming copy cleared it
    findings = {f.id: f.model_copy() for f in existing.investigation_findings}
    for finding in incoming.investigation_findings:
        if finding.id in findings:
            findings[finding.id].is_new = findings[finding.id].is_new and finding.is_new
        else:
            findings[finding.id] = finding.model_copy()

    return InvestigationProgress(
        visited_locations=visited,
        interrogated_suspects=interrogated,
        discovered_clues=_union(existing.discovered_clues, incoming.discovered_clues),
        current_day=max(existing.current_day, incoming.current_day),
        investigation_findings=list(findings.values()),
    )
