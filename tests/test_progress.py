from game.models import (
    FindingSource,
    InterrogationRecord,
    InterrogationSession,
    InvestigationFinding,
    InvestigationProgress,
    LocationImage,
    LocationVisit,
)
from game.progress import merge_progress


def finding(finding_id, is_new=True):
    return InvestigationFinding(
        id=finding_id,
        source=FindingSource.CLUE_DISCOVERY,
        source_details="Library",
        finding=f"Finding {finding_id}",
        timestamp="2024-03-10T12:00:00+00:00",
        is_new=is_new,
    )


def visit(date, clues=(), images=()):
    return LocationVisit(
        visited_at=f"{date}T12:00:00+00:00",
        last_visit_date=date,
        discovered_clues=list(clues),
        generated_images=[LocationImage(url=u) for u in images],
    )


def test_lists_grow_without_duplicates():
    existing = InvestigationProgress(
        visited_locations={"L1": visit("2024-03-10", clues=["knife"], images=["a.png"])},
        discovered_clues=["knife"],
    )
    incoming = InvestigationProgress(
        visited_locations={"L1": visit("2024-03-11", clues=["knife", "letter"], images=["a.png", "b.png"])},
        discovered_clues=["letter", "knife"],
    )

    merged = merge_progress(existing, incoming)

    l1 = merged.visited_locations["L1"]
    assert l1.last_visit_date == "2024-03-11"
    assert l1.discovered_clues == ["knife", "letter"]
    assert [i.url for i in l1.generated_images] == ["a.png", "b.png"]
    assert merged.discovered_clues == ["knife", "letter"]


def test_merge_is_idempotent():
    change = InvestigationProgress(
        visited_locations={"L2": visit("2024-03-10", clues=["letter"])},
        discovered_clues=["letter"],
        investigation_findings=[finding("f1")],
    )
    once = merge_progress(InvestigationProgress(), change)
    twice = merge_progress(once, change)

    assert twice == once


def test_sessions_union_by_id():
    session = InterrogationSession(session_id="s1", timestamp="2024-03-10T12:00:00+00:00")
    later = InterrogationSession(session_id="s2", timestamp="2024-03-11T12:00:00+00:00")
    existing = InvestigationProgress(
        interrogated_suspects={"Raj Patel": InterrogationRecord(
            interrogated_at="2024-03-10T12:00:00+00:00", last_interrogation_date="2024-03-10", sessions=[session]
        )}
    )
    incoming = InvestigationProgress(
        interrogated_suspects={"Raj Patel": InterrogationRecord(
            interrogated_at="2024-03-11T12:00:00+00:00", last_interrogation_date="2024-03-11", sessions=[session, later]
        )}
    )

    merged = merge_progress(existing, incoming)

    record = merged.interrogated_suspects["Raj Patel"]
    assert [s.session_id for s in record.sessions] == ["s1", "s2"]
    assert record.last_interrogation_date == "2024-03-11"


def test_seen_findings_stay_seen():
    existing = InvestigationProgress(investigation_findings=[finding("f1", is_new=False), finding("f2")])
    stale = InvestigationProgress(investigation_findings=[finding("f1", is_new=True), finding("f3")])

    merged = merge_progress(existing, stale)

    flags = {f.id: f.is_new for f in merged.investigation_findings}
    assert flags == {"f1": False, "f2": True, "f3": True}


def test_current_day_never_goes_back():
    merged = merge_progress(InvestigationProgress(current_day=3), InvestigationProgress(current_day=2))
    assert merged.current_day == 3
