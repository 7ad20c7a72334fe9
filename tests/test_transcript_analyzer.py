import json

from fakes import ScriptedText, happy_routes, make_story, trigger

from game.models import FindingSource, Importance
from game.transcript_analyzer import analyze_transcript, revealed_trigger_clues, to_findings

TRANSCRIPT = "Detective: Is this your knife?\nRaj Patel: I have never seen it."


def test_analysis_is_parsed():
    story = make_story()
    analysis = analyze_transcript(
        ScriptedText(happy_routes()), TRANSCRIPT, story.get_suspect("Raj Patel"), story, ["A knife was found"]
    )

    assert [f.finding for f in analysis.findings] == ["Raj denies owning the knife"]
    assert analysis.findings[0].importance == Importance.IMPORTANT
    assert analysis.suspicious_answers == ["I have never seen it."]
    assert len(analysis.inconsistencies) == 1


def test_unparseable_analysis_falls_back_to_one_minor_finding():
    story = make_story()
    text = ScriptedText({"analysing an interrogation transcript": "I could not decide."})

    analysis = analyze_transcript(text, TRANSCRIPT, story.get_suspect("Mira Chen"), story)

    assert len(analysis.findings) == 1
    assert analysis.findings[0].importance == Importance.MINOR
    assert analysis.findings[0].finding.startswith("Mira Chen provided responses")


def test_backend_error_falls_back():
    story = make_story()
    text = ScriptedText({"analysing an interrogation transcript": RuntimeError("quota")})

    analysis = analyze_transcript(text, TRANSCRIPT, story.get_suspect("Raj Patel"), story)

    assert analysis.findings[0].finding.endswith("detailed analysis failed")


def test_findings_mapping():
    story = make_story()
    reply = json.dumps(
        {
            "findings": [
                {"finding": "Old news", "importance": "critical", "isNew": False},
                {"finding": "Fresh lead", "importance": "bogus"},
            ],
            "suspiciousAnswers": ["Not me"],
            "inconsistencies": ["Time mismatch"],
        }
    )
    analysis = analyze_transcript(
        ScriptedText({"analysing": reply}), TRANSCRIPT, story.get_suspect("Raj Patel"), story
    )

    findings = to_findings(analysis, "Raj Patel")

    assert [(f.finding, f.importance) for f in findings] == [
        ("Fresh lead", Importance.MINOR),
        ('Suspicious answer: "Not me"', Importance.IMPORTANT),
        ("Inconsistency detected: Time mismatch", Importance.CRITICAL),
    ]
    assert all(f.source == FindingSource.INTERROGATION for f in findings)


def test_revealed_clues_only_match_known_triggers():
    triggers = [trigger("He admits the knife is his"), trigger("He mentions the teapot")]
    text = ScriptedText({"Decide which clues": json.dumps(["he admits the knife is his", "made up"])})

    assert revealed_trigger_clues(text, TRANSCRIPT, triggers) == ["He admits the knife is his"]


def test_revealed_clues_empty_without_triggers_or_on_failure():
    text = ScriptedText({"Decide which clues": "nonsense"})
    assert revealed_trigger_clues(text, TRANSCRIPT, []) == []
    assert text.prompts == []
    assert revealed_trigger_clues(text, TRANSCRIPT, [trigger("x")]) == []
