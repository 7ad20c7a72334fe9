import json

from fakes import SUSPECT_TRIGGERS, WITNESS_TRIGGERS, ScriptedText, happy_routes, make_story

from game.clue_triggers import enrich_with_triggers, suspect_triggers, valid_triggers, witness_triggers


def test_enrich_adds_triggers_to_every_character():
    story = make_story()
    enriched = enrich_with_triggers(story, ScriptedText(happy_routes()))

    assert all(len(s.clues_triggers) == 3 for s in enriched.suspects)
    gus = enriched.witnesses["Kitchen"][0]
    assert [t.clue for t in gus.clues_triggers] == [t["clue"] for t in WITNESS_TRIGGERS]
    assert all(not t.revealed for s in enriched.suspects for t in s.clues_triggers)


def test_enrich_leaves_original_story_untouched():
    story = make_story()
    before = story.get_suspect("Mira Chen").clues_triggers
    enrich_with_triggers(story, ScriptedText(happy_routes()))

    assert story.get_suspect("Mira Chen").clues_triggers == before == []


def test_suspect_fallback_after_invalid_replies():
    story = make_story()
    raj = story.get_suspect("Raj Patel")
    text = ScriptedText({"clue triggers for a suspect": json.dumps(SUSPECT_TRIGGERS[:1])})

    triggers = suspect_triggers(text, raj, story)

    assert text.calls("clue triggers for a suspect") == 3
    assert len(triggers) == 1
    fallback = triggers[0]
    assert fallback.clue == "Raj Patel mentioned something during questioning"
    assert fallback.trigger_type == "pressing"
    assert fallback.trigger_level == 3
    assert fallback.is_red_herring is True


def test_witness_fallback_names_the_location():
    story = make_story()
    gus = story.witnesses["Kitchen"][0]

    triggers = witness_triggers(ScriptedText(), gus, "Kitchen", story)

    assert [t.clue for t in triggers] == ["Gus Ward saw something at Kitchen"]
    assert triggers[0].trigger_type == "sympathetic"
    assert triggers[0].trigger_level == 2


def test_trigger_validation():
    assert valid_triggers(SUSPECT_TRIGGERS, 3, 5)
    assert not valid_triggers(SUSPECT_TRIGGERS, 4, 5)
    bad_level = [dict(SUSPECT_TRIGGERS[0], triggerLevel=6)] + SUSPECT_TRIGGERS[1:]
    assert not valid_triggers(bad_level, 3, 5)
    bad_type = [dict(SUSPECT_TRIGGERS[0], triggerType="bribery")] + SUSPECT_TRIGGERS[1:]
    assert not valid_triggers(bad_type, 3, 5)
