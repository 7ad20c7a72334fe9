from fakes import make_story

from game.clue_classifier import (
    assign_discovery,
    categorize,
    classify_type,
    find_related_suspects,
    process_story_clues,
)
from game.models import ClueCategory, ClueType, DiscoveryRequirement

NAMES = ["Raj", "Mira", "Tom"]


def test_killer_mention_is_direct_even_with_other_suspects():
    assert categorize("Mira saw Raj leave", "Raj", NAMES) == ClueCategory.DIRECT


def test_other_suspect_mention_is_red_herring():
    assert categorize("A letter from MIRA", "Raj", NAMES) == ClueCategory.RED_HERRING


def test_no_names_is_indirect():
    assert categorize("A broken window", "Raj", NAMES) == ClueCategory.INDIRECT


def test_type_priority_biological_before_digital():
    assert classify_type("Blood on the computer keyboard") == ClueType.BIOLOGICAL_TRACE


def test_type_keywords():
    assert classify_type("Access log from the door") == ClueType.DIGITAL_RECORD
    assert classify_type("The cook heard a scream") == ClueType.WITNESS_TESTIMONY
    assert classify_type("Drag marks on the floor") == ClueType.ENVIRONMENTAL_ANOMALY
    assert classify_type("A silver locket") == ClueType.PHYSICAL_OBJECT


def test_discovery_difficulty_always_in_range():
    for category in ClueCategory:
        for clue_type in ClueType:
            assert 1 <= assign_discovery(category, clue_type).difficulty <= 5


def test_discovery_mechanisms():
    bio = assign_discovery(ClueCategory.INDIRECT, ClueType.BIOLOGICAL_TRACE)
    assert bio.requires == DiscoveryRequirement.FORENSIC_KIT
    assert bio.difficulty == 4
    assert bio.requires_item == "UV Light and Sample Kit"

    digital = assign_discovery(ClueCategory.RED_HERRING, ClueType.DIGITAL_RECORD)
    assert digital.requires == DiscoveryRequirement.HACK
    assert digital.requires_action == "Bypass Security"
    assert digital.difficulty == 2

    testimony = assign_discovery(ClueCategory.INDIRECT, ClueType.WITNESS_TESTIMONY)
    assert testimony.requires_witness_help == "Build Trust"

    env = assign_discovery(ClueCategory.INDIRECT, ClueType.ENVIRONMENTAL_ANOMALY)
    assert env.requires == DiscoveryRequirement.OBSERVATION
    assert env.requires_item == "Environmental Scanner"

    physical = assign_discovery(ClueCategory.DIRECT, ClueType.PHYSICAL_OBJECT)
    assert physical.requires == DiscoveryRequirement.DEEP_SEARCH
    assert physical.difficulty == 5


def test_bloodied_knife_example():
    text = "Detective finds Raj's bloodied knife"
    category = categorize(text, "Raj", ["Raj", "Mira"])
    clue_type = classify_type(text)
    discovery = assign_discovery(category, clue_type)

    assert category == ClueCategory.DIRECT
    assert clue_type == ClueType.BIOLOGICAL_TRACE
    assert discovery.requires == DiscoveryRequirement.FORENSIC_KIT
    assert discovery.difficulty == 5


def test_related_suspects_follow_suspect_order():
    assert find_related_suspects("tom argued with raj and mira", NAMES) == ["Raj", "Mira", "Tom"]


def test_process_story_clues_folds_in_witness_testimony():
    story = make_story()
    processed = process_story_clues(story)

    assert list(processed) == story.locations
    greenhouse = processed["Greenhouse"]
    assert greenhouse[0].category == ClueCategory.DIRECT
    assert greenhouse[0].related_suspects == ["Raj Patel"]
    assert greenhouse[1].type == ClueType.DIGITAL_RECORD

    kitchen = processed["Kitchen"]
    assert kitchen[0].time_relevance == "21:00"
    testimony = kitchen[-1]
    assert testimony.type == ClueType.WITNESS_TESTIMONY
    assert testimony.discovery.requires == DiscoveryRequirement.WITNESS_HELP
    assert testimony.discovery.difficulty == 5
    assert testimony.discovery.requires_witness_help == "Gain Gus Ward's trust (Shaky)"
    assert testimony.witness_info.name == "Gus Ward"


def test_processed_clue_document_uses_wire_names():
    doc = process_story_clues(make_story())["Library"][0].to_document()
    assert doc["category"] == "red_herring"
    assert doc["locationContext"] == "Library"
    assert doc["relatedSuspects"] == ["Mira Chen"]
    assert doc["type"] == "Physical Object"
