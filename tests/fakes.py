"""Test doubles for the text, image, voice and storage backends."""

import json
from datetime import datetime, timedelta, timezone

from game.models import (
    CaseMap,
    CaseRecord,
    CaseStatus,
    ClueWithTrigger,
    LocationNode,
    Story,
    Suspect,
    TimelineEvent,
    Victim,
    Witness,
)
from game.clue_classifier import process_story_clues
from services.media_storage import StoredMedia


class ScriptedText:
    """Answers prompts by the first registered phrase they contain.

    A list of replies is consumed in order (the last one repeats); a reply
    that is an Exception instance is raised.
    """

    def __init__(self, routes=None, default=""):
        self.routes = dict(routes or {})
        self.default = default
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        for phrase, reply in self.routes.items():
            if phrase in prompt:
                if isinstance(reply, list):
                    reply = reply.pop(0) if len(reply) > 1 else reply[0]
                if isinstance(reply, Exception):
                    raise reply
                return reply
        return self.default

    def calls(self, phrase):
        return sum(1 for p in self.prompts if phrase in p)


class FakeImages:
    def __init__(self, fail_on=()):
        self.prompts = []
        self.fail_on = fail_on

    def generate_image(self, prompt):
        self.prompts.append(prompt)
        if any(word in prompt for word in self.fail_on):
            return None
        return b"\x89PNG fake"


class FakeStorage:
    def __init__(self):
        self.files = {}

    def upload(self, data, name, folder):
        media_id = f"{folder}/{len(self.files)}_{name}"
        self.files[media_id] = data
        return StoredMedia(url=f"https://media.test/{media_id}", id=media_id)

    def delete(self, media_id):
        return self.files.pop(media_id, None) is not None


class RecordingVoices:
    def __init__(self):
        self.calls = []

    def generate_audio(self, script, voices):
        self.calls.append((script, voices))
        return b"ID3 fake audio"


class MutableClock:
    """UTC clock the test moves by hand."""

    def __init__(self, start=datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


VICTIM = {
    "name": "Elena Voss",
    "profession": "Botanist",
    "lastKnownLocation": "Greenhouse",
    "deathTimeEstimate": "22:15",
    "causeOfDeath": "Poisoned tea",
}

SUSPECTS = [
    {
        "name": "Raj Patel",
        "role": "Lab partner",
        "alibi": "Claims he was in the library",
        "motives": ["Stolen research"],
        "isKiller": True,
        "personality": "Charming and evasive",
    },
    {
        "name": "Mira Chen",
        "role": "Estate manager",
        "alibi": "Balancing accounts",
        "motives": ["Inheritance"],
        "isKiller": False,
        "personality": "Precise",
    },
    {
        "name": "Tom Hale",
        "role": "Gardener",
        "alibi": "Asleep in the cottage",
        "motives": ["Was about to be fired"],
        "isKiller": False,
        "personality": "Gruff",
    },
    {
        "name": "Ada Quinn",
        "role": "Journalist",
        "alibi": "On a phone call",
        "motives": ["A buried story", "Old grudge"],
        "isKiller": False,
        "personality": "Relentless",
    },
]

WORLD = {
    "locations": ["Greenhouse", "Library", "Kitchen"],
    "clues": {
        "Greenhouse": [
            "Detective finds Raj Patel's bloodied knife",
            "Security camera footage shows a figure near the door",
        ],
        "Library": ["A torn letter signed by Mira Chen"],
        "Kitchen": ["A teacup with bitter residue left after dinner ends"],
    },
    "witnesses": {
        "Kitchen": [
            {
                "name": "Gus Ward",
                "role": "Cook",
                "background": "Has worked at the estate for years",
                "testimony": "I saw Raj Patel carry a teapot outside",
                "reliability": "Shaky",
                "hiddenAgenda": "Owes Raj money",
            }
        ]
    },
}

TIMELINE = [
    {"time": "21:00", "event": "Dinner ends"},
    {"time": "22:00", "event": "Raj enters the greenhouse"},
    {"time": "22:15", "event": "Elena collapses"},
]

SUSPECT_TRIGGERS = [
    {
        "clue": "He admits the knife is his",
        "triggerType": "pressing",
        "triggerLevel": 4,
        "triggerDescription": "Confront him with the knife",
        "isRedHerring": False,
        "importance": "critical",
    },
    {
        "clue": "He saw Mira near the library",
        "triggerType": "gentle",
        "triggerLevel": 2,
        "triggerDescription": "Ask kindly about the evening",
        "isRedHerring": True,
        "importance": "minor",
    },
    {
        "clue": "He mentions the teapot",
        "triggerType": "specific_question",
        "triggerLevel": 3,
        "triggerDescription": "Ask about the tea",
        "isRedHerring": False,
        "importance": "important",
    },
]

WITNESS_TRIGGERS = SUSPECT_TRIGGERS[:2]

CONNECTIONS = [
    {"id": "L1", "fullName": "Greenhouse", "connections": ["L2", "L3"]},
    {"id": "L2", "fullName": "Library", "connections": ["L1"]},
    {"id": "L3", "fullName": "Kitchen", "connections": ["L1"]},
]


def happy_routes(**overrides):
    """Routes for a full, valid case generation run."""
    routes = {
        "Create a murder victim profile": json.dumps(VICTIM),
        "detailed suspects for a murder mystery": "Here you go:\n```json\n" + json.dumps(SUSPECTS) + "\n```",
        "Create the locations, clues and witnesses": json.dumps(WORLD),
        "Create the timeline": json.dumps(TIMELINE),
        "Create a title": json.dumps({"title": "Thorns at Midnight"}),
        "clue triggers for a suspect": json.dumps(SUSPECT_TRIGGERS),
        "clue triggers for a witness": json.dumps(WITNESS_TRIGGERS),
        "Suggest logical connections": json.dumps(CONNECTIONS),
        "detective story introduction": "Rain hammered the glass of the greenhouse.",
        "mission briefing": "Elena Voss is dead. Find her killer.",
        "determine if this is typically": "female",
        "Write a realistic interrogation": (
            "Detective Roy: Where were you at ten?\n"
            "Raj Patel: In the library, reading.\n"
            "Detective Roy: Is this your knife?\n"
            "Raj Patel: I have never seen it."
        ),
        "analysing an interrogation transcript": json.dumps(
            {
                "findings": [{"finding": "Raj denies owning the knife", "importance": "important", "isNew": True}],
                "cluesRevealed": [],
                "suspiciousAnswers": ["I have never seen it."],
                "inconsistencies": ["Claims library but was seen at the greenhouse at 22:00"],
            }
        ),
        "Decide which clues an interrogation revealed": json.dumps(["He admits the knife is his", "made up"]),
    }
    routes.update(overrides)
    return routes


def make_story(**overrides):
    data = {
        "title": "Thorns at Midnight",
        "setting": "Victorian Manor",
        "victim": Victim.model_validate(VICTIM),
        "suspects": [
            Suspect.model_validate(
                {**s, "cluesTriggers": SUSPECT_TRIGGERS if s["isKiller"] else []}
            )
            for s in SUSPECTS
        ],
        "killer": "Raj Patel",
        "locations": WORLD["locations"],
        "clues": WORLD["clues"],
        "witnesses": {
            loc: [Witness.model_validate(w) for w in people] for loc, people in WORLD["witnesses"].items()
        },
        "timeline": [TimelineEvent.model_validate(t) for t in TIMELINE],
    }
    data.update(overrides)
    return Story(**data)


def make_case(user_id="player-1", created_at="2024-03-10T12:00:00+00:00", **overrides):
    story = overrides.pop("story", None) or make_story()
    nodes = [
        LocationNode(id=f"L{i + 1}", full_name=name, connections=[f"L{i + 2}"] if i + 1 < len(story.locations) else [])
        for i, name in enumerate(story.locations)
    ]
    fields = dict(
        user_id=user_id,
        title=story.title,
        story=story,
        clues=process_story_clues(story),
        map=CaseMap(nodes=nodes),
        status=CaseStatus.ACTIVE,
        created_at=created_at,
    )
    fields.update(overrides)
    return CaseRecord(**fields)


def trigger(clue, **fields):
    return ClueWithTrigger(clue=clue, **fields)
