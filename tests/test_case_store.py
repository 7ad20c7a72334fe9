import pytest

from fakes import make_case

from game.errors import CaseNotFoundError
from game.models import CaseStatus
from services.case_store import InMemoryCaseStore


@pytest.fixture
def store():
    return InMemoryCaseStore()


def test_create_assigns_id_and_returns_copies(store):
    case_id = store.create_case(make_case())
    assert case_id

    first = store.get_case(case_id)
    first.tags.append("edited")

    assert store.get_case(case_id).tags == []
    assert store.get_case(case_id).id == case_id


def test_update_skips_none_and_validates(store):
    case_id = store.create_case(make_case())

    store.update_case(case_id, status=CaseStatus.COMPLETED, completed_at=None, tags=["mansion"])

    record = store.get_case(case_id)
    assert record.status == CaseStatus.COMPLETED
    assert record.completed_at is None
    assert record.tags == ["mansion"]
    assert record.story.killer == "Raj Patel"


def test_update_rejects_unknown_fields(store):
    case_id = store.create_case(make_case())
    with pytest.raises(ValueError):
        store.update_case(case_id, murderer="Raj")


def test_update_missing_case(store):
    with pytest.raises(CaseNotFoundError):
        store.update_case("missing", title="x")


def test_list_is_per_user_and_newest_first(store):
    older = store.create_case(make_case(created_at="2024-03-01T10:00:00+00:00"))
    newer = store.create_case(make_case(created_at="2024-03-05T10:00:00+00:00"))
    store.create_case(make_case(user_id="someone-else"))

    assert [c.id for c in store.list_cases("player-1")] == [newer, older]

    store.update_case(older, status=CaseStatus.ARCHIVED)
    assert [c.id for c in store.list_cases("player-1", CaseStatus.ARCHIVED)] == [older]


def test_delete(store):
    case_id = store.create_case(make_case())
    assert store.delete_case(case_id)
    assert store.get_case(case_id) is None
    assert not store.delete_case(case_id)
