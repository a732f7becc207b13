import pytest
from mongomock_motor import AsyncMongoMockClient

from errors import InvalidInputError, NotFoundError
from schemas import Message
from storage import MemoryStorage, MongoStorage


@pytest.fixture(params=["memory", "mongodb"])
async def store(request):
    if request.param == "memory":
        return MemoryStorage()
    mongo = MongoStorage(AsyncMongoMockClient()["gita_test"])
    await mongo.init()
    return mongo


async def test_create_then_get_is_empty(store):
    await store.create_conversation("abc")
    conversation = await store.get_conversation("abc")
    assert conversation.session_id == "abc"
    assert conversation.messages == []
    assert conversation.current_step == 0
    assert conversation.progress_percentage == 0
    assert conversation.selected_verse_id is None


async def test_create_is_idempotent(store):
    first = await store.create_conversation("abc")
    await store.update_conversation("abc", current_step=3)
    second = await store.create_conversation("abc")
    third = await store.create_conversation("abc")
    assert second.id == first.id == third.id
    assert second.current_step == 3


async def test_distinct_sessions_get_distinct_ids(store):
    a = await store.create_conversation("a")
    b = await store.create_conversation("b")
    assert a.id != b.id


async def test_get_unknown_session(store):
    assert await store.get_conversation("missing") is None


async def test_update_unknown_session_never_creates(store):
    with pytest.raises(NotFoundError):
        await store.update_conversation("missing", current_step=1)
    assert await store.get_conversation("missing") is None


async def test_update_replaces_messages(store):
    await store.create_conversation("abc")
    await store.update_conversation("abc", messages=[Message(role="user", content="one")])
    updated = await store.update_conversation(
        "abc",
        messages=[Message(role="user", content="two"), Message(role="user", content="three")],
        progress_percentage=40,
    )
    assert [m.content for m in updated.messages] == ["two", "three"]
    assert updated.progress_percentage == 40
    assert (await store.get_conversation("abc")).messages[1].content == "three"


async def test_update_rejects_unknown_fields(store):
    await store.create_conversation("abc")
    with pytest.raises(InvalidInputError):
        await store.update_conversation("abc", id=7)
    with pytest.raises(InvalidInputError):
        await store.update_conversation("abc", created_at=None)
    assert (await store.get_conversation("abc")).id != 7


async def test_returned_conversation_is_a_copy(store):
    conversation = await store.create_conversation("abc")
    conversation.messages.append(Message(role="user", content="not saved"))
    assert (await store.get_conversation("abc")).messages == []


async def test_chapters_ordered_by_number(store):
    chapters = await store.list_chapters()
    assert [c.chapter_number for c in chapters] == [1, 2]
    assert (await store.get_chapter(2)).title == "Contents of the Gita Summarized"
    assert await store.get_chapter(99) is None


async def test_get_verse(store):
    verse = await store.get_verse(1)
    assert verse.verse_number == 47
    assert verse.word_meanings[0].sanskrit == "karmani"
    assert verse.word_meanings[0].english == "in prescribed duties"
    assert await store.get_verse(999) is None


async def test_verses_by_chapter(store):
    verses = await store.list_verses_by_chapter(2)
    assert [v.verse_number for v in verses] == [13, 20, 47]
    assert await store.list_verses_by_chapter(1) == []


async def test_search_soul_finds_birth_and_death_verse(store):
    results = await store.search_verses("soul")
    assert 20 in [v.verse_number for v in results]


async def test_search_is_case_insensitive_and_ordered_by_id(store):
    results = await store.search_verses("SOUL")
    ids = [v.id for v in results]
    assert ids == sorted(ids)
    assert len(ids) == 2


async def test_search_matches_transliteration_and_purport(store):
    assert [v.verse_number for v in await store.search_verses("karma")] == [47]
    assert [v.verse_number for v in await store.search_verses("atomic fragmental")] == [20]


async def test_search_no_match(store):
    assert await store.search_verses("nonexistent-term-xyz") == []


async def test_search_blank_query_returns_nothing(store):
    assert await store.search_verses("") == []
    assert await store.search_verses("   ") == []


async def test_search_treats_query_literally(store):
    assert await store.search_verses(".*") == []


async def test_mongo_seed_runs_once():
    db = AsyncMongoMockClient()["gita_seed"]
    await MongoStorage(db).init()
    await MongoStorage(db).init()
    assert await db["verse"].count_documents({}) == 3
    assert await db["chapter"].count_documents({}) == 2


class RecordingClient:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


def test_mongo_close_releases_client():
    client = RecordingClient()
    store = MongoStorage(AsyncMongoMockClient()["gita_close"], client=client)
    store.close()
    store.close()
    assert client.closed is True
    assert store.client is None
