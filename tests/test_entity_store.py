"""Tests for the entity store."""

from datetime import datetime

import pytest

from memoryvault.db.models import MessageType
from memoryvault.errors import StoreError, StoreErrorReason
from memoryvault.services.entity_store import EntityStore


async def test_operations_before_initialize_fail(settings):
    store = EntityStore(settings.database_url)

    with pytest.raises(StoreError) as exc_info:
        await store.list_notes()

    assert exc_info.value.reason == StoreErrorReason.NOT_INITIALIZED.value


async def test_initialize_is_idempotent(store, make_note):
    note = await make_note()

    await store.initialize()

    assert await store.get_note(note.id) == note


async def test_closed_store_must_be_initialized_again(store):
    await store.close()

    with pytest.raises(StoreError):
        await store.get_user()

    await store.initialize()
    assert await store.get_user() is None


async def test_only_one_user_can_exist(store):
    user = await store.create_user("Ada", "ada@example.com")

    with pytest.raises(StoreError) as exc_info:
        await store.create_user("Grace")

    assert exc_info.value.reason == StoreErrorReason.CONSTRAINT_VIOLATION.value
    assert await store.get_user() == user


async def test_media_flags_follow_paths(store):
    note = await store.create_note(
        title="Beach", content="Sand everywhere", audio_path="/m/a.m4a", image_paths=["/m/1.jpg", "/m/2.jpg"]
    )
    assert note.has_audio and note.audio_path == "/m/a.m4a"
    assert note.has_images and note.image_paths == ["/m/1.jpg", "/m/2.jpg"]

    updated = await store.update_note(
        note.id, title="Beach", content="Sand everywhere", tags=[], audio_path=None, image_paths=[]
    )
    assert updated.has_audio is False and updated.audio_path is None
    assert updated.has_images is False and updated.image_paths == []


async def test_tags_keep_their_order(store):
    note = await store.create_note(title="Trip", content="Rome", tags=["b", "a"])

    assert (await store.get_note(note.id)).tags == ["b", "a"]


async def test_list_notes_newest_first(make_note, store):
    first = await make_note()
    second = await make_note()
    same_day = await store.create_note(title="Twin", content="x", timestamp=second.timestamp)

    ids = [n.id for n in await store.list_notes()]

    assert ids == [same_day.id, second.id, first.id]
    assert await store.count_notes() == 3


async def test_update_missing_note_returns_none(store):
    assert await store.update_note(42, title="x", content="y", tags=[], audio_path=None, image_paths=[]) is None


async def test_update_can_move_timestamp(store, make_note):
    note = await make_note()

    updated = await store.update_note(
        note.id, title=note.title, content=note.content, tags=note.tags,
        audio_path=None, image_paths=[], timestamp=datetime(2020, 2, 2),
    )

    assert updated.timestamp == datetime(2020, 2, 2)


async def test_search_covers_title_content_and_tags(make_note, store):
    by_title = await make_note(title="Grandma's Kitchen")
    by_content = await make_note(content="We baked bread in the KITCHEN")
    by_tag = await make_note(tags=["kitchen"])
    await make_note(title="Garden", content="Tomatoes")

    found = await store.search_notes("kitchen")

    assert [n.id for n in found] == [by_tag.id, by_content.id, by_title.id]


async def test_search_treats_wildcards_and_json_syntax_literally(make_note, store):
    tagged = await make_note(tags=["family", "summer"])
    percent = await make_note(title="Saved 50% on the tickets")
    await make_note(title="Plain day", content="Nothing special")

    assert await store.search_notes('"') == []
    assert await store.search_notes("[") == []
    assert await store.search_notes("_") == []
    assert [n.id for n in await store.search_notes("%")] == [percent.id]
    assert [n.id for n in await store.search_notes("SUMM")] == [tagged.id]


async def test_get_notes_by_ids_skips_missing(make_note, store):
    a = await make_note()
    b = await make_note()

    found = await store.get_notes_by_ids([b.id, 999, a.id, b.id])

    assert sorted(n.id for n in found) == [a.id, b.id]
    assert await store.get_notes_by_ids([]) == []


async def test_delete_note_is_idempotent(make_note, store):
    note = await make_note()

    deleted = await store.delete_note(note.id)

    assert deleted.id == note.id
    assert await store.get_note(note.id) is None
    assert await store.delete_note(note.id) is None


async def test_chat_session_is_reused(store):
    user = await store.create_user("Ada")

    first = await store.get_or_create_chat_session(user.id)
    second = await store.get_or_create_chat_session(user.id)

    assert first.id == second.id


async def test_messages_resolve_surviving_notes(make_note, store):
    user = await store.create_user("Ada")
    session = await store.get_or_create_chat_session(user.id)
    kept = await make_note()
    gone = await make_note()

    await store.save_message(session.id, MessageType.USER, "What did I do?")
    saved = await store.save_message(session.id, "assistant", "This", note_ids=[gone.id, kept.id])
    assert [n.id for n in saved.notes] == [gone.id, kept.id]

    await store.delete_note(gone.id)
    messages = await store.get_messages_for_session(session.id)

    assert [m.type for m in messages] == ["user", "assistant"]
    assert messages[1].referenced_note_ids == [gone.id, kept.id]
    assert [n.id for n in messages[1].notes] == [kept.id]


async def test_message_images_set_flag(store):
    user = await store.create_user("Ada")
    session = await store.get_or_create_chat_session(user.id)

    message = await store.save_message(session.id, MessageType.USER, "look", image_paths=["/m/p.jpg"])

    assert message.has_images and message.image_paths == ["/m/p.jpg"]


async def test_unknown_message_type_is_rejected(store):
    user = await store.create_user("Ada")
    session = await store.get_or_create_chat_session(user.id)

    with pytest.raises(ValueError):
        await store.save_message(session.id, "system", "hi")


async def test_message_for_missing_session_violates_constraint(store):
    with pytest.raises(StoreError) as exc_info:
        await store.save_message(999, MessageType.USER, "hi")

    assert exc_info.value.reason == StoreErrorReason.CONSTRAINT_VIOLATION.value
