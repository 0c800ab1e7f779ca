"""Tests for note saving with media."""

from pathlib import Path

import pytest

from memoryvault.schemas.notes import NoteCreate, NoteUpdate
from memoryvault.services.notes import NoteService


@pytest.fixture
def notes(store, media) -> NoteService:
    return NoteService(store, media)


@pytest.fixture
def capture(tmp_path):
    path = tmp_path / "capture"
    path.mkdir()
    for name in ("one.jpg", "two.jpg", "voice.m4a"):
        (path / name).write_bytes(name.encode())
    return path


async def test_create_promotes_media_before_saving(notes, media, capture):
    note = await notes.create_note(
        NoteCreate(
            title="  Picnic ",
            content="Lemonade in the park",
            tags="summer, , family",
            audio_uri=str(capture / "voice.m4a"),
            image_uris=[str(capture / "one.jpg")],
        )
    )

    assert note.title == "Picnic"
    assert note.tags == ["summer", "family"]
    assert note.has_audio and media.is_permanent(note.audio_path)
    assert note.has_images and all(media.is_permanent(p) for p in note.image_paths)
    assert not (capture / "voice.m4a").exists()
    assert (capture / "one.jpg").exists()


async def test_failed_attachment_does_not_block_save(notes, capture):
    note = await notes.create_note(
        NoteCreate(title="Lake", content="Cold water", image_uris=["content://gallery/7", str(capture / "two.jpg")])
    )

    assert len(note.image_paths) == 1
    assert note.has_images


async def test_update_removes_orphaned_media(notes, capture):
    note = await notes.create_note(
        NoteCreate(
            title="Lake",
            content="Cold water",
            audio_uri=str(capture / "voice.m4a"),
            image_uris=[str(capture / "one.jpg")],
        )
    )
    old_image, old_audio = note.image_paths[0], note.audio_path

    updated = await notes.update_note(
        note.id, NoteUpdate(audio_uri=None, image_uris=[str(capture / "two.jpg")])
    )

    assert updated.audio_path is None and not updated.has_audio
    assert updated.image_paths != [old_image]
    assert not Path(old_image).exists()
    assert not Path(old_audio).exists()
    assert Path(updated.image_paths[0]).exists()


async def test_update_keeps_permanent_media(notes, capture):
    note = await notes.create_note(
        NoteCreate(title="Lake", content="Cold water", image_uris=[str(capture / "one.jpg")])
    )

    updated = await notes.update_note(note.id, NoteUpdate(content="Very cold water", tags=["swim"]))

    assert updated.image_paths == note.image_paths
    assert updated.content == "Very cold water"
    assert updated.tags == ["swim"]
    assert updated.title == "Lake"
    assert Path(note.image_paths[0]).exists()

    kept = await notes.update_note(note.id, NoteUpdate(image_uris=note.image_paths))
    assert kept.image_paths == note.image_paths


async def test_notes_never_share_a_media_file(notes, capture):
    first = await notes.create_note(
        NoteCreate(title="Lake", content="Cold water", image_uris=[str(capture / "one.jpg")])
    )
    second = await notes.create_note(
        NoteCreate(title="Lake again", content="Same photo", image_uris=first.image_paths)
    )
    third = await notes.create_note(NoteCreate(title="Beach", content="Sand"))
    third = await notes.update_note(
        third.id, NoteUpdate(image_uris=[*first.image_paths, str(capture / "two.jpg")])
    )

    assert second.image_paths[0] != first.image_paths[0]
    assert first.image_paths[0] not in third.image_paths

    await notes.delete_note(first.id)

    assert Path(second.image_paths[0]).read_bytes() == b"one.jpg"
    assert all(Path(p).exists() for p in third.image_paths)


async def test_update_missing_note(notes):
    assert await notes.update_note(123, NoteUpdate(title="x")) is None


async def test_delete_removes_row_and_media(notes, capture):
    note = await notes.create_note(
        NoteCreate(title="Lake", content="Cold water", image_uris=[str(capture / "one.jpg")])
    )

    assert await notes.delete_note(note.id) is True
    assert await notes.get_note(note.id) is None
    assert not Path(note.image_paths[0]).exists()
    assert await notes.delete_note(note.id) is False


async def test_list_notes_with_query(notes, capture):
    await notes.create_note(NoteCreate(title="Lake", content="Cold water"))
    await notes.create_note(NoteCreate(title="Desert", content="Hot sand"))

    assert [n.title for n in await notes.list_notes("WATER")] == ["Lake"]
    assert len(await notes.list_notes()) == 2
