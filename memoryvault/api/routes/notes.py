"""Notes CRUD routes."""

from fastapi import APIRouter, HTTPException, status

from memoryvault.api.deps import Notes
from memoryvault.schemas.notes import NoteCreate, NoteRead, NoteUpdate

router = APIRouter(prefix="/notes", tags=["notes"])


@router.get("", response_model=list[NoteRead])
async def list_notes(notes: Notes, q: str | None = None) -> list[NoteRead]:
    """
    List notes, newest first.

    Filters:
    - q: Case-insensitive search in title, content and tags
    """
    return await notes.list_notes(q.strip() if q else None)


@router.post("", response_model=NoteRead, status_code=status.HTTP_201_CREATED)
async def create_note(data: NoteCreate, notes: Notes) -> NoteRead:
    """Create a note.

    Attachments are promoted into permanent storage first. An attachment that
    cannot be promoted is dropped and the note is saved without it.
    """
    return await notes.create_note(data)


@router.get("/{note_id}", response_model=NoteRead)
async def get_note(note_id: int, notes: Notes) -> NoteRead:
    """Get a specific note by ID."""
    note = await notes.get_note(note_id)
    if note is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    return note


@router.patch("/{note_id}", response_model=NoteRead)
async def update_note(note_id: int, data: NoteUpdate, notes: Notes) -> NoteRead:
    """Update a note. Media the note no longer references is deleted."""
    note = await notes.update_note(note_id, data)
    if note is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    return note


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(note_id: int, notes: Notes) -> None:
    """Delete a note and its media. Deleting a missing note is not an error."""
    await notes.delete_note(note_id)
