"""Shared fixtures: canned transports, a callback spy and a small notes API."""

from unittest.mock import Mock

import httpx
import pytest
from fastapi import FastAPI, HTTPException

from safer_httpx.config import get_settings

from tests.schemas import NoteIn


@pytest.fixture(autouse=True)
def fresh_settings():
    """Settings are cached; tests that patch the environment need a clean cache."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def callback():
    return Mock(name="validation_callback")


@pytest.fixture
def reply():
    """Build a MockTransport answering every request with a fixed JSON body.

    Returns (transport, calls) where calls collects the requests that reached
    the transport.
    """
    def factory(payload, status_code: int = 200, headers: dict = None):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(status_code, json=payload, headers=headers)

        return httpx.MockTransport(handler), calls

    return factory


@pytest.fixture
def notes_app() -> FastAPI:
    app = FastAPI()
    notes = {1: "Dan"}

    @app.post("/notes")
    async def create_note(body: NoteIn):
        note_id = max(notes) + 1
        notes[note_id] = body.note
        return {"id": note_id, "note": body.note}

    @app.get("/notes/{note_id}")
    async def get_note(note_id: int):
        if note_id == 13:
            return {"id": 13}  # Broken record: no note text
        if note_id not in notes:
            raise HTTPException(status_code=404, detail="Note not found")
        return {"id": note_id, "note": notes[note_id]}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


@pytest.fixture
def asgi_transport(notes_app) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=notes_app)
