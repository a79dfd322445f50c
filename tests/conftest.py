from __future__ import annotations

from datetime import date
from typing import Any, Callable

import pytest

from familytree.models import Person
from familytree.store import MemoryPersonStore


@pytest.fixture()
def fixed_today() -> date:
    # Keep tests deterministic.
    return date(2026, 1, 20)


@pytest.fixture()
def store() -> MemoryPersonStore:
    return MemoryPersonStore()


@pytest.fixture()
def load(store: MemoryPersonStore) -> Callable[..., Person]:
    """Insert a raw record with a fixed id, bypassing sanitization (simulates legacy data)."""

    def _load(person_id: str, name: str | None = None, **fields: Any) -> Person:
        person = Person(id=person_id, name=name or person_id, **fields)
        store.load(person)
        return person

    return _load


class _FakeState:
    """Minimal stand-in for starlette's request.state."""


class _FakeRequest:
    """Minimal stand-in for a FastAPI/Starlette Request."""

    def __init__(self, user: dict | None = None) -> None:
        self.state = _FakeState()
        if user is not None:
            self.state.user = user


@pytest.fixture()
def make_request() -> Callable[..., _FakeRequest]:
    def _make(user_id: str | None = "user1") -> _FakeRequest:
        if user_id is None:
            return _FakeRequest()
        return _FakeRequest(user={"id": user_id, "name": user_id, "email": ""})

    return _make
