"""Person record store: CRUD on person records plus an atomic multi-key batch write.

Every relationship change elsewhere in the package is expressed as one
``batch_update`` call whose keys are paths of the form ``"<person_id>/<field>"``.
A bare ``"<person_id>"`` key mapped to ``None`` deletes that record inside the
same batch.
"""

from __future__ import annotations

import logging
import os
import secrets
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, ContextManager, Iterable, Iterator, Optional

import psycopg

from .db import apply_schema, db_conn
from .errors import InvalidRelationship, NotFound, StorageFailure
from .models import PERSON_FIELDS, Activity, Person, sanitize_attributes

log = logging.getLogger(__name__)

_STORE_ENV = "FAMILYTREE_STORE"

_WRITABLE_FIELDS = PERSON_FIELDS - {"id"}

# Column order used for every person SELECT.
_COLUMNS = (
    "id",
    "name",
    "gender",
    "birth_date",
    "death_date",
    "bio",
    "photo_url",
    "relation",
    "phone",
    "email",
    "education",
    "occupation",
    "address",
    "parent_id",
    "spouse_id",
    "children",
    "created_by",
    "created_at",
    "is_root",
)


def _new_person_id() -> str:
    return secrets.token_hex(10)


def person_path(person_id: str, field_name: str | None = None) -> str:
    if field_name is None:
        return person_id
    return f"{person_id}/{field_name}"


def _split_path(path: str) -> tuple[str, str | None]:
    person_id, _, field_name = str(path).strip("/").partition("/")
    if not person_id:
        raise InvalidRelationship(f"invalid update path: {path!r}")
    return person_id, (field_name or None)


def _normalize_value(field_name: str, value: Any) -> Any:
    if field_name == "children":
        out: list[str] = []
        for cid in value or []:
            if cid and cid not in out:
                out.append(cid)
        return out
    if field_name == "is_root":
        return bool(value)
    return value


def _plan_batch(updates: dict[str, Any]) -> dict[str, dict[str, Any] | None]:
    """Group path updates per person; ``None`` marks a record deletion.

    Raises ``InvalidRelationship`` for malformed paths or unknown fields, before
    anything is written.
    """

    plan: dict[str, dict[str, Any] | None] = {}
    for path, value in updates.items():
        person_id, field_name = _split_path(path)
        if field_name is None:
            if value is not None:
                raise InvalidRelationship(f"whole-record writes are not supported: {path!r}")
            plan[person_id] = None
            continue
        if field_name not in _WRITABLE_FIELDS:
            raise InvalidRelationship(f"unknown person field: {field_name!r}")
        if person_id in plan and plan[person_id] is None:
            raise InvalidRelationship(f"cannot update a record deleted in the same batch: {person_id}")
        plan.setdefault(person_id, {})[field_name] = _normalize_value(field_name, value)
    return plan


class PersonStore(ABC):
    """Keyed person collection with a full-scan primitive and atomic batches."""

    @abstractmethod
    def get_person(self, person_id: str) -> Optional[Person]: ...

    @abstractmethod
    def all_people(self) -> dict[str, Person]:
        """Return a snapshot of every record, keyed by id, in insertion order."""

    @abstractmethod
    def create_person(self, attributes: dict[str, Any]) -> str: ...

    @abstractmethod
    def batch_update(self, updates: dict[str, Any]) -> None: ...

    @abstractmethod
    def delete_person(self, person_id: str) -> bool:
        """Remove the record only; references held by other records are left alone."""

    @abstractmethod
    def record_activity(self, activity: Activity) -> None: ...

    @abstractmethod
    def list_activities(self, limit: int = 50) -> list[Activity]: ...

    def require_person(self, person_id: str) -> Person:
        person = self.get_person(person_id) if person_id else None
        if person is None:
            raise NotFound(person_id)
        return person


class GraphEdit:
    """Field writes collected for one logical relationship change.

    Committed as exactly one ``batch_update``; an empty edit writes nothing.
    """

    def __init__(self) -> None:
        self.updates: dict[str, Any] = {}

    def set(self, person_id: str, field_name: str, value: Any) -> GraphEdit:
        self.updates[person_path(person_id, field_name)] = value
        return self

    def delete(self, person_id: str) -> GraphEdit:
        self.updates[person_path(person_id)] = None
        return self

    def touched_ids(self) -> set[str]:
        return {_split_path(p)[0] for p in self.updates}

    def __bool__(self) -> bool:
        return bool(self.updates)

    def __len__(self) -> int:
        return len(self.updates)

    def commit(self, store: PersonStore) -> bool:
        if not self.updates:
            return False
        store.batch_update(dict(self.updates))
        return True


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class MemoryPersonStore(PersonStore):
    """Dict-backed store; batches are staged on copies and swapped in under a lock."""

    def __init__(self, people: Iterable[Person] | None = None) -> None:
        self._lock = threading.Lock()
        self._people: dict[str, Person] = {}
        self._activities: list[Activity] = []
        for p in people or []:
            self._people[p.id] = p.copy()

    def load(self, person: Person) -> None:
        """Insert a record verbatim, bypassing sanitization (legacy/imported data)."""
        with self._lock:
            self._people[person.id] = person.copy()

    def get_person(self, person_id: str) -> Optional[Person]:
        with self._lock:
            person = self._people.get(person_id)
            return person.copy() if person is not None else None

    def all_people(self) -> dict[str, Person]:
        with self._lock:
            return {pid: p.copy() for pid, p in self._people.items()}

    def create_person(self, attributes: dict[str, Any]) -> str:
        data = sanitize_attributes(attributes)
        data["created_by"] = attributes.get("created_by")
        data["is_root"] = bool(attributes.get("is_root"))
        with self._lock:
            person_id = _new_person_id()
            while person_id in self._people:
                person_id = _new_person_id()
            self._people[person_id] = Person(id=person_id, **data)
        return person_id

    def batch_update(self, updates: dict[str, Any]) -> None:
        plan = _plan_batch(updates)
        with self._lock:
            for person_id in plan:
                if person_id not in self._people:
                    raise NotFound(person_id)

            staged: dict[str, Person | None] = {}
            for person_id, field_updates in plan.items():
                if field_updates is None:
                    staged[person_id] = None
                    continue
                person = self._people[person_id].copy()
                for field_name, value in field_updates.items():
                    setattr(person, field_name, list(value) if isinstance(value, list) else value)
                staged[person_id] = person

            for person_id, person in staged.items():
                if person is None:
                    del self._people[person_id]
                else:
                    self._people[person_id] = person

    def delete_person(self, person_id: str) -> bool:
        with self._lock:
            return self._people.pop(person_id, None) is not None

    def record_activity(self, activity: Activity) -> None:
        with self._lock:
            self._activities.append(activity)

    def list_activities(self, limit: int = 50) -> list[Activity]:
        with self._lock:
            # Later entries win timestamp ties.
            recent = sorted(reversed(self._activities), key=lambda a: a.timestamp, reverse=True)
            return recent[:limit]


# ---------------------------------------------------------------------------
# Postgres backend
# ---------------------------------------------------------------------------


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    try:
        yield
    except psycopg.Error as e:
        log.warning("Storage failure during %s: %s", action, e)
        raise StorageFailure(f"storage backend failed during {action}") from e


def _row_to_person(row: tuple[Any, ...]) -> Person:
    data = dict(zip(_COLUMNS, row))
    return Person.from_dict(data)


class PostgresPersonStore(PersonStore):
    """``person`` table in Postgres; each batch runs inside one transaction."""

    def __init__(self, connect: Callable[[], ContextManager[psycopg.Connection]] = db_conn) -> None:
        self._connect = connect

    def ensure_schema(self) -> None:
        with _storage_errors("ensure_schema"), self._connect() as conn:
            apply_schema(conn)

    def get_person(self, person_id: str) -> Optional[Person]:
        with _storage_errors("get_person"), self._connect() as conn:
            row = conn.execute(
                f"SELECT {', '.join(_COLUMNS)} FROM person WHERE id = %s",
                (person_id,),
            ).fetchone()
        return _row_to_person(tuple(row)) if row else None

    def all_people(self) -> dict[str, Person]:
        with _storage_errors("all_people"), self._connect() as conn:
            rows = conn.execute(
                f"SELECT {', '.join(_COLUMNS)} FROM person ORDER BY created_at, id"
            ).fetchall()
        out: dict[str, Person] = {}
        for r in rows:
            person = _row_to_person(tuple(r))
            out[person.id] = person
        return out

    def create_person(self, attributes: dict[str, Any]) -> str:
        data = sanitize_attributes(attributes)
        data["created_by"] = attributes.get("created_by")
        data["is_root"] = bool(attributes.get("is_root"))
        person_id = _new_person_id()
        columns = ["id", *data.keys()]
        placeholders = ", ".join(["%s"] * len(columns))
        with _storage_errors("create_person"), self._connect() as conn:
            conn.execute(
                f"INSERT INTO person ({', '.join(columns)}) VALUES ({placeholders})",
                (person_id, *data.values()),
            )
        return person_id

    def batch_update(self, updates: dict[str, Any]) -> None:
        plan = _plan_batch(updates)
        if not plan:
            return
        with _storage_errors("batch_update"), self._connect() as conn:
            with conn.transaction():
                found = {
                    r[0]
                    for r in conn.execute(
                        "SELECT id FROM person WHERE id = ANY(%s) FOR UPDATE",
                        (list(plan.keys()),),
                    ).fetchall()
                }
                for person_id in plan:
                    if person_id not in found:
                        raise NotFound(person_id)

                for person_id, field_updates in plan.items():
                    if field_updates is None:
                        conn.execute("DELETE FROM person WHERE id = %s", (person_id,))
                        continue
                    # Field names were checked against the Person dataclass in _plan_batch.
                    set_clause = ", ".join(f"{k} = %s" for k in field_updates)
                    conn.execute(
                        f"UPDATE person SET {set_clause} WHERE id = %s",
                        (*field_updates.values(), person_id),
                    )

    def delete_person(self, person_id: str) -> bool:
        with _storage_errors("delete_person"), self._connect() as conn:
            cur = conn.execute("DELETE FROM person WHERE id = %s", (person_id,))
            return cur.rowcount > 0

    def record_activity(self, activity: Activity) -> None:
        with _storage_errors("record_activity"), self._connect() as conn:
            conn.execute(
                """
                INSERT INTO activity (user_id, action, entity_id, details, created_at)
                VALUES (%s, %s, %s, %s, %s)
                """.strip(),
                (activity.user_id, activity.action, activity.entity_id, activity.details, activity.timestamp),
            )

    def list_activities(self, limit: int = 50) -> list[Activity]:
        with _storage_errors("list_activities"), self._connect() as conn:
            rows = conn.execute(
                """
                SELECT user_id, action, entity_id, details, created_at
                FROM activity
                ORDER BY created_at DESC, id DESC
                LIMIT %s
                """.strip(),
                (limit,),
            ).fetchall()
        return [
            Activity(user_id=u, action=a, entity_id=e, details=d or "", timestamp=int(t or 0))
            for (u, a, e, d, t) in rows
        ]


# ---------------------------------------------------------------------------
# Backend selection
# ---------------------------------------------------------------------------

_memory_store: MemoryPersonStore | None = None
_memory_lock = threading.Lock()
_schema_ready = False


def get_store() -> PersonStore:
    """Return the configured store (FastAPI dependency).

    ``FAMILYTREE_STORE=postgres`` uses ``DATABASE_URL``; the default is a
    process-wide in-memory store.
    """
    global _memory_store, _schema_ready

    backend = os.environ.get(_STORE_ENV, "memory").strip().lower()
    if backend == "postgres":
        store = PostgresPersonStore()
        if not _schema_ready:
            store.ensure_schema()
            _schema_ready = True
        return store
    if backend != "memory":
        raise RuntimeError(f"{_STORE_ENV} must be 'memory' or 'postgres', got {backend!r}")

    with _memory_lock:
        if _memory_store is None:
            _memory_store = MemoryPersonStore()
        return _memory_store
