"""Relationship mutations.

Each operation validates its operands first and then commits exactly one
``GraphEdit``, so a single logical change is never left half-written.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from .errors import InvalidRelationship
from .models import Person
from .store import GraphEdit, PersonStore

log = logging.getLogger(__name__)


class RelationshipKind(str, Enum):
    PARENT_CHILD = "parent-child"
    SPOUSE = "spouse"
    SECOND_PARENT = "second-parent"


def parse_kind(kind: str | RelationshipKind) -> RelationshipKind:
    try:
        return RelationshipKind(kind)
    except ValueError:
        raise InvalidRelationship(f"unknown relationship kind: {kind!r}") from None


def _require_distinct(*ids: str) -> None:
    if any(not pid for pid in ids):
        raise InvalidRelationship("missing person id")
    if len(set(ids)) != len(ids):
        raise InvalidRelationship("a person cannot be related to themselves")


def _with_child(children: list[str], child_id: str) -> list[str]:
    return children if child_id in children else [*children, child_id]


def _without(children: list[str], child_id: str) -> list[str]:
    return [c for c in children if c != child_id]


def create_person(store: PersonStore, attributes: dict[str, Any], created_by: str | None = None) -> Person:
    """Create an unlinked person.

    Relationship fields in *attributes* are ignored; links are made by the
    follow-up mutations below. ``is_root`` is set only for the first person a
    user authors.
    """
    if not str(attributes.get("name") or "").strip():
        raise InvalidRelationship("a person needs a name")

    is_root = False
    if created_by:
        is_root = not any(p.created_by == created_by for p in store.all_people().values())

    person_id = store.create_person({**attributes, "created_by": created_by, "is_root": is_root})
    log.info("Created person %s (root=%s) for user %s", person_id, is_root, created_by)
    return store.require_person(person_id)


def set_parent_child(store: PersonStore, parent_id: str, child_id: str) -> None:
    """Point the child's ``parent_id`` at the parent and mirror it in ``parent.children``.

    A child moved away from another primary parent is dropped from that
    parent's ``children`` in the same edit.
    """
    _require_distinct(parent_id, child_id)
    parent = store.require_person(parent_id)
    child = store.require_person(child_id)

    edit = GraphEdit()
    edit.set(child_id, "parent_id", parent_id)
    edit.set(parent_id, "children", _with_child(parent.children, child_id))
    previous = store.get_person(child.parent_id) if child.parent_id not in (None, parent_id, child_id) else None
    if previous is not None and child_id in previous.children:
        edit.set(previous.id, "children", _without(previous.children, child_id))
    edit.commit(store)
    log.info("Set parent %s for child %s", parent_id, child_id)


def _spouse_link(edit: GraphEdit, a_id: str, b_id: str) -> None:
    edit.set(a_id, "spouse_id", b_id)
    edit.set(b_id, "spouse_id", a_id)
    edit.set(a_id, "relation", "spouse")
    edit.set(b_id, "relation", "spouse")


def set_spouse(store: PersonStore, a_id: str, b_id: str) -> None:
    """Link two people as spouses on both sides. An existing link is overwritten."""
    _require_distinct(a_id, b_id)
    store.require_person(a_id)
    store.require_person(b_id)

    edit = GraphEdit()
    _spouse_link(edit, a_id, b_id)
    edit.commit(store)
    log.info("Set spouse relationship between %s and %s", a_id, b_id)


def add_second_parent(store: PersonStore, child_id: str, first_parent_id: str, second_parent_id: str) -> None:
    """Attach a second parent through the first parent's spouse link.

    The child's single ``parent_id`` slot keeps pointing at the first parent
    (adopting it if the child had none); the second parent lists the child in
    its ``children`` and is spouse-linked to the first parent.
    """
    _require_distinct(child_id, first_parent_id, second_parent_id)
    child = store.require_person(child_id)
    first = store.require_person(first_parent_id)
    second = store.require_person(second_parent_id)

    edit = GraphEdit()
    edit.set(second_parent_id, "children", _with_child(second.children, child_id))
    _spouse_link(edit, first_parent_id, second_parent_id)
    if not child.parent_id:
        edit.set(child_id, "parent_id", first_parent_id)
        edit.set(first_parent_id, "children", _with_child(first.children, child_id))
    edit.commit(store)
    log.info("Added second parent %s to child %s (primary %s)", second_parent_id, child_id, first_parent_id)


def remove_relationship(
    store: PersonStore,
    kind: str | RelationshipKind,
    member_id1: str,
    member_id2: str,
) -> bool:
    """Remove one relationship; returns False when it was not there.

    - ``parent-child``: *member_id1* is the parent, *member_id2* the child.
    - ``spouse``: order does not matter.
    - ``second-parent``: *member_id1* is the second parent, *member_id2* the child.
    """
    rel = parse_kind(kind)
    _require_distinct(member_id1, member_id2)
    m1 = store.require_person(member_id1)
    m2 = store.require_person(member_id2)

    edit = GraphEdit()
    if rel is RelationshipKind.PARENT_CHILD:
        if member_id2 in m1.children:
            edit.set(member_id1, "children", _without(m1.children, member_id2))
        if m2.parent_id == member_id1:
            edit.set(member_id2, "parent_id", None)

    elif rel is RelationshipKind.SPOUSE:
        if m1.spouse_id == member_id2:
            edit.set(member_id1, "spouse_id", None)
        if m2.spouse_id == member_id1:
            edit.set(member_id2, "spouse_id", None)

    else:
        if member_id2 in m1.children:
            edit.set(member_id1, "children", _without(m1.children, member_id2))
        primary = store.get_person(m2.parent_id) if m2.parent_id else None
        if primary is not None and primary.id != member_id1 and primary.spouse_id == member_id1:
            edit.set(primary.id, "spouse_id", None)
            if m1.spouse_id == primary.id:
                edit.set(member_id1, "spouse_id", None)

    changed = edit.commit(store)
    if changed:
        log.info("Removed %s relationship between %s and %s", rel.value, member_id1, member_id2)
    else:
        log.info("No %s relationship between %s and %s to remove", rel.value, member_id1, member_id2)
    return changed


def link_siblings(store: PersonStore, a_id: str, b_id: str) -> bool:
    """Make two people siblings by giving them the same primary parent.

    Siblings are never stored, so the only way to express the link is through a
    shared parent. Returns False when they already share one.
    """
    _require_distinct(a_id, b_id)
    a = store.require_person(a_id)
    b = store.require_person(b_id)

    if a.parent_id and b.parent_id:
        if a.parent_id == b.parent_id:
            return False
        raise InvalidRelationship("both people already have different parents")
    if not a.parent_id and not b.parent_id:
        raise InvalidRelationship("at least one sibling needs a parent first")

    if a.parent_id:
        set_parent_child(store, a.parent_id, b_id)
    else:
        set_parent_child(store, b.parent_id, a_id)
    return True


def delete_person_detached(store: PersonStore, person_id: str) -> int:
    """Delete a person and clear every reference to them in the same batch.

    Returns the number of other records that were detached.
    """
    store.require_person(person_id)

    edit = GraphEdit()
    detached: set[str] = set()
    for other in store.all_people().values():
        if other.id == person_id:
            continue
        if other.parent_id == person_id:
            edit.set(other.id, "parent_id", None)
            detached.add(other.id)
        if other.spouse_id == person_id:
            edit.set(other.id, "spouse_id", None)
            detached.add(other.id)
        if person_id in other.children:
            edit.set(other.id, "children", _without(other.children, person_id))
            detached.add(other.id)
    edit.delete(person_id)
    edit.commit(store)
    log.info("Deleted person %s, detached %d related records", person_id, len(detached))
    return len(detached)
