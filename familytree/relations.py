"""Per-person relationship view derived from a resolved subgraph.

The schema has no siblings field and no second-parent field, and the
``children`` cache may be stale, so every relationship here combines the
direct field with a reverse scan of the subgraph. Nothing in this module
raises on inconsistent data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from .errors import NotFound
from .models import Person

log = logging.getLogger(__name__)


@dataclass
class RelationshipView:
    person: Person
    parent: Optional[Person] = None
    second_parent: Optional[Person] = None
    spouse: Optional[Person] = None
    children: list[Person] = field(default_factory=list)
    siblings: list[Person] = field(default_factory=list)
    second_parent_candidates: list[Person] = field(default_factory=list)
    repaired_spouse_link: bool = False

    @property
    def parents(self) -> list[Person]:
        return [p for p in (self.parent, self.second_parent) if p is not None]

    def to_dict(self) -> dict[str, Any]:
        def _ref(p: Optional[Person]) -> Optional[dict[str, Any]]:
            if p is None:
                return None
            return {"id": p.id, "name": p.name, "gender": p.gender}

        return {
            "person": _ref(self.person),
            "parent": _ref(self.parent),
            "second_parent": _ref(self.second_parent),
            "spouse": _ref(self.spouse),
            "children": [_ref(c) for c in self.children],
            "siblings": [_ref(s) for s in self.siblings],
            "second_parent_candidates": [_ref(c) for c in self.second_parent_candidates],
            "repaired_spouse_link": self.repaired_spouse_link,
        }


def resolve_parent(person: Person, subgraph: dict[str, Person]) -> Optional[Person]:
    if not person.parent_id or person.parent_id == person.id:
        return None
    return subgraph.get(person.parent_id)


def resolve_children(person: Person, subgraph: dict[str, Person]) -> list[Person]:
    """Union of the ``children`` cache and everyone whose ``parent_id`` is *person*."""

    out: list[Person] = []
    seen: set[str] = {person.id}
    for cid in person.children:
        child = subgraph.get(cid)
        if child is None or cid in seen:
            continue
        seen.add(cid)
        out.append(child)
    for other in subgraph.values():
        if other.parent_id == person.id and other.id not in seen:
            seen.add(other.id)
            out.append(other)
    return out


def resolve_spouse(person: Person, subgraph: dict[str, Person]) -> tuple[Optional[Person], bool]:
    """Return (spouse, repaired).

    Falls back to a reverse lookup when ``spouse_id`` is missing; in that case
    both in-memory records get their ``spouse_id`` filled in so the rest of this
    read sees a symmetric link. Persisting the fix is left to the repair pass.
    """

    if person.spouse_id and person.spouse_id != person.id:
        spouse = subgraph.get(person.spouse_id)
        if spouse is not None:
            return spouse, False

    for other in subgraph.values():
        if other.id != person.id and other.spouse_id == person.id:
            log.info("One-sided spouse link %s -> %s resolved in memory", other.id, person.id)
            if not person.spouse_id or person.spouse_id == person.id:
                person.spouse_id = other.id
            return other, True
    return None, False


def resolve_second_parent(person: Person, parent: Optional[Person], subgraph: dict[str, Person]) -> Optional[Person]:
    """The primary parent's spouse, when that spouse also lists *person* as a child."""

    if parent is None:
        return None
    spouse, _ = resolve_spouse(parent, subgraph)
    if spouse is None or spouse.id == person.id:
        return None
    if person.id in spouse.children:
        return spouse
    return None


def resolve_relationships(person_id: str, subgraph: dict[str, Person]) -> RelationshipView:
    person = subgraph.get(person_id)
    if person is None:
        raise NotFound(person_id)

    parent = resolve_parent(person, subgraph)
    second_parent = resolve_second_parent(person, parent, subgraph)
    spouse, repaired = resolve_spouse(person, subgraph)
    children = resolve_children(person, subgraph)

    siblings: list[Person] = []
    seen: set[str] = {person.id}
    for p in (parent, second_parent):
        if p is None:
            continue
        for sib in resolve_children(p, subgraph):
            if sib.id in seen:
                continue
            seen.add(sib.id)
            siblings.append(sib)

    candidates: list[Person] = []
    if spouse is not None:
        child_ids = {c.id for c in children}
        for other in subgraph.values():
            if other.id in (person.id, spouse.id) or other.id in child_ids:
                continue
            if other.parent_id == spouse.id:
                candidates.append(other)

    return RelationshipView(
        person=person,
        parent=parent,
        second_parent=second_parent,
        spouse=spouse,
        children=children,
        siblings=siblings,
        second_parent_candidates=candidates,
        repaired_spouse_link=repaired,
    )
