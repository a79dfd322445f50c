"""Nested tree construction and flat exports over a resolved subgraph.

The underlying data is not guaranteed to be acyclic, so every walk here keeps
a visited set and treats a revisit as a stop condition.
"""

from __future__ import annotations

import csv
import io
import json
from typing import Any, Optional

from .models import Person
from .relations import resolve_children

CSV_HEADER = ("ID", "Name", "Gender", "Birth Date", "Parent ID", "Spouse ID")


def count_descendants(person_id: str, subgraph: dict[str, Person], visited: Optional[set[str]] = None) -> int:
    """Number of distinct transitive descendants reachable through ``children`` links."""

    if visited is None:
        visited = {person_id}
    person = subgraph.get(person_id)
    if person is None:
        return 0

    count = 0
    for child in resolve_children(person, subgraph):
        if child.id in visited:
            continue
        visited.add(child.id)
        count += 1 + count_descendants(child.id, subgraph, visited)
    return count


def find_root(subgraph: dict[str, Person]) -> Optional[Person]:
    """Pick the top of the tree.

    1. a person flagged ``is_root``;
    2. among people without ``parent_id``, the one with most descendants;
    3. the first person.
    """

    if not subgraph:
        return None

    for person in subgraph.values():
        if person.is_root:
            return person

    parentless = [p for p in subgraph.values() if not p.parent_id]
    if len(parentless) == 1:
        return parentless[0]
    if parentless:
        # max() keeps the first of equal counts, so ties resolve in subgraph order.
        return max(parentless, key=lambda p: count_descendants(p.id, subgraph))

    return next(iter(subgraph.values()))


def _node(person: Person) -> dict[str, Any]:
    return {
        "id": person.id,
        "name": person.name,
        "gender": person.gender,
        "birth_date": person.birth_date,
        "death_date": person.death_date,
        "photo_url": person.photo_url,
        "bio": person.bio,
        "spouse_id": person.spouse_id if person.spouse_id != person.id else None,
        "spouse": None,
        "children": [],
    }


def _build_node(person: Person, subgraph: dict[str, Person], visited: set[str]) -> dict[str, Any]:
    visited.add(person.id)
    node = _node(person)

    spouse: Optional[Person] = None
    if person.spouse_id and person.spouse_id != person.id:
        candidate = subgraph.get(person.spouse_id)
        if candidate is not None and candidate.id not in visited:
            spouse = candidate
            visited.add(spouse.id)
            spouse_node = _node(spouse)
            spouse_node["spouse_id"] = person.id
            node["spouse"] = spouse_node

    # The spouse is a leaf; their children hang under this node instead.
    children = resolve_children(person, subgraph)
    if spouse is not None:
        own = {c.id for c in children}
        children.extend(c for c in resolve_children(spouse, subgraph) if c.id not in own)

    for child in children:
        if child.id in visited:
            continue
        node["children"].append(_build_node(child, subgraph, visited))
    return node


def build_tree(subgraph: dict[str, Person]) -> Optional[dict[str, Any]]:
    root = find_root(subgraph)
    if root is None:
        return None
    return _build_node(root, subgraph, set())


def export_json(subgraph: dict[str, Person]) -> str:
    return json.dumps(build_tree(subgraph), indent=2)


def flatten(subgraph: dict[str, Person]) -> list[dict[str, Any]]:
    """Every person with their direct relationship ids, independent of any root."""
    return [p.to_dict() for p in subgraph.values()]


def export_flat_json(subgraph: dict[str, Person]) -> str:
    return json.dumps(flatten(subgraph), indent=2)


def export_csv(subgraph: dict[str, Person]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for pid, person in subgraph.items():
        writer.writerow(
            [
                pid,
                person.name,
                person.gender,
                person.birth_date or "",
                person.parent_id or "",
                person.spouse_id or "",
            ]
        )
    return buf.getvalue()
