from __future__ import annotations

import logging
from typing import Iterable

from .models import Person
from .store import PersonStore

log = logging.getLogger(__name__)


def _forward_targets(person: Person) -> list[str]:
    out: list[str] = []
    if person.parent_id:
        out.append(person.parent_id)
    if person.spouse_id:
        out.append(person.spouse_id)
    out.extend(c for c in person.children if c)
    return out


def build_reverse_index(people: dict[str, Person]) -> dict[str, set[str]]:
    """Return target_id -> ids of people whose parent/spouse/children reference it."""

    reverse: dict[str, set[str]] = {}
    for pid, person in people.items():
        for target in _forward_targets(person):
            if target == pid:
                continue
            reverse.setdefault(target, set()).add(pid)
    return reverse


def _fetch_neighbors(
    people: dict[str, Person],
    reverse: dict[str, set[str]],
    node_ids: list[str],
) -> dict[str, list[str]]:
    """Undirected neighbours: forward links plus reverse references, existing records only."""

    out: dict[str, list[str]] = {nid: [] for nid in node_ids}
    for nid in node_ids:
        person = people.get(nid)
        if person is None:
            continue
        seen: set[str] = set()
        for nb in [*_forward_targets(person), *sorted(reverse.get(nid, ()))]:
            if nb == nid or nb in seen or nb not in people:
                continue
            seen.add(nb)
            out[nid].append(nb)
    return out


def connected_component(people: dict[str, Person], start_ids: Iterable[str]) -> set[str]:
    """Worklist expansion from *start_ids* until no new id is added.

    Edges may be recorded on one endpoint only (a stale ``children`` cache, a
    one-sided spouse link), so every hop also follows reverse references.
    """

    reverse = build_reverse_index(people)
    seen: set[str] = {sid for sid in start_ids if sid in people}
    frontier = list(seen)
    while frontier:
        neigh = _fetch_neighbors(people, reverse, frontier)
        next_frontier: list[str] = []
        for node in frontier:
            for nb in neigh.get(node, []):
                if nb in seen:
                    continue
                seen.add(nb)
                next_frontier.append(nb)
        frontier = next_frontier
    return seen


def resolve_user_subgraph(store: PersonStore, user_id: str) -> dict[str, Person]:
    """Everyone transitively connected to the people *user_id* authored.

    Membership is defined by graph edges, not by ``created_by``: a spouse added
    by another account still belongs to this user's tree.
    """

    people = store.all_people()
    seeds = [pid for pid, p in people.items() if user_id and p.created_by == user_id]
    members = connected_component(people, seeds)
    log.info("Resolved %d connected family members for user %s (%d authored)", len(members), user_id, len(seeds))
    return {pid: p for pid, p in people.items() if pid in members}
