"""Detect and correct invariant violations left behind by legacy or partial writes.

Nothing here raises for "nothing to fix": every function reports how much it
changed so callers can observe the repair.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .models import Person
from .store import GraphEdit, PersonStore

log = logging.getLogger(__name__)


@dataclass
class RepairReport:
    self_references: int = 0
    spouse_links: int = 0
    children_mirrors: int = 0

    @property
    def total(self) -> int:
        return self.self_references + self.spouse_links + self.children_mirrors

    def to_dict(self) -> dict[str, int]:
        return {
            "self_references": self.self_references,
            "spouse_links": self.spouse_links,
            "children_mirrors": self.children_mirrors,
            "total": self.total,
        }


def _self_reference_fixes(person: Person, edit: GraphEdit) -> bool:
    pid = person.id
    fixed = False
    if person.parent_id == pid:
        log.info("Fixing self-reference as parent for %s", pid)
        edit.set(pid, "parent_id", None)
        fixed = True
    if person.spouse_id == pid:
        log.info("Fixing self-reference as spouse for %s", pid)
        edit.set(pid, "spouse_id", None)
        fixed = True
    if pid in person.children:
        log.info("Fixing self-reference in children for %s", pid)
        edit.set(pid, "children", [c for c in person.children if c != pid])
        fixed = True
    return fixed


def repair_person(store: PersonStore, person_id: str) -> bool:
    """Clear self-as-parent, self-as-spouse and self-in-children for one person.

    All corrections go out as one batch; no write happens when the record is clean.
    """
    person = store.require_person(person_id)
    edit = GraphEdit()
    if not _self_reference_fixes(person, edit):
        return False
    edit.commit(store)
    return True


def _symmetric_spouse_map(people: dict[str, Person]) -> dict[str, str | None]:
    """Return the spouse map with every link either symmetric or cleared.

    Runs to a fixed point: an unlinked person adopts whoever points at them
    (people labelled ``relation == "spouse"`` first). A one-sided link whose
    target is not in a mutual pair claims that target; links to someone already
    paired are dropped. Mutual pairs are never broken. Links to ids outside
    *people* are left as-is.
    """

    spouse: dict[str, str | None] = {pid: p.spouse_id for pid, p in people.items()}

    changed = True
    while changed:
        changed = False

        for pid in people:
            if spouse[pid]:
                continue
            pointing = [
                other for other in people
                if other != pid and spouse[other] == pid
            ]
            if not pointing:
                continue
            pointing.sort(key=lambda o: people[o].relation != "spouse")
            chosen = pointing[0]
            if people[pid].relation == "spouse":
                log.info("Member %s is marked as spouse but had no spouse link; restoring %s", pid, chosen)
            spouse[pid] = chosen
            changed = True

        for pid in people:
            target = spouse[pid]
            if not target or (target != pid and target not in people):
                continue
            if target == pid:
                spouse[pid] = None
                changed = True
                continue
            if spouse[target] == pid:
                continue
            target_spouse = spouse[target]
            if target_spouse and target_spouse in people and spouse[target_spouse] == target:
                log.info("Dropping one-sided spouse link %s -> %s", pid, target)
                spouse[pid] = None
            else:
                # The target's own link is one-sided too; pair it with pid instead.
                log.info("Pairing %s with %s, replacing one-sided link to %s", target, pid, target_spouse)
                spouse[target] = pid
            changed = True

    return spouse


def repair_all_spouse_links(store: PersonStore) -> int:
    """Whole-store pass restoring spouse symmetry; returns the number of records changed.

    O(n^2) in the worst case and safe to run repeatedly.
    """
    people = store.all_people()
    repaired = _symmetric_spouse_map(people)

    edit = GraphEdit()
    for pid, spouse_id in repaired.items():
        if people[pid].spouse_id != spouse_id:
            edit.set(pid, "spouse_id", spouse_id)
            if spouse_id:
                edit.set(pid, "relation", "spouse")
    edit.commit(store)

    count = len(edit.touched_ids())
    if count:
        log.info("Fixed spouse links on %d members", count)
    else:
        log.info("No spouse relationships needed fixing")
    return count


def repair_children_mirror(store: PersonStore) -> int:
    """Make every resolvable ``parent_id`` show up in the parent's ``children``."""
    people = store.all_people()
    missing: dict[str, list[str]] = {}
    for pid, person in people.items():
        parent_id = person.parent_id
        if not parent_id or parent_id == pid or parent_id not in people:
            continue
        parent = people[parent_id]
        if pid not in parent.children:
            missing.setdefault(parent_id, list(parent.children)).append(pid)

    edit = GraphEdit()
    for parent_id, children in missing.items():
        log.info("Restoring %d missing children on %s", len(children) - len(people[parent_id].children), parent_id)
        edit.set(parent_id, "children", children)
    edit.commit(store)
    return len(missing)


def repair_store(store: PersonStore) -> RepairReport:
    """Maintenance entry point: self-references, then spouse symmetry, then children mirrors."""
    report = RepairReport()
    for pid in list(store.all_people()):
        if repair_person(store, pid):
            report.self_references += 1
    report.spouse_links = repair_all_spouse_links(store)
    report.children_mirrors = repair_children_mirror(store)
    log.info("Repair finished: %s", report.to_dict())
    return report
