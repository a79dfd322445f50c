from __future__ import annotations

import re
from datetime import date
from typing import Any

from .models import GENDERS, Person

_DATE_RE = re.compile(r"\b(?P<y>\d{4})-(?P<m>\d{2})-(?P<d>\d{2})\b")

# Upper age bound (inclusive) per group; anything older is "seniors".
_AGE_GROUPS = (
    ("children", 12),
    ("teens", 19),
    ("young_adults", 35),
    ("adults", 65),
)


def _parse_full_date(s: str | None) -> date | None:
    if not s:
        return None
    m = _DATE_RE.search(s)
    if not m:
        return None
    try:
        return date(int(m.group("y")), int(m.group("m")), int(m.group("d")))
    except ValueError:
        return None


def _age_on(birth: date, today: date) -> int:
    return today.year - birth.year - ((today.month, today.day) < (birth.month, birth.day))


def age_group(age: int) -> str:
    for name, upper in _AGE_GROUPS:
        if age <= upper:
            return name
    return "seniors"


def count_generations(subgraph: dict[str, Person]) -> int:
    """Length of the longest ``parent_id`` chain inside the subgraph (cycle-safe)."""

    depth: dict[str, int] = {}
    for start in subgraph:
        chain: list[str] = []
        on_chain: set[str] = set()
        cur: str | None = start
        base = 0
        while cur is not None and cur in subgraph:
            if cur in depth:
                base = depth[cur]
                break
            if cur in on_chain:
                break
            chain.append(cur)
            on_chain.add(cur)
            parent_id = subgraph[cur].parent_id
            cur = parent_id if parent_id != cur else None
        for pid in reversed(chain):
            base += 1
            depth[pid] = base
    return max(depth.values(), default=0)


def summarize(subgraph: dict[str, Person], *, today: date | None = None) -> dict[str, Any]:
    t = today or date.today()

    genders = {g: 0 for g in GENDERS}
    ages = {name: 0 for name, _ in _AGE_GROUPS}
    ages["seniors"] = 0
    ages["unknown"] = 0

    for person in subgraph.values():
        gender = (person.gender or "").lower()
        genders[gender if gender in genders else "other"] += 1

        if person.death_date:
            continue
        birth = _parse_full_date(person.birth_date)
        if birth is None or birth > t:
            ages["unknown"] += 1
            continue
        ages[age_group(_age_on(birth, t))] += 1

    return {
        "members": len(subgraph),
        "genders": genders,
        "age_groups": ages,
        "generations": count_generations(subgraph),
    }
