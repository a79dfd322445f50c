from __future__ import annotations

from typing import Any

from .models import Person

_CONTACT_FIELDS = ("phone", "email", "address")


def _person_to_public(person: Person, *, include_contact: bool = True) -> dict[str, Any]:
    """API representation of a person record.

    Contact details are dropped for people the caller did not author.
    """
    out = person.to_dict()
    out["type"] = "person"
    out["is_living"] = not person.death_date
    if not include_contact:
        for key in _CONTACT_FIELDS:
            out[key] = None
    return out


def _people_to_public(people: dict[str, Person], *, user_id: str | None = None) -> list[dict[str, Any]]:
    return [
        _person_to_public(p, include_contact=(user_id is not None and p.created_by == user_id))
        for p in people.values()
    ]
