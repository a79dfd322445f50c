from __future__ import annotations

import time
from dataclasses import dataclass, field, fields, replace
from typing import Any, Optional

GENDERS = ("male", "female", "other")

# Fields that hold references to other people.
RELATIONSHIP_FIELDS = ("parent_id", "spouse_id", "children")

# Descriptive fields a caller may set on creation.
ATTRIBUTE_FIELDS = (
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
)


@dataclass
class Person:
    id: str
    name: str
    gender: str = "other"
    birth_date: Optional[str] = None
    death_date: Optional[str] = None
    bio: str = ""
    photo_url: str = ""
    relation: str = ""
    phone: str = ""
    email: str = ""
    education: str = ""
    occupation: str = ""
    address: str = ""
    parent_id: Optional[str] = None
    spouse_id: Optional[str] = None
    children: list[str] = field(default_factory=list)
    created_by: Optional[str] = None
    created_at: int = 0
    is_root: bool = False

    def copy(self) -> Person:
        return replace(self, children=list(self.children))

    def to_dict(self) -> dict[str, Any]:
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["children"] = list(self.children)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Person:
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        kwargs["children"] = list(kwargs.get("children") or [])
        return cls(**kwargs)


PERSON_FIELDS = frozenset(f.name for f in fields(Person))


@dataclass
class Activity:
    user_id: str
    action: str
    entity_id: Optional[str] = None
    details: str = ""
    timestamp: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "action": self.action,
            "entity_id": self.entity_id,
            "details": self.details,
            "timestamp": self.timestamp,
        }


def normalize_gender(value: Any) -> str:
    g = str(value or "").strip().lower()
    return g if g in GENDERS else "other"


def sanitize_attributes(attributes: dict[str, Any]) -> dict[str, Any]:
    """Keep only descriptive attributes; relationship fields are never accepted here.

    A new person always starts unlinked, whatever the request contains.
    """

    out: dict[str, Any] = {}
    for key in ATTRIBUTE_FIELDS:
        value = attributes.get(key)
        if key in ("birth_date", "death_date"):
            value = (str(value).strip() or None) if value else None
        elif key == "gender":
            value = normalize_gender(value)
        else:
            value = str(value).strip() if value is not None else ""
        out[key] = value

    out["parent_id"] = None
    out["spouse_id"] = None
    out["children"] = []
    out["created_at"] = int(attributes.get("created_at") or time.time() * 1000)
    return out
