from __future__ import annotations

import logging
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from ..activity import ActivityType, log_activity
from ..auth import authorize_mutation, get_current_user
from ..errors import FamilyTreeError, InvalidRelationship
from ..mutate import create_person, delete_person_detached, link_siblings, set_parent_child, set_spouse
from ..repair import repair_person
from ..serialize import _person_to_public
from ..store import PersonStore, get_store

log = logging.getLogger(__name__)

router = APIRouter()


class CreatePersonRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    gender: Literal["male", "female", "other"] = "other"
    birth_date: Optional[str] = None
    death_date: Optional[str] = None
    bio: str = ""
    photo_url: str = ""
    phone: str = ""
    email: str = ""
    education: str = ""
    occupation: str = ""
    address: str = ""
    # Optional follow-up link to an existing person, applied after creation.
    relation: Optional[Literal["parent", "child", "spouse", "sibling"]] = None
    related_person_id: Optional[str] = None


def _link_new_person(store: PersonStore, new_id: str, relation: str, related_id: str) -> None:
    if relation == "child":
        set_parent_child(store, related_id, new_id)
    elif relation == "parent":
        set_parent_child(store, new_id, related_id)
    elif relation == "spouse":
        set_spouse(store, new_id, related_id)
    else:
        link_siblings(store, new_id, related_id)


@router.post("/people", status_code=201)
def add_person(
    body: CreatePersonRequest,
    request: Request,
    store: PersonStore = Depends(get_store),
) -> dict[str, Any]:
    """Create a family member, optionally linked to an existing one.

    The record is always created unlinked; the requested relationship is a
    separate mutation so the usual invariant checks apply to it.
    """
    user = authorize_mutation(request, body.related_person_id or "")
    if body.relation and not body.related_person_id:
        raise HTTPException(status_code=400, detail="related_person_id is required with relation")
    if body.related_person_id:
        related = store.require_person(body.related_person_id)
        if body.relation == "sibling" and not related.parent_id:
            raise InvalidRelationship("the related person needs a parent before a sibling can be added")

    attributes = body.model_dump(exclude={"related_person_id"})
    attributes["relation"] = body.relation or ""
    person = create_person(store, attributes, created_by=user["id"])

    if body.relation and body.related_person_id:
        try:
            _link_new_person(store, person.id, body.relation, body.related_person_id)
        except FamilyTreeError:
            log.warning("Linking new person %s failed; removing it", person.id)
            delete_person_detached(store, person.id)
            raise

    log_activity(store, user["id"], ActivityType.MEMBER_ADDED, entity_id=person.id, details=person.name)
    return _person_to_public(store.require_person(person.id))


@router.get("/people/{person_id}")
def get_person(person_id: str, request: Request, store: PersonStore = Depends(get_store)) -> dict[str, Any]:
    user = get_current_user(request)
    person = store.require_person(person_id)
    return _person_to_public(person, include_contact=(person.created_by == user["id"]))


@router.delete("/people/{person_id}")
def delete_person(person_id: str, request: Request, store: PersonStore = Depends(get_store)) -> dict[str, Any]:
    """Delete a person and detach every reference to them in one batch."""
    user = authorize_mutation(request, person_id)
    detached = delete_person_detached(store, person_id)
    log_activity(store, user["id"], ActivityType.MEMBER_DELETED, entity_id=person_id, details=f"detached {detached}")
    return {"id": person_id, "deleted": True, "detached": detached}


@router.post("/people/{person_id}/repair")
def repair_one(person_id: str, request: Request, store: PersonStore = Depends(get_store)) -> dict[str, Any]:
    user = authorize_mutation(request, person_id)
    fixed = repair_person(store, person_id)
    if fixed:
        log_activity(store, user["id"], ActivityType.RELATIONSHIPS_REPAIRED, entity_id=person_id)
    return {"id": person_id, "repaired": fixed}
