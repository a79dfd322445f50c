from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from ..activity import ActivityType, log_activity
from ..auth import authorize_mutation
from ..mutate import (
    RelationshipKind,
    add_second_parent,
    link_siblings,
    remove_relationship,
    set_parent_child,
    set_spouse,
)
from ..store import PersonStore, get_store

router = APIRouter(prefix="/relationships", tags=["relationships"])

_ID = Field(min_length=1, max_length=64)


class ParentChildRequest(BaseModel):
    parent_id: str = _ID
    child_id: str = _ID


class SpouseRequest(BaseModel):
    person_id: str = _ID
    spouse_id: str = _ID


class SecondParentRequest(BaseModel):
    child_id: str = _ID
    second_parent_id: str = _ID
    # Defaults to the child's current primary parent.
    first_parent_id: Optional[str] = Field(default=None, max_length=64)


class SiblingRequest(BaseModel):
    person_id: str = _ID
    sibling_id: str = _ID


class RemoveRequest(BaseModel):
    kind: RelationshipKind
    member_id1: str = _ID
    member_id2: str = _ID


@router.post("/parent-child")
def parent_child(body: ParentChildRequest, request: Request, store: PersonStore = Depends(get_store)) -> dict[str, Any]:
    user = authorize_mutation(request, body.parent_id, body.child_id)
    set_parent_child(store, body.parent_id, body.child_id)
    log_activity(
        store,
        user["id"],
        ActivityType.RELATIONSHIP_UPDATED,
        entity_id=body.child_id,
        details=f"parent {body.parent_id}",
    )
    return {"ok": True, "parent_id": body.parent_id, "child_id": body.child_id}


@router.post("/spouse")
def spouse(body: SpouseRequest, request: Request, store: PersonStore = Depends(get_store)) -> dict[str, Any]:
    user = authorize_mutation(request, body.person_id, body.spouse_id)
    set_spouse(store, body.person_id, body.spouse_id)
    log_activity(
        store,
        user["id"],
        ActivityType.RELATIONSHIP_UPDATED,
        entity_id=body.person_id,
        details=f"spouse {body.spouse_id}",
    )
    return {"ok": True, "person_id": body.person_id, "spouse_id": body.spouse_id}


@router.post("/second-parent")
def second_parent(body: SecondParentRequest, request: Request, store: PersonStore = Depends(get_store)) -> dict[str, Any]:
    """Add a second parent to a child that already has (or is given) a primary parent."""
    first_parent_id = body.first_parent_id
    if not first_parent_id:
        child = store.require_person(body.child_id)
        if not child.parent_id:
            raise HTTPException(status_code=400, detail="child does not have a primary parent set")
        first_parent_id = child.parent_id

    user = authorize_mutation(request, body.child_id, first_parent_id, body.second_parent_id)
    add_second_parent(store, body.child_id, first_parent_id, body.second_parent_id)
    log_activity(
        store,
        user["id"],
        ActivityType.RELATIONSHIP_UPDATED,
        entity_id=body.child_id,
        details=f"second parent {body.second_parent_id}",
    )
    return {
        "ok": True,
        "child_id": body.child_id,
        "first_parent_id": first_parent_id,
        "second_parent_id": body.second_parent_id,
    }


@router.post("/sibling")
def sibling(body: SiblingRequest, request: Request, store: PersonStore = Depends(get_store)) -> dict[str, Any]:
    user = authorize_mutation(request, body.person_id, body.sibling_id)
    changed = link_siblings(store, body.person_id, body.sibling_id)
    if changed:
        log_activity(
            store,
            user["id"],
            ActivityType.RELATIONSHIP_UPDATED,
            entity_id=body.person_id,
            details=f"sibling {body.sibling_id}",
        )
    return {"ok": True, "changed": changed}


@router.post("/remove")
def remove(body: RemoveRequest, request: Request, store: PersonStore = Depends(get_store)) -> dict[str, Any]:
    user = authorize_mutation(request, body.member_id1, body.member_id2)
    changed = remove_relationship(store, body.kind, body.member_id1, body.member_id2)
    if changed:
        log_activity(
            store,
            user["id"],
            ActivityType.RELATIONSHIP_REMOVED,
            entity_id=body.member_id2,
            details=f"{body.kind.value} {body.member_id1}",
        )
    return {"ok": True, "kind": body.kind.value, "changed": changed}
