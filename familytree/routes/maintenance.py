"""Maintenance routes: whole-store repair and the activity feed."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request

from ..activity import ActivityType, log_activity
from ..auth import authorize_mutation, get_current_user
from ..repair import repair_store
from ..store import PersonStore, get_store

router = APIRouter(tags=["maintenance"])


@router.post("/maintenance/repair")
def repair_all(request: Request, store: PersonStore = Depends(get_store)) -> dict[str, Any]:
    """Run every repair pass over the whole store.

    The spouse pass is O(n^2); this is a maintenance action, not part of the
    interactive path.
    """
    user = authorize_mutation(request)
    report = repair_store(store)
    if report.total:
        log_activity(store, user["id"], ActivityType.RELATIONSHIPS_REPAIRED, details=f"{report.total} fixes")
    return report.to_dict()


@router.get("/activities")
def list_activities(
    request: Request,
    limit: int = Query(default=50, ge=1, le=500),
    store: PersonStore = Depends(get_store),
) -> dict[str, Any]:
    get_current_user(request)
    return {"results": [a.to_dict() for a in store.list_activities(limit)]}
