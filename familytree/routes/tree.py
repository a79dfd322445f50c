from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response

from ..activity import ActivityType, log_activity
from ..auth import get_current_user
from ..insights import summarize
from ..relations import resolve_relationships
from ..serialize import _people_to_public
from ..store import PersonStore, get_store
from ..subgraph import resolve_user_subgraph
from ..tree import build_tree, export_csv, export_flat_json, export_json

router = APIRouter(prefix="/tree", tags=["tree"])

_EXPORT_MEDIA_TYPES = {
    "json": "application/json",
    "flat": "application/json",
    "csv": "text/csv",
}


@router.get("")
def family_members(request: Request, store: PersonStore = Depends(get_store)) -> dict[str, Any]:
    """Everyone connected to the people the current user added."""
    user = get_current_user(request)
    subgraph = resolve_user_subgraph(store, user["id"])
    return {
        "total": len(subgraph),
        "results": _people_to_public(subgraph, user_id=user["id"]),
    }


@router.get("/people/{person_id}/relationships")
def person_relationships(person_id: str, request: Request, store: PersonStore = Depends(get_store)) -> dict[str, Any]:
    user = get_current_user(request)
    subgraph = resolve_user_subgraph(store, user["id"])
    return resolve_relationships(person_id, subgraph).to_dict()


@router.get("/nested")
def nested_tree(request: Request, store: PersonStore = Depends(get_store)) -> dict[str, Any]:
    user = get_current_user(request)
    subgraph = resolve_user_subgraph(store, user["id"])
    return {"root": build_tree(subgraph)}


@router.get("/export")
def export_tree(
    request: Request,
    format: Literal["json", "flat", "csv"] = Query(default="json"),
    store: PersonStore = Depends(get_store),
) -> Response:
    user = get_current_user(request)
    subgraph = resolve_user_subgraph(store, user["id"])

    if format == "csv":
        content = export_csv(subgraph)
    elif format == "flat":
        content = export_flat_json(subgraph)
    else:
        content = export_json(subgraph)

    log_activity(store, user["id"], ActivityType.FAMILY_EXPORTED, details=format)
    filename = f"family-tree.{'csv' if format == 'csv' else 'json'}"
    return Response(
        content=content,
        media_type=_EXPORT_MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/insights")
def insights(request: Request, store: PersonStore = Depends(get_store)) -> dict[str, Any]:
    user = get_current_user(request)
    return summarize(resolve_user_subgraph(store, user["id"]))
