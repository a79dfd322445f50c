from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .auth import AuthenticatedUserAuthorizer
from .errors import FamilyTreeError, StorageFailure
from .middleware import AuthMiddleware
from .routes import auth as auth_routes
from .routes import maintenance as maintenance_routes
from .routes import people as people_routes
from .routes import relationships as relationship_routes
from .routes import tree as tree_routes

log = logging.getLogger(__name__)

app = FastAPI(title="Family Tree API", version="0.1.0")
app.add_middleware(AuthMiddleware)
app.state.authorizer = AuthenticatedUserAuthorizer()

app.include_router(auth_routes.router)
app.include_router(people_routes.router)
app.include_router(relationship_routes.router)
app.include_router(tree_routes.router)
app.include_router(maintenance_routes.router)


@app.exception_handler(FamilyTreeError)
async def _family_tree_error(request: Request, exc: FamilyTreeError) -> JSONResponse:
    if isinstance(exc, StorageFailure):
        log.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
        detail = "The family tree could not be saved right now. Please try again or contact support."
    else:
        detail = exc.message
    return JSONResponse({"detail": detail}, status_code=exc.status_code)


@app.get("/health")
def health() -> dict[str, str]:
    return {"ok": "true"}
