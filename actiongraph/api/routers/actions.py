"""Endpoints for actions, their family tree and their dependencies.

Routes
------
POST   /actions                               Create an action
GET    /actions                               List actions (?done, limit, offset)
GET    /actions/tree                          Family forest (?root_id, include_completed)
GET    /actions/next                          Next workable action (?scope_id) or null
GET    /actions/unblocked                     Workable actions (?limit, scope_id)
GET    /actions/blocking                      Open prerequisites ranked by what they block
GET    /actions/{action_id}                   Action with parent chain, children, deps
PATCH  /actions/{action_id}                   Update fields and/or done
POST   /actions/{action_id}/complete          Mark done (gated on dependencies)
POST   /actions/{action_id}/uncomplete        Reopen
PUT    /actions/{action_id}/parent            Move under a new parent (null = root)
DELETE /actions/{action_id}                   Delete (?child_handling, new_parent_id)
POST   /actions/{action_id}/dependencies      Add a dependency
DELETE /actions/{action_id}/dependencies/{depends_on_id}
                                              Remove a dependency
GET    /actions/{action_id}/path              Breadcrumb from the root
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request, Response
from pydantic import BaseModel

from actiongraph.db.actions import count_actions, list_actions
from actiongraph.db.models import REPARENT, Action, Edge
from actiongraph.engine import mutations
from actiongraph.engine.resolver import (
    get_blocking_dependencies,
    get_next_action,
    get_unblocked_actions,
)
from actiongraph.engine.tree import action_detail, build_tree
from actiongraph.engine.walker import ancestor_chain, breadcrumb
from actiongraph.errors import (
    ActionGraphError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class ActionCreate(BaseModel):
    title: str
    description: Optional[str] = None
    vision: Optional[str] = None
    parent_id: Optional[str] = None
    depends_on_ids: list[str] = []


class ActionUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    vision: Optional[str] = None
    done: Optional[bool] = None


class ParentUpdate(BaseModel):
    new_parent_id: Optional[str] = None


class DependencyCreate(BaseModel):
    depends_on_id: str


class ActionResponse(BaseModel):
    id: str
    title: str
    description: Optional[str]
    vision: Optional[str]
    done: bool
    version: int
    created_at: int
    updated_at: int
    node_summary: Optional[str] = None
    editorial: Optional[str] = None


class ActionListResponse(BaseModel):
    actions: list[ActionResponse]
    total: int
    limit: int
    offset: int


class CreateResponse(BaseModel):
    action: ActionResponse
    parent_id: Optional[str]
    dependencies_count: int


class EdgeResponse(BaseModel):
    src: str
    dst: str
    kind: str
    created_at: int


class DetailResponse(BaseModel):
    action: ActionResponse
    parent_id: Optional[str]
    parent_chain: list[ActionResponse]
    children: list[ActionResponse]
    dependencies: list[ActionResponse]
    dependents: list[ActionResponse]


class MoveResponse(BaseModel):
    action_id: str
    old_parent_id: Optional[str]
    new_parent_id: Optional[str]


class DeleteResponse(BaseModel):
    deleted_action: ActionResponse
    children_count: int
    child_handling: str
    new_parent_id: Optional[str] = None


class BlockingResponse(BaseModel):
    action: ActionResponse
    blocked: list[ActionResponse]
    block_count: int


class PathResponse(BaseModel):
    action_id: str
    path: str
    ancestors: list[ActionResponse]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _action_response(action: Action) -> dict[str, Any]:
    return action.to_dict()


def _edge_response(edge: Edge) -> dict[str, Any]:
    return {
        "src": edge.src,
        "dst": edge.dst,
        "kind": edge.kind,
        "created_at": edge.created_at,
    }


def _http_error(exc: ActionGraphError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InvalidOperationError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


# ---------------------------------------------------------------------------
# Collection endpoints (declared before /{action_id})
# ---------------------------------------------------------------------------

@router.post("", response_model=CreateResponse, status_code=201)
def create(body: ActionCreate, request: Request) -> dict[str, Any]:
    """Create an action, optionally under a parent and with prerequisites."""
    try:
        result = mutations.create_action(
            request.app.state.db,
            title=body.title,
            description=body.description,
            vision=body.vision,
            parent_id=body.parent_id,
            depends_on_ids=body.depends_on_ids,
            events=request.app.state.events,
        )
    except ActionGraphError as exc:
        raise _http_error(exc) from exc
    return {
        "action": _action_response(result.action),
        "parent_id": result.parent_id,
        "dependencies_count": result.dependencies_count,
    }


@router.get("", response_model=ActionListResponse)
def list_all(
    request: Request,
    done: Optional[bool] = None,
    limit: int = Query(20, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> dict[str, Any]:
    """Return actions oldest first, optionally filtered by ``done``."""
    conn = request.app.state.db
    actions = list_actions(conn, done=done, limit=limit, offset=offset)
    return {
        "actions": [_action_response(a) for a in actions],
        "total": count_actions(conn, done=done),
        "limit": limit,
        "offset": offset,
    }


@router.get("/tree", response_model=list[dict[str, Any]])
def tree(
    request: Request,
    root_id: Optional[str] = None,
    include_completed: bool = False,
) -> list[dict[str, Any]]:
    """Return the family forest, or the subtree rooted at ``root_id``."""
    try:
        forest = build_tree(
            request.app.state.db, root_id=root_id, include_completed=include_completed
        )
    except ActionGraphError as exc:
        raise _http_error(exc) from exc
    return [node.to_dict() for node in forest]


@router.get("/next", response_model=Optional[ActionResponse])
def next_action(
    request: Request, scope_id: Optional[str] = None
) -> Optional[dict[str, Any]]:
    """Return the single next workable action, or ``null`` if none."""
    try:
        action = get_next_action(request.app.state.db, scope_id=scope_id)
    except ActionGraphError as exc:
        raise _http_error(exc) from exc
    return _action_response(action) if action else None


@router.get("/unblocked", response_model=list[ActionResponse])
def unblocked(
    request: Request,
    limit: int = Query(50, ge=1, le=500),
    scope_id: Optional[str] = None,
) -> list[dict[str, Any]]:
    """Return workable actions, most recently updated first."""
    try:
        actions = get_unblocked_actions(
            request.app.state.db, limit=limit, scope_id=scope_id
        )
    except ActionGraphError as exc:
        raise _http_error(exc) from exc
    return [_action_response(a) for a in actions]


@router.get("/blocking", response_model=list[BlockingResponse])
def blocking(request: Request) -> list[dict[str, Any]]:
    """Return open prerequisites, ranked by how many open actions they hold back."""
    return [
        {
            "action": _action_response(b.action),
            "blocked": [_action_response(a) for a in b.blocked],
            "block_count": b.block_count,
        }
        for b in get_blocking_dependencies(request.app.state.db)
    ]


# ---------------------------------------------------------------------------
# Single-action endpoints
# ---------------------------------------------------------------------------

@router.get("/{action_id}", response_model=DetailResponse)
def get_one(action_id: str, request: Request) -> dict[str, Any]:
    """Fetch an action with its parent chain, children and dependencies."""
    try:
        detail = action_detail(request.app.state.db, action_id)
    except ActionGraphError as exc:
        raise _http_error(exc) from exc
    return {
        "action": _action_response(detail.action),
        "parent_id": detail.parent_id,
        "parent_chain": [_action_response(a) for a in detail.parent_chain],
        "children": [_action_response(a) for a in detail.children],
        "dependencies": [_action_response(a) for a in detail.dependencies],
        "dependents": [_action_response(a) for a in detail.dependents],
    }


@router.patch("/{action_id}", response_model=ActionResponse)
def update(action_id: str, body: ActionUpdate, request: Request) -> dict[str, Any]:
    """Update one or more fields on an action."""
    try:
        action = mutations.update_action(
            request.app.state.db,
            action_id,
            events=request.app.state.events,
            **body.model_dump(exclude_none=True),
        )
    except ActionGraphError as exc:
        raise _http_error(exc) from exc
    return _action_response(action)


@router.post("/{action_id}/complete", response_model=ActionResponse)
def complete(action_id: str, request: Request) -> dict[str, Any]:
    """Mark an action done; 409 while any prerequisite is open."""
    try:
        action = mutations.set_done(
            request.app.state.db, action_id, True, events=request.app.state.events
        )
    except ActionGraphError as exc:
        raise _http_error(exc) from exc
    return _action_response(action)


@router.post("/{action_id}/uncomplete", response_model=ActionResponse)
def uncomplete(action_id: str, request: Request) -> dict[str, Any]:
    """Reopen a done action."""
    try:
        action = mutations.set_done(request.app.state.db, action_id, False)
    except ActionGraphError as exc:
        raise _http_error(exc) from exc
    return _action_response(action)


@router.put("/{action_id}/parent", response_model=MoveResponse)
def move(action_id: str, body: ParentUpdate, request: Request) -> dict[str, Any]:
    """Move an action under ``new_parent_id`` (``null`` makes it a root)."""
    try:
        result = mutations.move_action(
            request.app.state.db,
            action_id,
            body.new_parent_id,
            events=request.app.state.events,
        )
    except ActionGraphError as exc:
        raise _http_error(exc) from exc
    return {
        "action_id": result.action_id,
        "old_parent_id": result.old_parent_id,
        "new_parent_id": result.new_parent_id,
    }


@router.delete("/{action_id}", response_model=DeleteResponse)
def remove(
    action_id: str,
    request: Request,
    child_handling: str = REPARENT,
    new_parent_id: Optional[str] = None,
) -> dict[str, Any]:
    """Delete an action, re-parenting or deleting its children."""
    try:
        result = mutations.delete_action(
            request.app.state.db,
            action_id,
            child_handling=child_handling,
            new_parent_id=new_parent_id,
            events=request.app.state.events,
        )
    except ActionGraphError as exc:
        raise _http_error(exc) from exc
    return {
        "deleted_action": _action_response(result.deleted_action),
        "children_count": result.children_count,
        "child_handling": result.child_handling,
        "new_parent_id": result.new_parent_id,
    }


@router.post("/{action_id}/dependencies", response_model=EdgeResponse, status_code=201)
def add_dependency(
    action_id: str, body: DependencyCreate, request: Request
) -> dict[str, Any]:
    """Make the action depend on ``depends_on_id``."""
    try:
        edge = mutations.add_dependency(
            request.app.state.db, action_id, body.depends_on_id
        )
    except ActionGraphError as exc:
        raise _http_error(exc) from exc
    return _edge_response(edge)


@router.delete("/{action_id}/dependencies/{depends_on_id}")
def remove_dependency(
    action_id: str, depends_on_id: str, request: Request
) -> Response:
    """Remove an explicit dependency."""
    try:
        mutations.remove_dependency(request.app.state.db, action_id, depends_on_id)
    except ActionGraphError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


@router.get("/{action_id}/path", response_model=PathResponse)
def path(action_id: str, request: Request) -> dict[str, Any]:
    """Return the root-to-action breadcrumb."""
    conn = request.app.state.db
    try:
        crumb = breadcrumb(conn, action_id)
    except ActionGraphError as exc:
        raise _http_error(exc) from exc
    return {
        "action_id": action_id,
        "path": crumb,
        "ancestors": [_action_response(a) for a in ancestor_chain(conn, action_id)],
    }
