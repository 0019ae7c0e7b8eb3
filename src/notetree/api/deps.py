"""
API Dependencies

Caller identity and service lookups shared by the v1 routers. Services are
built once at startup (see ``notetree.main.init_services``) and stored on
``app.state``.
"""

from fastapi import Header, Request

from notetree.services.search import SearchService
from notetree.services.trash import TrashService
from notetree.services.tree import TreeService
from notetree.services.versions import VersionService


def get_owner_id(
    x_owner_id: int = Header(
        ...,
        ge=1,
        description="Caller identity, injected by the authenticating proxy",
    ),
) -> int:
    """FastAPI dependency: owner every query is scoped to."""
    return x_owner_id


def get_tree_service(request: Request) -> TreeService:
    return request.app.state.tree_service


def get_trash_service(request: Request) -> TrashService:
    return request.app.state.trash_service


def get_version_service(request: Request) -> VersionService:
    return request.app.state.version_service


def get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service
