"""
Components Router

Endpoints for the front-end renderer: render a component by its global
identity and call its endpoints.

    GET  /api/components                          mounted root names
    GET  /api/components/{path}                   render payload
    POST /api/components/{path}/endpoints/{name}  endpoint call (JSON params)

Validation and permission outcomes are part of the endpoint results; only
request and configuration errors become HTTP errors.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Request, status

from basepack.components.base import Component, ComponentContext
from basepack.config import get_settings
from basepack.core.database import DbSession
from basepack.core.exceptions import (
    ConfigurationError,
    InvalidFilterError,
    InvalidSortColumnError,
    NotFoundError,
    UnknownComponentError,
)
from basepack.core.permissions import AllowAll
from basepack.core.state_store import DatabaseStateStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/components", tags=["Components"])


async def get_component_context(
    request: Request,
    db: DbSession,
    x_user: Annotated[str | None, Header()] = None,
) -> ComponentContext:
    """
    Build the collaborators for one request.

    The state store comes from app state; without one, UI state is kept in
    the database through the request's session.
    """
    settings = get_settings()
    app_state = request.app.state
    state_store = getattr(app_state, "state_store", None) or DatabaseStateStore(db)
    return ComponentContext(
        registry=app_state.registry,
        session=db,
        state_store=state_store,
        permissions=getattr(app_state, "permissions", None) or AllowAll(),
        user_key=x_user or "anonymous",
        max_association_depth=settings.max_association_depth,
        default_rows_per_page=settings.default_rows_per_page,
    )


Context = Annotated[ComponentContext, Depends(get_component_context)]


async def _guarded(path: str, action: Callable[[], Awaitable[Any]]) -> Any:
    """Run a component action, mapping basepack errors to HTTP errors."""
    try:
        return await action()
    except UnknownComponentError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Component not found: {e.name}",
        )
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except (InvalidFilterError, InvalidSortColumnError) as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    except ConfigurationError as e:
        logger.error(f"Configuration error in {path}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )


async def _resolve(path: str, context: ComponentContext) -> Component:
    return await context.registry.resolve_path(path, context)


@router.get(
    "",
    summary="List root components",
)
async def list_components(request: Request) -> dict[str, list[str]]:
    return {"components": request.app.state.registry.root_names()}


@router.get(
    "/{path}",
    summary="Render a component",
)
async def render_component(path: str, context: Context) -> dict[str, Any]:
    """Render payload of the component at a global identity ("users__add_form")."""

    async def action() -> dict[str, Any]:
        component = await _resolve(path, context)
        return await component.render()

    return await _guarded(path, action)


@router.post(
    "/{path}/endpoints/{name}",
    summary="Call a component endpoint",
)
async def call_endpoint(
    path: str,
    name: str,
    context: Context,
    params: Annotated[dict[str, Any] | None, Body()] = None,
) -> Any:
    async def action() -> Any:
        component = await _resolve(path, context)
        return await component.call_endpoint(name, params or {})

    logger.debug(f"Endpoint call {path}.{name} by {context.user_key}")
    return await _guarded(path, action)
