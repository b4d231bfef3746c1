"""
FastAPI glue for the app auth gate.

Two equivalent ways to protect a route:

- ``AppAuth`` dependency, injecting the AppAuthContext:

      @router.get("/me")
      async def me(context: Annotated[AppAuthContext, Depends(AppAuth())]): ...

- ``with_app_auth`` wrapper around ``handler(request, context, params)``.
"""

from typing import Any, Awaitable, Callable, Dict

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from workhub.dependencies.database import SessionDep
from workhub.schemas.apps import AppAuthContext
from workhub.services.apps.auth import AuthError, authenticate_app_request
from workhub.services.apps.scopes import ScopeInput

AppHandler = Callable[[Request, AppAuthContext, Dict[str, Any]], Awaitable[Response]]


class AppAuthError(Exception):
    """Raised by the AppAuth dependency; rendered by app_auth_error_handler."""

    def __init__(self, error: AuthError):
        super().__init__(error.message)
        self.error = error


def create_auth_error_response(error: AuthError) -> JSONResponse:
    """Standard error body for authentication failures."""
    return JSONResponse(
        status_code=error.status_code,
        content={"error": error.code, "error_description": error.message},
    )


async def app_auth_error_handler(_request: Request, exc: AppAuthError) -> JSONResponse:
    return create_auth_error_response(exc.error)


class AppAuth:
    """Dependency that authenticates the request or raises AppAuthError."""

    def __init__(self, required_scopes: ScopeInput = None, allow_expired: bool = False):
        self.required_scopes = required_scopes
        self.allow_expired = allow_expired

    async def __call__(self, request: Request, session: SessionDep) -> AppAuthContext:
        result = await authenticate_app_request(
            request,
            session,
            required_scopes=self.required_scopes,
            allow_expired=self.allow_expired,
        )
        if not result.success:
            raise AppAuthError(result.error)
        return result.context


def with_app_auth(
    handler: AppHandler,
    required_scopes: ScopeInput = None,
    allow_expired: bool = False,
):
    """
    Wrap ``handler(request, context, params)`` as a FastAPI endpoint.

    Failed authentication returns the error response without calling the
    handler. ``params`` holds the route's path parameters and the request
    session is available to the handler as ``request.state.db``.
    """

    async def endpoint(request: Request, session: SessionDep) -> Response:
        result = await authenticate_app_request(
            request,
            session,
            required_scopes=required_scopes,
            allow_expired=allow_expired,
        )
        if not result.success:
            return create_auth_error_response(result.error)

        request.state.db = session
        return await handler(request, result.context, dict(request.path_params))

    endpoint.__name__ = handler.__name__
    endpoint.__doc__ = handler.__doc__
    return endpoint
