"""
HTTP surface generated from the operation registry.

Every bound operation gets a unified POST /dispatch/<operation> endpoint
used by client-layer processes, plus a GET /api/... route when its
parameters are all scalar. Nothing here is hand-authored per operation.
"""

import json
import logging
import secrets
from typing import Callable, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from spacegun.config.provider import ServerConfig
from spacegun.errors import SpacegunError

from .dispatcher import DISPATCH_PREFIX, Dispatcher
from .registry import Operation

logger = logging.getLogger("spacegun.dispatcher")


def create_api_key_dependency(server: ServerConfig) -> Callable:
    """Build a dependency that checks X-API-Key when keys are configured."""

    async def verify_api_key(
        x_api_key: Optional[str] = Header(None, description="API key for authentication")
    ) -> Optional[str]:
        if not server.requires_api_key:
            return None
        if not x_api_key or not any(secrets.compare_digest(x_api_key, key) for key in server.api_keys):
            raise HTTPException(401, "Invalid API key")
        return x_api_key

    return verify_api_key


def _dispatch_endpoint(dispatcher: Dispatcher, operation: Operation):
    async def endpoint(request: Request) -> JSONResponse:
        body = await request.body()
        try:
            payload = json.loads(body) if body else {}
        except ValueError:
            raise HTTPException(400, "Request body must be JSON")
        if not isinstance(payload, dict):
            return JSONResponse(
                status_code=400,
                content={"error": "ValidationError", "detail": "Request body must be a JSON object"},
            )
        return JSONResponse(await dispatcher.execute(operation.name, payload))

    return endpoint


def _rest_endpoint(dispatcher: Dispatcher, operation: Operation):
    async def endpoint(request: Request) -> JSONResponse:
        payload = {**request.query_params, **request.path_params}
        return JSONResponse(await dispatcher.execute(operation.name, payload))

    return endpoint


def create_dispatch_router(dispatcher: Dispatcher, server: Optional[ServerConfig] = None) -> APIRouter:
    """
    Build the router exposing every bound operation.

    Args:
        dispatcher: Dispatcher executing operations locally
        server: Server configuration for optional API key protection

    Returns:
        APIRouter with one dispatch route and at most one REST route per operation
    """
    dependencies = [Depends(create_api_key_dependency(server))] if server else []
    router = APIRouter(dependencies=dependencies)

    for operation in dispatcher.registry.bound():
        router.add_api_route(
            f"{DISPATCH_PREFIX}/{operation.name}",
            _dispatch_endpoint(dispatcher, operation),
            methods=["POST"],
            name=operation.name,
            tags=[operation.module],
        )
        if operation.route:
            router.add_api_route(
                operation.route,
                _rest_endpoint(dispatcher, operation),
                methods=["GET"],
                name=f"{operation.name}:rest",
                tags=[operation.module],
            )
        logger.debug(f"Exposed {operation.name} (route: {operation.route or 'dispatch only'})")

    return router


def install_error_handlers(app: FastAPI) -> None:
    """Map domain errors to JSON error responses."""

    @app.exception_handler(SpacegunError)
    async def handle_spacegun_error(request: Request, exc: SpacegunError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "ValidationError", "detail": str(exc)},
        )
