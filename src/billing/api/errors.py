"""Map billing errors to HTTP responses.

Protean's own handlers cover ValidationError (400) and ObjectNotFoundError
(404); billing adds the conflicts and gateway failures on top.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from billing.exceptions import ConcurrentUpdateError, GatewayError, IllegalTransitionError


async def _illegal_transition(request: Request, exc: IllegalTransitionError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": exc.messages})


async def _concurrent_update(request: Request, exc: ConcurrentUpdateError) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={
            "error": str(exc),
            "expected_revision": exc.expected_revision,
            "actual_revision": exc.actual_revision,
        },
    )


async def _gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"error": exc.detail, "gateway_status": exc.status_code})


def register_billing_exception_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(IllegalTransitionError, _illegal_transition)
    app.add_exception_handler(ConcurrentUpdateError, _concurrent_update)
    app.add_exception_handler(GatewayError, _gateway_error)
