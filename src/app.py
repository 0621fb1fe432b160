"""Billing FastAPI application.

Processes invoice commands synchronously via HTTP. Every request runs
inside the billing domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay; BILLING_GATEWAY picks the gateway
# adapter (fake | square).
from billing.domain import billing  # noqa: E402
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

billing.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Billing API",
    description="Invoice lifecycle and payment reconciliation",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the billing domain context for each request."""
    with billing.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from billing.api import (  # noqa: E402
    gateway_router,
    invoice_router,
    register_billing_exception_handlers,
    webhook_router,
)

app.include_router(invoice_router)
app.include_router(webhook_router)
app.include_router(gateway_router)
register_billing_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    from billing.gateway import get_gateway

    return JSONResponse(
        content={
            "status": "ok",
            "domains": {"billing": {"name": billing.name}},
            "gateway": type(get_gateway()).__name__,
        }
    )
