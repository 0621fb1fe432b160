"""Billing domain API package."""

from billing.api.errors import register_billing_exception_handlers
from billing.api.routes import gateway_router, invoice_router, webhook_router

__all__ = ["invoice_router", "webhook_router", "gateway_router", "register_billing_exception_handlers"]
