"""Invoice gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing
- SquareGateway for production, selected with ``BILLING_GATEWAY=square``
"""

import os

from billing.gateway.config import GatewayConfig
from billing.gateway.fake_adapter import FakeGateway
from billing.gateway.port import InvoiceGateway
from billing.gateway.square_adapter import SquareGateway

_current_gateway: InvoiceGateway | None = None


def build_gateway(name: str | None = None, config: GatewayConfig | None = None) -> InvoiceGateway:
    """Construct the adapter named by ``name`` (default: ``BILLING_GATEWAY``)."""
    name = (name or os.environ.get("BILLING_GATEWAY") or "fake").lower()
    if name == "fake":
        return FakeGateway()
    if name == "square":
        # Invalid values raise pydantic's ValidationError here
        config = config or GatewayConfig()
        missing = config.missing_settings()
        if missing:
            raise ValueError(f"Square gateway is not configured: {', '.join(missing)} not set")
        return SquareGateway(config)
    raise ValueError(f"Unknown gateway: {name}")


def get_gateway() -> InvoiceGateway:
    """Return the current gateway, building it on first use."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = build_gateway()
    return _current_gateway


def set_gateway(gateway: InvoiceGateway) -> None:
    """Override the active gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
