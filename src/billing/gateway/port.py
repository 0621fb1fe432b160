"""Invoice gateway port (abstract interface).

Defines the contract that payment processor adapters must implement, so
the domain can switch between FakeGateway (dev/test) and SquareGateway
(production) without changing any domain or application code.

Adapter calls are blocking I/O. They never run while an invoice lock is
held, and their failures surface as ``GatewayError`` without retries.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class PaymentLink:
    """A hosted payment page for one invoice balance."""

    url: str
    link_id: str | None = None
    order_id: str | None = None


@dataclass(frozen=True)
class PaymentStatusResult:
    """Outcome of polling the processor for an invoice."""

    paid: bool
    amount: int | None = None  # cents
    transaction_id: str | None = None


class InvoiceGateway(ABC):
    """Abstract payment processor interface."""

    @abstractmethod
    def create_payment_link(
        self,
        invoice_id: str,
        amount_due: int,
        payer_contact: str | None = None,
        description: str | None = None,
        accepted_channels: list[str] | None = None,
    ) -> PaymentLink:
        """Create a hosted payment page for ``amount_due`` cents.

        Repeating the call for the same invoice and amount must not create a
        second charge target.
        """
        ...

    @abstractmethod
    def check_status(self, invoice_id: str, order_id: str | None = None) -> PaymentStatusResult:
        """Ask the processor whether the invoice's outstanding link was paid."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """Verify that a webhook payload is authentically from the processor."""
        ...
