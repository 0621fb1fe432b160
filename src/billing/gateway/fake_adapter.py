"""Configurable fake invoice gateway for development and testing.

Simulates Square's hosted payment links without any external calls. It can
be told to fail, or to report an invoice as paid, which makes it useful for:
- Manual API testing via /billing/gateway/configure
- Automated tests with predictable outcomes
- Development without real processor credentials
"""

from uuid import uuid4

from billing.exceptions import GatewayError
from billing.gateway.port import InvoiceGateway, PaymentLink, PaymentStatusResult


class FakeGateway(InvoiceGateway):
    """Configurable fake invoice gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.links: dict[str, tuple[int, PaymentLink]] = {}
        self.payments: dict[str, PaymentStatusResult] = {}
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def mark_paid(self, invoice_id: str, amount: int, transaction_id: str | None = None) -> None:
        """Pretend the payer completed the hosted checkout for ``invoice_id``."""
        self.payments[str(invoice_id)] = PaymentStatusResult(
            paid=True,
            amount=amount,
            transaction_id=transaction_id or f"fake_txn_{uuid4().hex[:12]}",
        )

    def create_payment_link(
        self,
        invoice_id: str,
        amount_due: int,
        payer_contact: str | None = None,
        description: str | None = None,
        accepted_channels: list[str] | None = None,
    ) -> PaymentLink:
        self.calls.append(
            {
                "method": "create_payment_link",
                "invoice_id": str(invoice_id),
                "amount_due": amount_due,
                "payer_contact": payer_contact,
            }
        )
        if not self.should_succeed:
            raise GatewayError(self.failure_reason, status_code=503)

        existing = self.links.get(str(invoice_id))
        if existing and existing[0] == amount_due:
            return existing[1]

        link_id = uuid4().hex[:12]
        link = PaymentLink(
            url=f"https://fake-gateway.test/pay/{link_id}",
            link_id=f"fake_link_{link_id}",
            order_id=f"fake_order_{link_id}",
        )
        self.links[str(invoice_id)] = (amount_due, link)
        return link

    def check_status(self, invoice_id: str, order_id: str | None = None) -> PaymentStatusResult:
        self.calls.append({"method": "check_status", "invoice_id": str(invoice_id), "order_id": order_id})
        if not self.should_succeed:
            raise GatewayError(self.failure_reason, status_code=503)
        return self.payments.get(str(invoice_id), PaymentStatusResult(paid=False))

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:  # noqa: ARG002
        return signature == "test-signature"
