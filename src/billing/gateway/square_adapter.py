"""Square invoice gateway adapter.

Talks to Square's REST API with httpx:
- ``POST /v2/online-checkout/payment-links`` creates a hosted checkout for
  the invoice balance, with an order whose ``reference_id`` is the invoice id
- ``GET /v2/orders/{order_id}`` reads the order's tenders to reconcile
- Webhook signatures are HMAC-SHA256 over notification URL + raw body,
  base64 encoded, compared in constant time

Transport failures, timeouts and non-2xx answers all become ``GatewayError``.
"""

import base64
import hashlib
import hmac

import httpx
import structlog

from billing.exceptions import GatewayError
from billing.gateway.config import SQUARE_API_VERSION, GatewayConfig
from billing.gateway.port import InvoiceGateway, PaymentLink, PaymentStatusResult

logger = structlog.get_logger(__name__)

# Square checkout wallet options enabled by each accepted payment channel.
# Checkout has no per-link switch for bankAccount or squareGiftCard; Square
# offers ACH and gift cards according to the seller's location settings.
_CHANNEL_OPTIONS = {
    "apple_pay": "card",
    "google_pay": "card",
    "cash_app_pay": "cashAppPay",
}


class SquareGateway(InvoiceGateway):
    """Production Square adapter."""

    def __init__(self, config: GatewayConfig, transport: httpx.BaseTransport | None = None) -> None:
        self.config = config
        self._client = httpx.Client(
            base_url=config.base_url,
            timeout=config.timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {config.access_token}",
                "Square-Version": SQUARE_API_VERSION,
                "Content-Type": "application/json",
            },
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("Square request timed out", path=path, error=str(exc))
            raise GatewayError(f"Square request timed out: {path}") from exc
        except httpx.RequestError as exc:
            logger.error("Square request failed", path=path, error=str(exc))
            raise GatewayError(f"Could not reach Square: {exc}") from exc

        if response.is_error:
            detail = _error_detail(response)
            logger.error("Square returned an error", path=path, status_code=response.status_code, detail=detail)
            raise GatewayError(detail, status_code=response.status_code)
        return response.json()

    def create_payment_link(
        self,
        invoice_id: str,
        amount_due: int,
        payer_contact: str | None = None,
        description: str | None = None,
        accepted_channels: list[str] | None = None,
    ) -> PaymentLink:
        body = {
            # Same invoice and amount map to the same key, so retries reuse the link
            "idempotency_key": f"{invoice_id}-{amount_due}",
            "order": {
                "location_id": self.config.location_id,
                "reference_id": str(invoice_id),
                "line_items": [
                    {
                        "name": description or f"Invoice {invoice_id}",
                        "quantity": "1",
                        "base_price_money": {"amount": amount_due, "currency": self.config.currency},
                    }
                ],
            },
            "checkout_options": {
                "accepted_payment_methods": {
                    option: channel in (accepted_channels or [])
                    for option, channel in _CHANNEL_OPTIONS.items()
                },
            },
        }
        if payer_contact:
            body["pre_populated_data"] = {"buyer_email": payer_contact}

        data = self._request("POST", "/v2/online-checkout/payment-links", json=body)
        link = data.get("payment_link") or {}
        if not link.get("url"):
            raise GatewayError("Square response did not include a payment link")
        return PaymentLink(url=link["url"], link_id=link.get("id"), order_id=link.get("order_id"))

    def check_status(self, invoice_id: str, order_id: str | None = None) -> PaymentStatusResult:
        if not order_id:
            raise GatewayError(f"Invoice {invoice_id} has no Square order to check")

        order = self._request("GET", f"/v2/orders/{order_id}").get("order") or {}
        if order.get("reference_id") not in (None, str(invoice_id)):
            raise GatewayError(f"Square order {order_id} does not belong to invoice {invoice_id}")

        tenders = order.get("tenders") or []
        if order.get("state") != "COMPLETED" or not tenders:
            return PaymentStatusResult(paid=False)

        amount = sum(t.get("amount_money", {}).get("amount", 0) for t in tenders)
        transaction_id = tenders[0].get("payment_id") or tenders[0].get("id")
        return PaymentStatusResult(paid=True, amount=amount, transaction_id=transaction_id)

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        if not signature or not self.config.webhook_signature_key:
            return False

        if isinstance(payload, str):
            payload = payload.encode()
        expected = base64.b64encode(
            hmac.new(
                self.config.webhook_signature_key.encode(),
                self.config.notification_url.encode() + payload,
                hashlib.sha256,
            ).digest()
        ).decode()
        return hmac.compare_digest(signature, expected)


def _error_detail(response: httpx.Response) -> str:
    try:
        errors = response.json().get("errors") or []
    except ValueError:
        return response.text or response.reason_phrase
    if errors:
        return "; ".join(e.get("detail") or e.get("code", "unknown error") for e in errors)
    return response.reason_phrase
