"""Tests for the Square adapter against a mocked HTTP transport."""

import base64
import hashlib
import hmac
import json

import httpx
import pytest
from billing.exceptions import GatewayError
from billing.gateway.config import SQUARE_API_VERSION, GatewayConfig
from billing.gateway.square_adapter import SquareGateway

CONFIG = GatewayConfig(
    access_token="sq-token",
    location_id="LOC1",
    webhook_signature_key="whsec",
    notification_url="https://billing.example.com/webhooks/square",
)


def _gateway(handler):
    return SquareGateway(CONFIG, transport=httpx.MockTransport(handler))


class TestCreatePaymentLink:
    def test_request_and_response(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(
                200,
                json={"payment_link": {"id": "PL1", "url": "https://square.link/u/abc", "order_id": "ORD1"}},
            )

        link = _gateway(handler).create_payment_link(
            "inv-1",
            12500,
            payer_contact="owner@example.com",
            description="INV-2026-0001 Roof",
            accepted_channels=["card", "cashAppPay"],
        )

        assert link.url == "https://square.link/u/abc"
        assert link.link_id == "PL1"
        assert link.order_id == "ORD1"

        request = seen["request"]
        assert request.method == "POST"
        assert request.url.path == "/v2/online-checkout/payment-links"
        assert request.headers["Authorization"] == "Bearer sq-token"
        assert request.headers["Square-Version"] == SQUARE_API_VERSION

        body = json.loads(request.content)
        assert body["idempotency_key"] == "inv-1-12500"
        assert body["order"]["reference_id"] == "inv-1"
        assert body["order"]["location_id"] == "LOC1"
        assert body["order"]["line_items"][0]["base_price_money"] == {"amount": 12500, "currency": "USD"}
        assert body["checkout_options"]["accepted_payment_methods"] == {
            "apple_pay": True,
            "google_pay": True,
            "cash_app_pay": True,
        }
        assert body["pre_populated_data"] == {"buyer_email": "owner@example.com"}

    def test_bank_and_gift_card_channels_enable_no_wallets(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"payment_link": {"id": "PL1", "url": "https://square.link/u/abc"}})

        _gateway(handler).create_payment_link("inv-1", 12500, accepted_channels=["bankAccount", "squareGiftCard"])

        assert seen["body"]["checkout_options"]["accepted_payment_methods"] == {
            "apple_pay": False,
            "google_pay": False,
            "cash_app_pay": False,
        }

    def test_error_response(self):
        def handler(request):
            return httpx.Response(401, json={"errors": [{"code": "UNAUTHORIZED", "detail": "Bad token"}]})

        with pytest.raises(GatewayError) as exc_info:
            _gateway(handler).create_payment_link("inv-1", 100)
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Bad token"

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        with pytest.raises(GatewayError, match="timed out"):
            _gateway(handler).create_payment_link("inv-1", 100)

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(GatewayError):
            _gateway(handler).create_payment_link("inv-1", 100)

    def test_missing_url(self):
        with pytest.raises(GatewayError):
            _gateway(lambda request: httpx.Response(200, json={"payment_link": {}})).create_payment_link("inv-1", 100)


class TestCheckStatus:
    def test_completed_order(self):
        def handler(request):
            assert request.url.path == "/v2/orders/ORD1"
            return httpx.Response(
                200,
                json={
                    "order": {
                        "reference_id": "inv-1",
                        "state": "COMPLETED",
                        "tenders": [{"id": "T1", "payment_id": "PAY1", "amount_money": {"amount": 12500}}],
                    }
                },
            )

        status = _gateway(handler).check_status("inv-1", order_id="ORD1")
        assert status.paid is True
        assert status.amount == 12500
        assert status.transaction_id == "PAY1"

    def test_open_order(self):
        def handler(request):
            return httpx.Response(200, json={"order": {"reference_id": "inv-1", "state": "OPEN"}})

        assert _gateway(handler).check_status("inv-1", order_id="ORD1").paid is False

    def test_order_for_another_invoice(self):
        def handler(request):
            return httpx.Response(200, json={"order": {"reference_id": "inv-2", "state": "COMPLETED"}})

        with pytest.raises(GatewayError):
            _gateway(handler).check_status("inv-1", order_id="ORD1")

    def test_no_order_id(self):
        with pytest.raises(GatewayError):
            _gateway(lambda request: httpx.Response(200, json={})).check_status("inv-1")


class TestWebhookSignature:
    def _sign(self, payload):
        digest = hmac.new(b"whsec", CONFIG.notification_url.encode() + payload, hashlib.sha256).digest()
        return base64.b64encode(digest).decode()

    def test_valid_signature(self):
        payload = b'{"event_id": "e1"}'
        gateway = _gateway(lambda request: httpx.Response(200))
        assert gateway.verify_webhook_signature(payload, self._sign(payload)) is True

    def test_tampered_body(self):
        gateway = _gateway(lambda request: httpx.Response(200))
        signature = self._sign(b'{"event_id": "e1"}')
        assert gateway.verify_webhook_signature(b'{"event_id": "e2"}', signature) is False

    def test_missing_signature(self):
        gateway = _gateway(lambda request: httpx.Response(200))
        assert gateway.verify_webhook_signature(b"{}", "") is False
