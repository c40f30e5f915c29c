"""
Tests for the Razorpay service.

Tests: webhook / checkout signatures (fail closed), event routing,
notes.order_id extraction, gateway order creation with a mocked HTTP client.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import hashlib
import hmac
import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from config import settings
from domain.errors import ValidationError
from exceptions import PaymentGatewayError
from services import razorpay_service


def _sign(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def _captured_event(order_id="42", notes_on="payment"):
    payment = {"id": "pay_ABC", "status": "captured", "method": "card", "email": "b@example.com", "contact": "+919876543210"}
    order = {"id": "order_XYZ"}
    if notes_on == "payment":
        payment["notes"] = {"order_id": order_id}
    elif notes_on == "order":
        order["notes"] = {"order_id": order_id}
    return {
        "event": "payment.captured",
        "payload": {"payment": {"entity": payment}, "order": {"entity": order}},
    }


class TestWebhookSignature:

    @pytest.mark.unit
    def test_valid_signature(self):
        body = b'{"event":"payment.captured"}'
        sig = _sign(settings.razorpay_webhook_secret, body)
        assert razorpay_service.verify_webhook_signature(body, sig) is True

    @pytest.mark.unit
    def test_tampered_body_rejected(self):
        body = json.dumps({"event": "payment.captured", "amount": 100}).encode()
        sig = _sign(settings.razorpay_webhook_secret, body)
        tampered = json.dumps({"event": "payment.captured", "amount": 1}).encode()
        assert razorpay_service.verify_webhook_signature(tampered, sig) is False

    @pytest.mark.unit
    def test_missing_signature_rejected(self):
        assert razorpay_service.verify_webhook_signature(b"{}", None) is False
        assert razorpay_service.verify_webhook_signature(b"{}", "") is False

    @pytest.mark.unit
    def test_fails_closed_without_secret(self, monkeypatch):
        body = b"{}"
        sig = _sign("", body)
        monkeypatch.setattr(settings, "razorpay_webhook_secret", "")
        assert razorpay_service.verify_webhook_signature(body, sig) is False

    @pytest.mark.unit
    def test_non_ascii_signature_is_a_mismatch(self):
        assert razorpay_service.verify_webhook_signature(b"{}", "\u00e9abc") is False
        assert razorpay_service.verify_webhook_signature(b"{}", "\udce9abc") is False


class TestPaymentSignature:

    @pytest.mark.unit
    def test_checkout_signature(self):
        sig = _sign(settings.razorpay_key_secret, b"order_XYZ|pay_ABC")
        assert razorpay_service.verify_payment_signature("order_XYZ", "pay_ABC", sig) is True
        assert razorpay_service.verify_payment_signature("order_XYZ", "pay_OTHER", sig) is False

    @pytest.mark.unit
    def test_fails_closed_without_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "razorpay_key_secret", "")
        assert razorpay_service.verify_payment_signature("o", "p", _sign("", b"o|p")) is False

    @pytest.mark.unit
    def test_non_ascii_signature_is_a_mismatch(self):
        assert razorpay_service.verify_payment_signature("o", "p", "\u00e9abc") is False


class TestEventParsing:

    @pytest.mark.unit
    def test_order_id_from_payment_notes(self):
        assert razorpay_service.extract_order_id(_captured_event(notes_on="payment")) == "42"

    @pytest.mark.unit
    def test_order_id_from_order_notes(self):
        assert razorpay_service.extract_order_id(_captured_event(notes_on="order")) == "42"

    @pytest.mark.unit
    def test_order_id_missing(self):
        assert razorpay_service.extract_order_id(_captured_event(notes_on=None)) is None
        assert razorpay_service.extract_order_id({"event": "order.paid"}) is None

    @pytest.mark.unit
    def test_payment_result(self):
        result = razorpay_service.build_payment_result(_captured_event())
        assert result == {
            "id": "pay_ABC",
            "status": "captured",
            "method": "card",
            "email": "b@example.com",
            "contact": "+919876543210",
        }

    @pytest.mark.unit
    @pytest.mark.parametrize("event_type,kind", [
        ("payment.captured", "payment"),
        ("order.paid", "payment"),
        ("refund.created", "acknowledged"),
        ("payment.failed", "acknowledged"),
        ("subscription.charged", "unknown"),
        (None, "unknown"),
    ])
    def test_classify_event(self, event_type, kind):
        assert razorpay_service.classify_event(event_type) == kind


class TestProcessWebhookEvent:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_acknowledged_event_does_not_touch_orders(self):
        with patch("services.order_service.handle_payment_success", new=AsyncMock()) as handler:
            result = await razorpay_service.process_webhook_event({"event": "refund.created"}, db=None)
        assert result == {"status": "ok"}
        handler.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_order_id_is_400(self):
        with pytest.raises(ValidationError) as exc_info:
            await razorpay_service.process_webhook_event(_captured_event(notes_on=None), db=None)
        assert exc_info.value.status_code == 400

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_payment_event_invokes_handler(self):
        with patch("services.order_service.handle_payment_success", new=AsyncMock()) as handler:
            result = await razorpay_service.process_webhook_event(_captured_event(), db="db")
        assert result == {"status": "ok"}
        kwargs = handler.await_args.kwargs
        assert kwargs["order_id"] == "42"
        assert kwargs["provider"] == "razorpay"
        assert kwargs["payment_result"]["id"] == "pay_ABC"


class TestCreateGatewayOrder:

    @pytest.mark.unit
    def test_to_paise(self):
        assert razorpay_service.to_paise(499.99) == 49999
        assert razorpay_service.to_paise(0.1 + 0.2) == 30

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_posts_order_with_notes(self):
        response = httpx.Response(
            200,
            json={"id": "order_XYZ", "amount": 99800, "currency": "INR"},
            request=httpx.Request("POST", "https://api.razorpay.com/v1/orders"),
        )
        with patch("httpx.AsyncClient.post", new=AsyncMock(return_value=response)) as post:
            data = await razorpay_service.create_gateway_order(order_id=42, amount=998.0)

        assert data["id"] == "order_XYZ"
        url = post.await_args.args[0]
        body = post.await_args.kwargs["json"]
        assert url.endswith("/orders")
        assert body["amount"] == 99800
        assert body["notes"] == {"order_id": "42"}
        assert body["receipt"] == "order_42"
        assert post.await_args.kwargs["auth"] == (settings.razorpay_key_id, settings.razorpay_key_secret)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_gateway_rejection(self):
        response = httpx.Response(
            400,
            json={"error": {"description": "bad amount"}},
            request=httpx.Request("POST", "https://api.razorpay.com/v1/orders"),
        )
        with patch("httpx.AsyncClient.post", new=AsyncMock(return_value=response)):
            with pytest.raises(PaymentGatewayError):
                await razorpay_service.create_gateway_order(order_id=1, amount=10)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_gateway_unreachable(self):
        with patch("httpx.AsyncClient.post", new=AsyncMock(side_effect=httpx.ConnectError("boom"))):
            with pytest.raises(PaymentGatewayError):
                await razorpay_service.create_gateway_order(order_id=1, amount=10)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_requires_keys(self, monkeypatch):
        monkeypatch.setattr(settings, "razorpay_key_id", "")
        with pytest.raises(PaymentGatewayError):
            await razorpay_service.create_gateway_order(order_id=1, amount=10)
