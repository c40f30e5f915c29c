"""
Tests for transactional email via Resend.

resend.Emails.send is patched; the blocking call still runs through the
thread pool executor.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import threading
import time
from unittest.mock import MagicMock, patch

import pytest

from config import settings
from exceptions import EmailDeliveryError
from services import email_service
from services.async_executor import run_blocking


@pytest.fixture
def resend_key(monkeypatch):
    monkeypatch.setattr(settings, "resend_api_key", "re_test_key")


class TestSendEmail:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cod_code_email(self, resend_key):
        with patch("resend.Emails.send", new=MagicMock(return_value={"id": "em_123"})) as send:
            message_id = await email_service.send_cod_verification_email(
                to="buyer@example.com", code="042137", pending_order_id=9, total_amount=998.0
            )

        assert message_id == "em_123"
        payload = send.call_args.args[0]
        assert payload["to"] == ["buyer@example.com"]
        assert payload["from"] == settings.email_from
        assert payload["subject"] == "Verify your COD order #9"
        assert "042137" in payload["text"]
        assert "042137" in payload["html"]
        assert f"{settings.cod_code_ttl_minutes} minutes" in payload["text"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_order_confirmation_lists_items(self, resend_key):
        order = {
            "_id": "42",
            "totalAmount": 998.0,
            "orderItems": [{"name": "Classic Tee", "quantity": 2, "price": 499.0}],
        }
        with patch("resend.Emails.send", new=MagicMock(return_value={"id": "em_2"})) as send:
            await email_service.send_order_confirmation_email(to="buyer@example.com", order=order)

        payload = send.call_args.args[0]
        assert "Classic Tee x2" in payload["text"]
        assert "/order/42" in payload["html"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancel_request_escapes_html(self, resend_key):
        with patch("resend.Emails.send", new=MagicMock(return_value={"id": "em_3"})) as send:
            await email_service.send_cancel_request_email(
                to="admin@example.com",
                order_id=42,
                product_name="Tee <b>",
                customer_name="Asha",
                customer_email="asha@example.com",
                reason="Wrong size",
            )
        payload = send.call_args.args[0]
        assert "Tee &lt;b&gt;" in payload["html"]
        assert payload["subject"] == "Cancellation request for order #42"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_provider_error_is_wrapped(self, resend_key):
        with patch("resend.Emails.send", new=MagicMock(side_effect=RuntimeError("quota exceeded"))):
            with pytest.raises(EmailDeliveryError) as exc_info:
                await email_service.send_email(to="a@example.com", subject="s", html_body="h", text_body="t")
        assert "quota exceeded" in str(exc_info.value)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_response_without_id(self, resend_key):
        with patch("resend.Emails.send", new=MagicMock(return_value={})):
            with pytest.raises(EmailDeliveryError):
                await email_service.send_email(to="a@example.com", subject="s", html_body="h", text_body="t")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_api_key(self, monkeypatch):
        monkeypatch.setattr(settings, "resend_api_key", "")
        with pytest.raises(EmailDeliveryError):
            await email_service.send_email(to="a@example.com", subject="s", html_body="h", text_body="t")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_recipient(self, resend_key):
        with pytest.raises(EmailDeliveryError):
            await email_service.send_email(to="", subject="s", html_body="h", text_body="t")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_slow_provider_times_out(self, resend_key, monkeypatch):
        monkeypatch.setattr(settings, "email_timeout_seconds", 0.05)

        def _slow(_payload):
            time.sleep(0.3)
            return {"id": "late"}

        with patch("resend.Emails.send", new=MagicMock(side_effect=_slow)):
            with pytest.raises(EmailDeliveryError, match="did not answer"):
                await email_service.send_email(to="a@example.com", subject="s", html_body="h", text_body="t")


class TestRunBlocking:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_runs_off_the_event_loop_thread(self):
        caller = threading.get_ident()
        worker = await run_blocking(threading.get_ident)
        assert worker != caller

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_passes_arguments(self):
        assert await run_blocking(max, 3, 7, key=lambda v: -v) == 3
