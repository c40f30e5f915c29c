"""
Tests for the Delhivery shipment client.

HTTP calls are mocked at httpx.AsyncClient.post.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import json
from unittest.mock import AsyncMock, patch
from urllib.parse import unquote

import httpx
import pytest

from config import settings
from exceptions import ShippingPartnerError
from services import delivery_service

CMU_URL = "https://track.delhivery.com/api/cmu/create.json"


def _order_doc(payment_method="razorpay"):
    return {
        "_id": "42",
        "paymentMethod": payment_method,
        "totalAmount": 998.0,
        "createdAt": "2024-05-01T10:30:00",
        "shippingAddress": {
            "firstName": "Asha",
            "lastName": "Rao",
            "phoneNumber": "9876543210",
            "address1": "12 MG Road",
            "address2": "Near Metro",
            "city": "Bengaluru",
            "state": "Karnataka",
            "zipCode": "560001",
            "country": "India",
        },
        "orderItems": [
            {"name": "Classic Tee", "quantity": 2},
            {"name": "Cap", "qty": 1},
        ],
    }


def _response(status_code, payload):
    return httpx.Response(status_code, json=payload, request=httpx.Request("POST", CMU_URL))


class TestBuildShipmentPayload:

    @pytest.mark.unit
    def test_prepaid_payload(self):
        payload = delivery_service.build_shipment_payload(_order_doc())
        assert payload["name"] == "Asha Rao"
        assert payload["add"] == "12 MG Road, Near Metro"
        assert payload["pin"] == "560001"
        assert payload["payment_mode"] == "Prepaid"
        assert payload["cod_amount"] == "0"
        assert payload["total_amount"] == "998.0"
        assert payload["quantity"] == "3"
        assert payload["products_desc"] == "Classic Tee, Cap"
        assert payload["order_date"] == "2024-05-01"
        assert payload["weight"] == "500"
        assert payload["shipment_length"] == "10"
        assert payload["shipping_mode"] == "Surface"
        assert payload["return_pin"] == settings.warehouse_pincode

    @pytest.mark.unit
    def test_cod_payload_collects_total(self):
        payload = delivery_service.build_shipment_payload(
            _order_doc("cod"), weight=1200, dimensions={"width": 20}, shipping_mode="Express"
        )
        assert payload["payment_mode"] == "COD"
        assert payload["cod_amount"] == "998.0"
        assert payload["weight"] == "1200"
        assert payload["shipment_width"] == "20"
        assert payload["shipment_height"] == "10"
        assert payload["shipping_mode"] == "Express"


class TestCreateShipment:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success(self):
        shipment = delivery_service.build_shipment_payload(_order_doc())
        response = _response(200, {
            "success": True,
            "upload_wbn": "UPL-77",
            "packages": [{"waybill": "WB123", "status": "Success"}],
        })
        with patch("httpx.AsyncClient.post", new=AsyncMock(return_value=response)) as post:
            result = await delivery_service.create_shipment(shipment, pickup_location="Main Warehouse")

        assert result["waybills"] == ["WB123"]
        assert result["manifest_id"] == "UPL-77"

        url = post.await_args.args[0]
        kwargs = post.await_args.kwargs
        assert url == CMU_URL
        assert kwargs["headers"]["Authorization"] == f"Token {settings.delhivery_auth_token}"
        body = kwargs["content"]
        assert body.startswith("format=json&data=")
        data = json.loads(unquote(body[len("format=json&data="):]))
        assert data["pickup_location"] == {"name": "Main Warehouse"}
        assert data["shipments"][0]["order"] == "42"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rejected_manifest(self):
        response = _response(200, {"success": False, "rmk": "Pincode not serviceable"})
        with patch("httpx.AsyncClient.post", new=AsyncMock(return_value=response)):
            with pytest.raises(ShippingPartnerError) as exc_info:
                await delivery_service.create_shipment({"order": "42"})
        assert exc_info.value.remark == "Pincode not serviceable"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_http_error(self):
        response = _response(401, {"detail": "bad token"})
        with patch("httpx.AsyncClient.post", new=AsyncMock(return_value=response)):
            with pytest.raises(ShippingPartnerError) as exc_info:
                await delivery_service.create_shipment({"order": "42"})
        assert "401" in str(exc_info.value)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_waybill(self):
        response = _response(200, {"success": True, "packages": []})
        with patch("httpx.AsyncClient.post", new=AsyncMock(return_value=response)):
            with pytest.raises(ShippingPartnerError):
                await delivery_service.create_shipment({"order": "42"})

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unreachable(self):
        with patch("httpx.AsyncClient.post", new=AsyncMock(side_effect=httpx.ConnectTimeout("timed out"))):
            with pytest.raises(ShippingPartnerError) as exc_info:
                await delivery_service.create_shipment({"order": "42"})
        assert exc_info.value.remark == "timed out"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_token(self, monkeypatch):
        monkeypatch.setattr(settings, "delhivery_auth_token", "")
        with pytest.raises(ShippingPartnerError):
            await delivery_service.create_shipment({"order": "42"})
