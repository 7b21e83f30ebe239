"""Tests for the Razorpay client over a mocked HTTP transport."""

import base64
import json

import httpx
import pytest

from coursemart.config.settings import Settings
from coursemart.payments.gateway import (
    GatewayError,
    GatewayNotConfiguredError,
    RazorpayGateway,
)


@pytest.fixture
def settings() -> Settings:
    return Settings(razorpay_key_id="rzp_test_key", razorpay_key_secret="rzp_test_secret")


def _gateway(settings: Settings, handler) -> RazorpayGateway:
    return RazorpayGateway(settings, transport=httpx.MockTransport(handler))


class TestCreateOrder:
    @pytest.mark.asyncio
    async def test_posts_order_with_basic_auth(self, settings: Settings) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "id": "order_9A33XWu170gUtm",
                    "amount": 50000,
                    "currency": "INR",
                    "receipt": "receipt_1",
                    "status": "created",
                },
            )

        order = await _gateway(settings, handler).create_order(50000, "INR", "receipt_1")

        assert order.id == "order_9A33XWu170gUtm"
        assert order.amount == 50000
        assert seen["method"] == "POST"
        assert seen["path"] == "/v1/orders"
        assert seen["body"] == {"amount": 50000, "currency": "INR", "receipt": "receipt_1"}
        expected = base64.b64encode(b"rzp_test_key:rzp_test_secret").decode()
        assert seen["auth"] == f"Basic {expected}"

    @pytest.mark.asyncio
    async def test_rejected_order_is_upstream_error(self, settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": {"description": "bad amount"}})

        with pytest.raises(GatewayError) as exc_info:
            await _gateway(settings, handler).create_order(0, "INR", "r")
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_network_failure_is_upstream_error(self, settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GatewayError):
            await _gateway(settings, handler).create_order(100, "INR", "r")

    @pytest.mark.asyncio
    async def test_not_configured(self) -> None:
        gateway = RazorpayGateway(Settings(razorpay_key_id=None, razorpay_key_secret=None))
        with pytest.raises(GatewayNotConfiguredError):
            await gateway.create_order(100, "INR", "r")


class TestFetchPayment:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(("status", "captured"), [("captured", True), ("authorized", False)])
    async def test_status(self, settings: Settings, status: str, captured: bool) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/payments/pay_1"
            return httpx.Response(
                200, json={"id": "pay_1", "status": status, "order_id": "order_1"}
            )

        payment = await _gateway(settings, handler).fetch_payment("pay_1")

        assert payment.status == status
        assert payment.is_captured is captured
        assert payment.order_id == "order_1"
