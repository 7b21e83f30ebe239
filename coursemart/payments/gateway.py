"""Razorpay REST client.

Only the two calls the payment flow needs:
- POST /orders to open an order
- GET /payments/{id} to read the payment status during verification

SECURITY: key_secret stays server-side; it is used for basic auth here and
for the callback signature in the payment service.
"""

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from coursemart.config.settings import Settings
from coursemart.core.errors import UpstreamError


logger = structlog.get_logger(__name__)


class GatewayNotConfiguredError(UpstreamError):
    """Razorpay credentials are missing."""

    def __init__(self, message: str = "Payment gateway is not configured") -> None:
        super().__init__(message, "gateway_not_configured")


class GatewayError(UpstreamError):
    """Razorpay request failed."""

    def __init__(self, message: str = "Payment gateway request failed") -> None:
        super().__init__(message, "gateway_error")


@dataclass
class GatewayOrder:
    """Order as returned by the gateway."""

    id: str
    amount: int
    currency: str
    receipt: str
    status: str = "created"

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "GatewayOrder":
        return cls(
            id=data["id"],
            amount=int(data.get("amount", 0)),
            currency=data.get("currency", ""),
            receipt=data.get("receipt", ""),
            status=data.get("status", "created"),
        )


@dataclass
class GatewayPayment:
    """Payment as returned by the gateway."""

    id: str
    status: str
    order_id: str | None = None

    @property
    def is_captured(self) -> bool:
        return self.status == "captured"


class RazorpayGateway:
    """Async Razorpay client built on httpx."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return self.settings.razorpay_configured

    def _client(self) -> httpx.AsyncClient:
        if not self.is_configured:
            raise GatewayNotConfiguredError
        return httpx.AsyncClient(
            base_url=self.settings.razorpay_api_base,
            auth=(self.settings.razorpay_key_id or "", self.settings.razorpay_key_secret or ""),
            timeout=self.settings.razorpay_timeout_seconds,
            transport=self._transport,
            headers={"Accept": "application/json"},
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)

                if response.status_code != httpx.codes.OK:
                    logger.error(
                        "gateway_request_failed",
                        path=path,
                        status_code=response.status_code,
                        response_text=response.text[:500],
                    )
                    raise GatewayError

                return response.json()

        except httpx.TimeoutException as e:
            logger.error("gateway_timeout", path=path, error=str(e))
            raise GatewayError("Payment gateway timeout") from e
        except httpx.RequestError as e:
            logger.error("gateway_request_error", path=path, error=str(e))
            raise GatewayError from e

    async def create_order(self, amount: int, currency: str, receipt: str) -> GatewayOrder:
        """Open an order.

        Args:
            amount: Amount in minor currency units
            currency: ISO currency code
            receipt: Merchant receipt reference

        Raises:
            UpstreamError: If the gateway is unreachable or rejects the order
        """
        data = await self._request(
            "POST",
            "/orders",
            json={"amount": amount, "currency": currency, "receipt": receipt},
        )
        order = GatewayOrder.from_json(data)
        logger.info("gateway_order_created", order_id=order.id, amount=amount)
        return order

    async def fetch_payment(self, payment_id: str) -> GatewayPayment:
        """Read a payment's current gateway status."""
        data = await self._request("GET", f"/payments/{payment_id}")
        return GatewayPayment(
            id=data.get("id", payment_id),
            status=data.get("status", ""),
            order_id=data.get("order_id"),
        )
