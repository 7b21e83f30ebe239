"""Pydantic schemas for payments."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from coursemart.payments.gateway import GatewayOrder
from coursemart.payments.models import Payment


class VerifyPaymentRequest(BaseModel):
    """Gateway checkout callback."""

    order_id: str = Field(..., min_length=1)
    payment_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)


class OrderResponse(BaseModel):
    """Opened order; amount is in minor currency units."""

    payment_id: UUID
    order_id: str
    amount: int
    currency: str
    receipt: str
    key_id: str | None = None

    @classmethod
    def from_order(
        cls, payment: Payment, order: GatewayOrder, key_id: str | None
    ) -> "OrderResponse":
        return cls(
            payment_id=payment.id,
            order_id=order.id,
            amount=order.amount,
            currency=order.currency or payment.currency,
            receipt=order.receipt or payment.receipt,
            key_id=key_id,
        )


class PaymentResponse(BaseModel):
    """Payment response."""

    id: UUID
    learner_id: UUID
    course_id: UUID
    admin_id: UUID
    amount: int
    currency: str
    status: str
    gateway_order_id: str
    gateway_payment_id: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, payment: Payment) -> "PaymentResponse":
        data = payment.to_dict()
        data.pop("receipt")
        return cls(**data)


class PaymentListResponse(BaseModel):
    items: list[PaymentResponse]
    total: int

    @classmethod
    def from_entities(cls, payments: list[Payment]) -> "PaymentListResponse":
        return cls(
            items=[PaymentResponse.from_entity(p) for p in payments],
            total=len(payments),
        )


class VerifyPaymentResponse(BaseModel):
    success: bool = True
    message: str = "Payment verified successfully"
    payments: list[PaymentResponse]
