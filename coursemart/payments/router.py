"""Payment API endpoints.

Provides routes for:
- Order creation (learner)
- Checkout verification (gateway callback, no session)
- Payment reads for learners and administrators
"""

from uuid import UUID

from fastapi import APIRouter

from coursemart.auth.dependencies import (
    CurrentAdministrator,
    CurrentLearner,
    OptionalAdministrator,
    OptionalLearner,
)
from coursemart.payments.dependencies import PaymentServiceDep
from coursemart.payments.schemas import (
    OrderResponse,
    PaymentListResponse,
    PaymentResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)


router = APIRouter(prefix="/v1/payments", tags=["payments"])


@router.post(
    "/orders/{course_id}",
    response_model=OrderResponse,
    summary="Create order",
    responses={
        404: {"description": "Course not found or price unavailable"},
        502: {"description": "Payment gateway failure"},
    },
)
async def create_order(
    course_id: UUID,
    learner: CurrentLearner,
    service: PaymentServiceDep,
) -> OrderResponse:
    """Open a gateway order for a course and record a pending payment."""
    payment, order = await service.create_order(learner.id, course_id)
    return OrderResponse.from_order(payment, order, service.settings.razorpay_key_id)


@router.post(
    "/verify",
    response_model=VerifyPaymentResponse,
    summary="Verify payment",
    responses={
        400: {"description": "Invalid signature or payment not captured"},
        404: {"description": "Unknown order"},
    },
)
async def verify_payment(
    data: VerifyPaymentRequest,
    service: PaymentServiceDep,
) -> VerifyPaymentResponse:
    """Check the checkout signature and mark the order's payments successful."""
    payments = await service.verify_payment(data.order_id, data.payment_id, data.signature)
    return VerifyPaymentResponse(
        payments=[PaymentResponse.from_entity(p) for p in payments],
    )


@router.get(
    "/status/{payment_id}",
    response_model=PaymentResponse,
    summary="Payment status",
    responses={
        401: {"description": "Not authenticated"},
        403: {"description": "Not entitled to this payment"},
        404: {"description": "Payment not found"},
    },
)
async def get_payment_status(
    payment_id: UUID,
    service: PaymentServiceDep,
    learner: OptionalLearner,
    admin: OptionalAdministrator,
) -> PaymentResponse:
    """Read a payment as its learner or as the course owner."""
    payment = await service.get_payment_for_viewer(payment_id, learner=learner, admin=admin)
    return PaymentResponse.from_entity(payment)


@router.get("/user", response_model=PaymentListResponse, summary="Learner payments")
async def list_learner_payments(
    learner: CurrentLearner,
    service: PaymentServiceDep,
) -> PaymentListResponse:
    payments = await service.list_learner_payments(learner.id)
    return PaymentListResponse.from_entities(payments)


@router.get("/admin", response_model=PaymentListResponse, summary="Administrator payments")
async def list_admin_payments(
    admin: CurrentAdministrator,
    service: PaymentServiceDep,
) -> PaymentListResponse:
    payments = await service.list_admin_payments(admin.id)
    return PaymentListResponse.from_entities(payments)
