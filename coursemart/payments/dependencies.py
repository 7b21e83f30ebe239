"""FastAPI dependencies for payments."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from coursemart.payments.service import PaymentService


async def get_payment_service(request: Request) -> PaymentService:
    """Get payment service from app state.

    Args:
        request: FastAPI request

    Returns:
        PaymentService instance
    """
    app_state = request.app.state
    if not getattr(app_state, "payment_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment service unavailable",
        )
    return app_state.payment_service


# Type alias for dependency injection
PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]
