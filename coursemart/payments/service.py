"""Payment service layer.

Business logic for:
- Opening a gateway order for a course purchase
- Verifying the gateway callback and moving payments pending -> success
- Authorized payment reads and purchase checks

States are pending and success only. A payment that is never verified stays
pending.
"""

import hashlib
import hmac
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import status

from coursemart.auth.schemas import AccountResponse
from coursemart.config.settings import Settings
from coursemart.core.errors import (
    AppError,
    ForbiddenError,
    InvalidSignatureError,
    NotFoundError,
    UnauthorizedError,
)
from coursemart.core.logging import get_logger
from coursemart.courses.service import CourseService
from coursemart.payments.gateway import (
    GatewayNotConfiguredError,
    GatewayOrder,
    RazorpayGateway,
)
from coursemart.payments.models import Payment, PaymentStatus


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class PaymentNotFoundError(NotFoundError):
    """Payment or order not found."""

    def __init__(self, message: str = "Payment not found"):
        super().__init__(message, "payment_not_found")


class PaymentNotCapturedError(AppError):
    """Gateway reports the payment as not captured."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Payment not captured"):
        super().__init__(message, "payment_not_captured")


class CourseNotPurchasedError(ForbiddenError):
    """Learner has no successful payment for the course."""

    def __init__(self, message: str = "Course not purchased"):
        super().__init__(message, "course_not_purchased")


def payment_signature(secret: str, order_id: str, payment_id: str) -> str:
    """HMAC-SHA256 hex digest over "order_id|payment_id"."""
    return hmac.new(
        secret.encode(),
        f"{order_id}|{payment_id}".encode(),
        hashlib.sha256,
    ).hexdigest()


# ==============================================================================
# Payment Service
# ==============================================================================


class PaymentService:
    """Service for course purchases."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        settings: Settings,
        course_service: CourseService,
        gateway: RazorpayGateway | None = None,
    ):
        """Initialize with Cassandra session.

        Args:
            session: Cassandra driver session
            keyspace: Keyspace name for queries
            settings: Application settings (gateway secret and currency)
            course_service: Used to price orders and check course ownership
            gateway: Razorpay client; built from settings when omitted
        """
        self.session = session
        self.keyspace = keyspace
        self.settings = settings
        self.course_service = course_service
        self.gateway = gateway or RazorpayGateway(settings)
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._get_payment_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.payments WHERE id = ?"
        )
        self._insert_payment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.payments
            (id, learner_id, course_id, admin_id, amount, currency, receipt,
             status, gateway_order_id, gateway_payment_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._mark_success = self.session.prepare(f"""
            UPDATE {self.keyspace}.payments
            SET status = ?, gateway_payment_id = ?, updated_at = ?
            WHERE id = ?
            IF status = ?
        """)

        # Lookup tables
        self._insert_payment_by_order = self.session.prepare(
            f"INSERT INTO {self.keyspace}.payments_by_order "
            "(gateway_order_id, payment_id) VALUES (?, ?)"
        )
        self._get_payments_by_order = self.session.prepare(
            f"SELECT payment_id FROM {self.keyspace}.payments_by_order "
            "WHERE gateway_order_id = ?"
        )
        self._insert_payment_by_learner = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.payments_by_learner
            (learner_id, created_at, payment_id, course_id)
            VALUES (?, ?, ?, ?)
        """)
        self._get_payments_by_learner = self.session.prepare(
            f"SELECT payment_id, course_id FROM {self.keyspace}.payments_by_learner "
            "WHERE learner_id = ?"
        )
        self._insert_payment_by_admin = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.payments_by_admin
            (admin_id, created_at, payment_id)
            VALUES (?, ?, ?)
        """)
        self._get_payments_by_admin = self.session.prepare(
            f"SELECT payment_id FROM {self.keyspace}.payments_by_admin "
            "WHERE admin_id = ?"
        )

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_payment(self, payment_id: UUID) -> Payment | None:
        """Get payment by ID."""
        result = await self.session.aexecute(self._get_payment_by_id, [payment_id])
        row = result.one()
        return Payment.from_row(row) if row else None

    async def require_payment(self, payment_id: UUID) -> Payment:
        payment = await self.get_payment(payment_id)
        if payment is None:
            raise PaymentNotFoundError
        return payment

    async def _load(self, payment_ids: list[UUID]) -> list[Payment]:
        payments = []
        for payment_id in payment_ids:
            payment = await self.get_payment(payment_id)
            if payment:
                payments.append(payment)
        return payments

    async def get_order_payments(self, order_id: str) -> list[Payment]:
        """Payments created for a gateway order."""
        rows = await self.session.aexecute(self._get_payments_by_order, [order_id])
        return await self._load([row.payment_id for row in rows])

    async def list_learner_payments(self, learner_id: UUID) -> list[Payment]:
        """A learner's payments, newest first."""
        rows = await self.session.aexecute(self._get_payments_by_learner, [learner_id])
        return await self._load([row.payment_id for row in rows])

    async def list_admin_payments(self, admin_id: UUID) -> list[Payment]:
        """Payments for courses the administrator owned at order time."""
        rows = await self.session.aexecute(self._get_payments_by_admin, [admin_id])
        return await self._load([row.payment_id for row in rows])

    async def purchased_course_ids(self, learner_id: UUID) -> list[UUID]:
        """Courses the learner has a successful payment for."""
        course_ids: list[UUID] = []
        for payment in await self.list_learner_payments(learner_id):
            if payment.is_successful and payment.course_id not in course_ids:
                course_ids.append(payment.course_id)
        return course_ids

    async def has_purchased(self, learner_id: UUID, course_id: UUID) -> bool:
        """Check for a successful payment of the course by the learner."""
        rows = await self.session.aexecute(self._get_payments_by_learner, [learner_id])
        candidates = [row.payment_id for row in rows if row.course_id == course_id]
        return any(p.is_successful for p in await self._load(candidates))

    async def require_purchase(self, learner_id: UUID, course_id: UUID) -> None:
        """Raise CourseNotPurchasedError unless the learner bought the course."""
        if not await self.has_purchased(learner_id, course_id):
            raise CourseNotPurchasedError

    async def get_payment_for_viewer(
        self,
        payment_id: UUID,
        learner: AccountResponse | None = None,
        admin: AccountResponse | None = None,
    ) -> Payment:
        """Read a payment as a learner or an administrator.

        A learner reads only their own payments. An administrator reads
        payments of courses they currently own.

        Raises:
            UnauthorizedError: If neither actor is authenticated
            PaymentNotFoundError: If the payment does not exist
            ForbiddenError: If the viewer is not entitled to the payment
        """
        if learner is None and admin is None:
            raise UnauthorizedError

        payment = await self.require_payment(payment_id)

        if learner is not None:
            if payment.learner_id == learner.id:
                return payment
            if admin is None:
                raise ForbiddenError("Unauthorized access to payment details")

        if admin is not None:
            course = await self.course_service.get_course(payment.course_id)
            if course is not None and course.owner_id == admin.id:
                return payment

        raise ForbiddenError("Unauthorized access to payment details")

    # ==========================================================================
    # Commands
    # ==========================================================================

    async def create_order(
        self, learner_id: UUID, course_id: UUID
    ) -> tuple[Payment, GatewayOrder]:
        """Open a gateway order and record a pending payment.

        Raises:
            NotFoundError: If the course is missing or has no price
            UpstreamError: If the gateway fails
        """
        course = await self.course_service.get_course(course_id)
        if course is None or not course.price:
            raise NotFoundError("Course not found or price unavailable", "course_not_found")

        receipt = f"receipt_{course.id}_{int(time.time() * 1000)}"
        order = await self.gateway.create_order(
            amount=course.price * 100,
            currency=self.settings.payment_currency,
            receipt=receipt,
        )

        payment = Payment(
            learner_id=learner_id,
            course_id=course.id,
            admin_id=course.owner_id,
            amount=course.price,
            currency=self.settings.payment_currency,
            receipt=receipt,
            gateway_order_id=order.id,
        )
        await self.session.aexecute(
            self._insert_payment,
            [
                payment.id,
                payment.learner_id,
                payment.course_id,
                payment.admin_id,
                payment.amount,
                payment.currency,
                payment.receipt,
                payment.status.value,
                payment.gateway_order_id,
                payment.gateway_payment_id,
                payment.created_at,
                payment.updated_at,
            ],
        )
        await self.session.aexecute(
            self._insert_payment_by_order, [payment.gateway_order_id, payment.id]
        )
        await self.session.aexecute(
            self._insert_payment_by_learner,
            [payment.learner_id, payment.created_at, payment.id, payment.course_id],
        )
        await self.session.aexecute(
            self._insert_payment_by_admin,
            [payment.admin_id, payment.created_at, payment.id],
        )

        logger.info(
            "payment_order_created",
            payment_id=str(payment.id),
            order_id=order.id,
            course_id=str(course.id),
            amount=order.amount,
        )
        return payment, order

    async def verify_payment(
        self, order_id: str, payment_id: str, signature: str
    ) -> list[Payment]:
        """Verify a gateway callback and mark the order's payments successful.

        Nothing is written unless the signature matches and the gateway
        reports the payment as captured. Payments already successful are
        left as they are, so repeating a verification is a no-op.

        Raises:
            GatewayNotConfiguredError: If the gateway secret is missing
            InvalidSignatureError: If the signature does not match
            PaymentNotFoundError: If no payment exists for the order
            PaymentNotCapturedError: If the gateway status is not captured
        """
        secret = self.settings.razorpay_key_secret
        if not secret:
            raise GatewayNotConfiguredError

        expected = payment_signature(secret, order_id, payment_id)
        if not hmac.compare_digest(expected.encode(), signature.encode()):
            logger.warning("payment_signature_invalid", order_id=order_id)
            raise InvalidSignatureError("Payment verification failed: Invalid signature")

        payments = await self.get_order_payments(order_id)
        if not payments:
            raise PaymentNotFoundError("No payment found for this order")

        gateway_payment = await self.gateway.fetch_payment(payment_id)
        if not gateway_payment.is_captured:
            logger.warning(
                "payment_not_captured",
                order_id=order_id,
                gateway_status=gateway_payment.status,
            )
            raise PaymentNotCapturedError

        verified = []
        for payment in payments:
            if payment.status == PaymentStatus.PENDING:
                now = datetime.now(UTC)
                result = await self.session.aexecute(
                    self._mark_success,
                    [
                        PaymentStatus.SUCCESS.value,
                        payment_id,
                        now,
                        payment.id,
                        PaymentStatus.PENDING.value,
                    ],
                )
                if result.was_applied:
                    payment.status = PaymentStatus.SUCCESS
                    payment.gateway_payment_id = payment_id
                    payment.updated_at = now
                    logger.info(
                        "payment_verified",
                        payment_id=str(payment.id),
                        order_id=order_id,
                    )
                else:
                    # Another verification won; read what it wrote
                    payment = await self.require_payment(payment.id)
            verified.append(payment)

        return verified
