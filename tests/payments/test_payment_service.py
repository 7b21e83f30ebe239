"""Tests for the payment state machine.

Order creation, callback verification (signature, capture check, idempotent
pending -> success) and authorized reads.
"""

import hashlib
import hmac
from itertools import count
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest

from coursemart.auth.schemas import AccountResponse
from coursemart.config.settings import Settings
from coursemart.core.errors import (
    ForbiddenError,
    InvalidSignatureError,
    NotFoundError,
    UnauthorizedError,
    UpstreamError,
)
from coursemart.payments.gateway import (
    GatewayError,
    GatewayNotConfiguredError,
    GatewayOrder,
    GatewayPayment,
)
from coursemart.payments.models import PaymentStatus
from coursemart.payments.service import (
    CourseNotPurchasedError,
    PaymentNotCapturedError,
    PaymentNotFoundError,
    PaymentService,
    payment_signature,
)
from tests.cassandra_fakes import FakePaymentTables, make_session
from tests.conftest import KEYSPACE


SECRET = "rzp_test_secret"


@pytest.fixture
def settings() -> Settings:
    return Settings(razorpay_key_id="rzp_test_key", razorpay_key_secret=SECRET)


@pytest.fixture
def tables() -> FakePaymentTables:
    return FakePaymentTables()


@pytest.fixture
def course(course_factory):
    return course_factory(price=500)


@pytest.fixture
def course_service(course) -> Mock:
    service = Mock()
    courses = {course.id: course}
    service.get_course = AsyncMock(side_effect=lambda course_id: courses.get(course_id))
    return service


@pytest.fixture
def gateway() -> Mock:
    order_ids = count(1)

    async def create_order(amount: int, currency: str, receipt: str) -> GatewayOrder:
        return GatewayOrder(
            id=f"order_{next(order_ids)}", amount=amount, currency=currency, receipt=receipt
        )

    gateway = Mock()
    gateway.create_order = AsyncMock(side_effect=create_order)
    gateway.fetch_payment = AsyncMock(
        side_effect=lambda payment_id: GatewayPayment(id=payment_id, status="captured")
    )
    return gateway


@pytest.fixture
def service(settings, tables, course_service, gateway) -> PaymentService:
    return PaymentService(
        session=make_session(tables.execute),
        keyspace=KEYSPACE,
        settings=settings,
        course_service=course_service,
        gateway=gateway,
    )


def _viewer(account_factory, account_id=None) -> AccountResponse:
    account = account_factory()
    if account_id is not None:
        account.id = account_id
    return AccountResponse.from_account(account)


class TestCreateOrder:
    @pytest.mark.asyncio
    async def test_amount_in_minor_units(self, service, gateway, tables, course) -> None:
        learner_id = uuid4()

        payment, order = await service.create_order(learner_id, course.id)

        kwargs = gateway.create_order.await_args.kwargs
        assert kwargs["amount"] == 50000
        assert kwargs["currency"] == "INR"
        assert kwargs["receipt"].startswith(f"receipt_{course.id}_")
        assert order.amount == 50000
        assert payment.status == PaymentStatus.PENDING
        assert payment.amount == 500
        assert payment.admin_id == course.owner_id
        assert tables.payments[payment.id]["status"] == "pending"
        assert tables.by_order[order.id] == [payment.id]

    @pytest.mark.asyncio
    async def test_unknown_course(self, service, gateway) -> None:
        with pytest.raises(NotFoundError, match="Course not found or price unavailable"):
            await service.create_order(uuid4(), uuid4())
        gateway.create_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_free_course_has_no_order(self, service, course) -> None:
        course.price = 0
        with pytest.raises(NotFoundError):
            await service.create_order(uuid4(), course.id)

    @pytest.mark.asyncio
    async def test_gateway_failure_stores_nothing(
        self, service, gateway, tables, course
    ) -> None:
        gateway.create_order.side_effect = GatewayError()

        with pytest.raises(UpstreamError) as exc_info:
            await service.create_order(uuid4(), course.id)
        assert exc_info.value.status_code == 502
        assert tables.payments == {}


class TestVerifyPayment:
    @pytest.mark.asyncio
    async def test_invalid_signature_never_mutates(
        self, service, gateway, tables, course
    ) -> None:
        payment, order = await service.create_order(uuid4(), course.id)

        with pytest.raises(InvalidSignatureError):
            await service.verify_payment(order.id, "pay_1", "0" * 64)

        assert tables.payments[payment.id]["status"] == "pending"
        assert tables.status_writes == 0
        gateway.fetch_payment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_ascii_signature_rejected(self, service, gateway, tables, course) -> None:
        payment, order = await service.create_order(uuid4(), course.id)

        with pytest.raises(InvalidSignatureError):
            await service.verify_payment(order.id, "pay_1", "sïgnature")

        assert tables.payments[payment.id]["status"] == "pending"
        assert tables.status_writes == 0
        gateway.fetch_payment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_signature_over_other_payment_rejected(
        self, service, tables, course
    ) -> None:
        _, order = await service.create_order(uuid4(), course.id)
        signature = payment_signature(SECRET, order.id, "pay_other")

        with pytest.raises(InvalidSignatureError):
            await service.verify_payment(order.id, "pay_1", signature)
        assert tables.status_writes == 0

    @pytest.mark.asyncio
    async def test_not_captured(self, service, gateway, tables, course) -> None:
        payment, order = await service.create_order(uuid4(), course.id)
        gateway.fetch_payment.side_effect = None
        gateway.fetch_payment.return_value = GatewayPayment(id="pay_1", status="authorized")

        with pytest.raises(PaymentNotCapturedError) as exc_info:
            await service.verify_payment(
                order.id, "pay_1", payment_signature(SECRET, order.id, "pay_1")
            )
        assert exc_info.value.status_code == 400
        assert tables.payments[payment.id]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_success_then_idempotent(self, service, tables, course) -> None:
        """Order for a 500 course, verify twice: one success row, one write."""
        payment, order = await service.create_order(uuid4(), course.id)
        signature = payment_signature(SECRET, order.id, "pay_1")

        first = await service.verify_payment(order.id, "pay_1", signature)
        assert [p.status for p in first] == [PaymentStatus.SUCCESS]
        assert tables.payments[payment.id]["gateway_payment_id"] == "pay_1"

        second = await service.verify_payment(order.id, "pay_1", signature)
        assert [p.status for p in second] == [PaymentStatus.SUCCESS]

        assert tables.status_writes == 1
        assert len(tables.payments) == 1
        assert tables.payments[payment.id]["status"] == "success"

    @pytest.mark.asyncio
    async def test_unknown_order(self, service) -> None:
        with pytest.raises(PaymentNotFoundError):
            await service.verify_payment(
                "order_missing", "pay_1", payment_signature(SECRET, "order_missing", "pay_1")
            )

    @pytest.mark.asyncio
    async def test_secret_not_configured(self, tables, course_service, gateway) -> None:
        service = PaymentService(
            session=make_session(tables.execute),
            keyspace=KEYSPACE,
            settings=Settings(razorpay_key_id=None, razorpay_key_secret=None),
            course_service=course_service,
            gateway=gateway,
        )
        with pytest.raises(GatewayNotConfiguredError):
            await service.verify_payment("order_1", "pay_1", "sig")


class TestPaymentReads:
    @pytest.mark.asyncio
    async def test_learner_reads_own_payment(self, service, course, account_factory) -> None:
        learner = _viewer(account_factory)
        payment, _ = await service.create_order(learner.id, course.id)

        found = await service.get_payment_for_viewer(payment.id, learner=learner)
        assert found.id == payment.id

    @pytest.mark.asyncio
    async def test_learner_cannot_read_others(self, service, course, account_factory) -> None:
        payment, _ = await service.create_order(uuid4(), course.id)

        with pytest.raises(ForbiddenError):
            await service.get_payment_for_viewer(payment.id, learner=_viewer(account_factory))

    @pytest.mark.asyncio
    async def test_course_owner_reads_payment(self, service, course, account_factory) -> None:
        payment, _ = await service.create_order(uuid4(), course.id)
        owner = _viewer(account_factory, account_id=course.owner_id)

        found = await service.get_payment_for_viewer(payment.id, admin=owner)
        assert found.id == payment.id

    @pytest.mark.asyncio
    async def test_other_administrator_forbidden(
        self, service, course, account_factory
    ) -> None:
        payment, _ = await service.create_order(uuid4(), course.id)

        with pytest.raises(ForbiddenError):
            await service.get_payment_for_viewer(payment.id, admin=_viewer(account_factory))

    @pytest.mark.asyncio
    async def test_anonymous_unauthorized(self, service) -> None:
        with pytest.raises(UnauthorizedError):
            await service.get_payment_for_viewer(uuid4())

    @pytest.mark.asyncio
    async def test_missing_payment(self, service, account_factory) -> None:
        with pytest.raises(PaymentNotFoundError):
            await service.get_payment_for_viewer(uuid4(), learner=_viewer(account_factory))


class TestPurchases:
    @pytest.mark.asyncio
    async def test_pending_payment_is_not_a_purchase(self, service, course) -> None:
        learner_id = uuid4()
        await service.create_order(learner_id, course.id)

        assert await service.has_purchased(learner_id, course.id) is False
        assert await service.purchased_course_ids(learner_id) == []
        with pytest.raises(CourseNotPurchasedError):
            await service.require_purchase(learner_id, course.id)

    @pytest.mark.asyncio
    async def test_verified_payment_is_a_purchase(self, service, course) -> None:
        learner_id = uuid4()
        _, first = await service.create_order(learner_id, course.id)
        await service.create_order(learner_id, course.id)
        await service.verify_payment(
            first.id, "pay_1", payment_signature(SECRET, first.id, "pay_1")
        )

        assert await service.has_purchased(learner_id, course.id) is True
        assert await service.purchased_course_ids(learner_id) == [course.id]
        await service.require_purchase(learner_id, course.id)

    @pytest.mark.asyncio
    async def test_admin_payments(self, service, course) -> None:
        await service.create_order(uuid4(), course.id)
        await service.create_order(uuid4(), course.id)

        payments = await service.list_admin_payments(course.owner_id)
        assert len(payments) == 2
        assert await service.list_admin_payments(uuid4()) == []


def test_signature_is_hmac_sha256_hex() -> None:
    expected = hmac.new(b"k", b"order_1|pay_1", hashlib.sha256).hexdigest()
    assert payment_signature("k", "order_1", "pay_1") == expected
