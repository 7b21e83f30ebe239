"""Tests for the payment endpoints."""

from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from coursemart.auth.actors import ActorType
from coursemart.auth.service import AccountService
from coursemart.config.settings import Settings
from coursemart.payments.gateway import GatewayOrder, GatewayPayment
from coursemart.payments.service import PaymentService, payment_signature
from tests.cassandra_fakes import FakeAccountTables, FakePaymentTables, make_session
from tests.conftest import KEYSPACE


@pytest.fixture
def learner_tables() -> FakeAccountTables:
    return FakeAccountTables(f"{KEYSPACE}.learners")


@pytest.fixture
def admin_tables() -> FakeAccountTables:
    return FakeAccountTables(f"{KEYSPACE}.administrators")


@pytest.fixture
def payment_tables() -> FakePaymentTables:
    return FakePaymentTables()


@pytest.fixture
def owner(account_factory):
    return account_factory("owner")


@pytest.fixture
def course(course_factory, owner):
    return course_factory(owner_id=owner.id, price=500)


@pytest.fixture
def api(app: FastAPI, learner_tables, admin_tables, payment_tables, course) -> TestClient:
    app.state.learner_account_service = AccountService(
        make_session(learner_tables.execute), KEYSPACE, ActorType.LEARNER
    )
    app.state.administrator_account_service = AccountService(
        make_session(admin_tables.execute), KEYSPACE, ActorType.ADMINISTRATOR
    )

    course_service = Mock()
    course_service.get_course = AsyncMock(
        side_effect=lambda course_id: course if course_id == course.id else None
    )
    gateway = Mock()
    gateway.create_order = AsyncMock(
        side_effect=lambda amount, currency, receipt: GatewayOrder(
            id="order_1", amount=amount, currency=currency, receipt=receipt
        )
    )
    gateway.fetch_payment = AsyncMock(
        return_value=GatewayPayment(id="pay_1", status="captured")
    )
    app.state.payment_service = PaymentService(
        session=make_session(payment_tables.execute),
        keyspace=KEYSPACE,
        settings=Settings(razorpay_key_id="rzp_test_key", razorpay_key_secret="s3cret"),
        course_service=course_service,
        gateway=gateway,
    )
    return TestClient(app)


class TestPaymentRoutes:
    def test_order_then_verify_then_status(
        self, api, learner_tables, account_factory, auth_headers, course
    ) -> None:
        learner = account_factory("learner")
        learner_tables.add(learner)
        headers = auth_headers(ActorType.LEARNER, learner)

        order = api.post(f"/v1/payments/orders/{course.id}", headers=headers)
        assert order.status_code == 200
        body = order.json()
        assert body["amount"] == 50000
        assert body["currency"] == "INR"
        assert body["key_id"] == "rzp_test_key"

        verify = api.post(
            "/v1/payments/verify",
            json={
                "order_id": "order_1",
                "payment_id": "pay_1",
                "signature": payment_signature("s3cret", "order_1", "pay_1"),
            },
        )
        assert verify.status_code == 200
        assert verify.json()["payments"][0]["status"] == "success"

        status = api.get(f"/v1/payments/status/{body['payment_id']}", headers=headers)
        assert status.status_code == 200
        assert status.json()["status"] == "success"

        listing = api.get("/v1/payments/user", headers=headers)
        assert listing.json()["total"] == 1

    @pytest.mark.parametrize("signature", ["forged", "forgé"])
    def test_tampered_signature_is_400(
        self, api, learner_tables, account_factory, auth_headers, course, signature
    ) -> None:
        learner = account_factory("learner")
        learner_tables.add(learner)
        api.post(
            f"/v1/payments/orders/{course.id}",
            headers=auth_headers(ActorType.LEARNER, learner),
        )

        response = api.post(
            "/v1/payments/verify",
            json={"order_id": "order_1", "payment_id": "pay_1", "signature": signature},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_signature"

    def test_status_for_owner_and_stranger(
        self,
        api,
        learner_tables,
        admin_tables,
        account_factory,
        auth_headers,
        owner,
        course,
    ) -> None:
        learner = account_factory("learner")
        stranger = account_factory("stranger")
        learner_tables.add(learner)
        admin_tables.add(owner)
        admin_tables.add(stranger)
        order = api.post(
            f"/v1/payments/orders/{course.id}", headers=auth_headers(ActorType.LEARNER, learner)
        )
        path = f"/v1/payments/status/{order.json()['payment_id']}"

        as_owner = api.get(path, headers=auth_headers(ActorType.ADMINISTRATOR, owner))
        as_stranger = api.get(path, headers=auth_headers(ActorType.ADMINISTRATOR, stranger))
        anonymous = api.get(path)

        assert as_owner.status_code == 200
        assert as_stranger.status_code == 403
        assert anonymous.status_code == 401

    def test_order_for_unknown_course(
        self, api, learner_tables, account_factory, auth_headers
    ) -> None:
        learner = account_factory("learner")
        learner_tables.add(learner)

        response = api.post(
            f"/v1/payments/orders/{uuid4()}", headers=auth_headers(ActorType.LEARNER, learner)
        )
        assert response.status_code == 404

    def test_order_requires_learner(self, api, admin_tables, auth_headers, owner, course) -> None:
        admin_tables.add(owner)
        response = api.post(
            f"/v1/payments/orders/{course.id}",
            headers=auth_headers(ActorType.ADMINISTRATOR, owner),
        )
        assert response.status_code == 401
