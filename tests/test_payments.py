"""
Tests for bank transfer details and customer payment records
"""

import asyncio
from decimal import Decimal

import pytest

from foodhub.auth.auth_handler import Actor
from foodhub.models.activity_log import ActivityLog
from foodhub.models.order import Order
from foodhub.models.payment import PaymentRecord
from foodhub.services.event_bus import OrderEventBus
from foodhub.services.payment_service import PaymentService
from foodhub.utils.error_handler import OrderValidationError, DuplicatePaymentReferenceError

ACCOUNT = {"bank_name": "First Bank", "account_number": "0123456789", "account_name": "Campus Kitchen"}


@pytest.fixture
def placed_order(client, order_payload):
    response = client.post("/api/v1/orders/", json=order_payload())
    assert response.status_code == 201
    return response.json()


def pay(client, order_id, headers, amount="1850", reference="TRF-0001", method=None):
    body = {"amount": amount, "reference": reference}
    if method:
        body["payment_method"] = method
    return client.post(f"/api/v1/orders/{order_id}/payments", json=body, headers=headers)


class TestBankDetails:
    """Test cases for the checkout bank accounts"""

    def test_create_and_list(self, client, admin_headers):
        response = client.post("/api/v1/payments/bank-details", json=ACCOUNT, headers=admin_headers)
        assert response.status_code == 201
        assert response.json()["is_active"] is True

        listed = client.get("/api/v1/payments/bank-details")
        assert listed.status_code == 200
        assert [d["account_number"] for d in listed.json()] == ["0123456789"]

    def test_deactivated_account_hidden(self, client, admin_headers):
        detail_id = client.post("/api/v1/payments/bank-details", json=ACCOUNT, headers=admin_headers).json()["id"]

        response = client.patch(
            f"/api/v1/payments/bank-details/{detail_id}",
            json={"is_active": False},
            headers=admin_headers
        )
        assert response.status_code == 200
        assert client.get("/api/v1/payments/bank-details").json() == []

    def test_account_number_digits_only(self, client, admin_headers):
        body = dict(ACCOUNT, account_number="01234-ABC")
        assert client.post("/api/v1/payments/bank-details", json=body, headers=admin_headers).status_code == 422

    def test_create_requires_admin(self, client, session_headers):
        response = client.post("/api/v1/payments/bank-details", json=ACCOUNT, headers=session_headers)
        assert response.status_code == 403

    def test_update_missing(self, client, admin_headers):
        response = client.patch("/api/v1/payments/bank-details/999", json={"is_active": False}, headers=admin_headers)
        assert response.status_code == 404


class TestBankDetailAudit:
    """Bank account changes leave an audit trail"""

    def test_create_and_update_are_logged(self, client, db, admin_headers):
        detail_id = client.post("/api/v1/payments/bank-details", json=ACCOUNT, headers=admin_headers).json()["id"]
        client.patch(f"/api/v1/payments/bank-details/{detail_id}", json={"is_active": False}, headers=admin_headers)

        created = db.query(ActivityLog).filter(ActivityLog.action == "payments.bank_detail.create").one()
        assert created.status_code == 201
        assert created.actor == "admin:admin"
        assert created.target == str(detail_id)
        assert created.method == "POST"

        updated = db.query(ActivityLog).filter(ActivityLog.action == "payments.bank_detail.update").one()
        assert updated.status_code == 200
        assert updated.method == "PATCH"
        assert updated.endpoint == f"/api/v1/payments/bank-details/{detail_id}"

    def test_rejected_create_is_not_logged(self, client, db, session_headers):
        client.post("/api/v1/payments/bank-details", json=ACCOUNT, headers=session_headers)
        assert db.query(ActivityLog).filter(ActivityLog.action.like("payments.%")).count() == 0


class TestRecordPayment:
    """Test cases for POST /orders/{id}/payments"""

    def test_record_payment(self, client, db, placed_order, session_headers):
        response = pay(client, placed_order["id"], session_headers)
        assert response.status_code == 201
        data = response.json()
        assert data["order_id"] == placed_order["id"]
        assert data["amount"] == "1850.00"
        assert data["status"] == "processing"
        assert data["payment_method"] == "bank_transfer"
        assert data["reference"] == "TRF-0001"

        order = client.get(f"/api/v1/orders/{placed_order['id']}", headers=session_headers).json()
        assert order["payment_status"] == "processing"
        assert order["payment_method"] == "bank_transfer"
        assert order["payment_reference"] == "TRF-0001"
        assert order["status"] == "pending"

    def test_list_payments(self, client, placed_order, session_headers):
        pay(client, placed_order["id"], session_headers, amount="1000", reference="TRF-PART1")
        pay(client, placed_order["id"], session_headers, amount="850", reference="TRF-PART2", method="card_payment")

        response = client.get(f"/api/v1/orders/{placed_order['id']}/payments", headers=session_headers)
        assert response.status_code == 200
        assert [p["reference"] for p in response.json()] == ["TRF-PART1", "TRF-PART2"]

        order = client.get(f"/api/v1/orders/{placed_order['id']}", headers=session_headers).json()
        assert order["payment_method"] == "card_payment"
        assert order["payment_reference"] == "TRF-PART2"

    def test_duplicate_reference_rejected(self, client, db, order_payload, placed_order, session_headers):
        other = client.post("/api/v1/orders/", json=order_payload(tracking_code="FPI-SECOND")).json()
        assert pay(client, placed_order["id"], session_headers).status_code == 201

        response = pay(client, other["id"], session_headers)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_PAYMENT_REFERENCE"
        assert response.json()["error"]["retryable"] is False
        assert db.query(PaymentRecord).count() == 1
        assert db.query(Order).filter(Order.id == other["id"]).one().payment_reference is None

    @pytest.mark.parametrize("amount", ["0", "-5", "0.004", "abc"])
    def test_invalid_amount_rejected(self, client, db, placed_order, session_headers, amount):
        response = pay(client, placed_order["id"], session_headers, amount=amount)
        assert response.status_code == 422
        assert db.query(PaymentRecord).count() == 0

    def test_blank_reference_rejected(self, client, placed_order, session_headers):
        assert pay(client, placed_order["id"], session_headers, reference="   ").status_code == 422

    def test_unknown_method_rejected(self, client, placed_order, session_headers):
        assert pay(client, placed_order["id"], session_headers, method="crypto").status_code == 422

    def test_other_session_cannot_pay(self, client, db, placed_order):
        response = pay(client, placed_order["id"], {"X-Session-Id": "intruder"})
        assert response.status_code == 404
        assert db.query(PaymentRecord).count() == 0

        listed = client.get(f"/api/v1/orders/{placed_order['id']}/payments", headers={"X-Session-Id": "intruder"})
        assert listed.status_code == 404

    def test_cancelled_order_rejected(self, client, placed_order, admin_headers, session_headers):
        client.post(f"/api/v1/orders/{placed_order['id']}/status", json={"status": "cancelled"}, headers=admin_headers)

        response = pay(client, placed_order["id"], session_headers)
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_admin_can_record(self, client, placed_order, admin_headers):
        response = pay(client, placed_order["id"], admin_headers, method="cash_on_delivery", reference="CASH-001")
        assert response.status_code == 201
        assert response.json()["payment_method"] == "cash_on_delivery"


class TestPaymentService:
    """Direct tests of payment recording, below the HTTP layer; these publish to an unconnected bus"""

    @pytest.fixture
    def order_id(self, client, order_payload):
        return client.post("/api/v1/orders/", json=order_payload()).json()["id"]

    @pytest.mark.parametrize("amount", [Decimal("0.004"), Decimal("0"), -1, None])
    def test_non_positive_amount(self, db, order_id, amount):
        actor = Actor(kind="customer", session_id="session-abc")
        with pytest.raises(OrderValidationError, match="invalid payment amount"):
            asyncio.run(PaymentService(db, bus=OrderEventBus()).record_payment(order_id, amount, "bank_transfer", "TRF-9", actor))
        assert db.query(PaymentRecord).count() == 0

    def test_reference_is_stripped_and_unique(self, db, order_id):
        actor = Actor(kind="customer", session_id="session-abc")
        service = PaymentService(db, bus=OrderEventBus())
        payment = asyncio.run(service.record_payment(order_id, Decimal("1850"), "bank_transfer", "  TRF-77 ", actor))
        assert payment.reference == "TRF-77"

        with pytest.raises(DuplicatePaymentReferenceError):
            asyncio.run(service.record_payment(order_id, Decimal("1850"), "bank_transfer", "TRF-77", actor))
