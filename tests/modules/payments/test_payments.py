"""Tests for Payments module."""

from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, list_audit_entries
from src.core.exceptions import AlreadyDecided, MissingReason, NotFoundError
from src.modules.batches.service import BatchService
from src.modules.invoices.models import InvoiceStatus, PaymentMethod, PaymentStatus
from src.modules.invoices.schemas import PaymentClaim
from src.modules.invoices.service import InvoiceService
from src.modules.payments.schemas import PaymentDecisionRequest, PendingPaymentFilters
from src.modules.payments.service import PaymentVerificationService

ADMIN_ID = 1
STUDENT_ID = 100
OTHER_STUDENT_ID = 101


def _claim(amount: str, method: PaymentMethod = PaymentMethod.BKASH) -> PaymentClaim:
    return PaymentClaim(amount=Decimal(amount), method=method, sender_number="01811000000")


class TestPaymentVerificationService:
    """Tests for PaymentVerificationService."""

    async def _setup(self, db_session: AsyncSession, make_course, make_batch) -> dict:
        course = await make_course()
        batch_a = await make_batch(course, batch_code="GDI2601", regular_price="5000")
        batch_b = await make_batch(course, batch_code="GDI2602", regular_price="3000")
        invoices = InvoiceService(db_session)
        inv_a = await invoices.enroll(STUDENT_ID, batch_a.id)
        inv_b = await invoices.enroll(OTHER_STUDENT_ID, batch_b.id)
        return {"batch_a": batch_a, "batch_b": batch_b, "inv_a": inv_a, "inv_b": inv_b}

    async def test_list_pending_oldest_first(
        self, db_session: AsyncSession, make_course, make_batch
    ):
        data = await self._setup(db_session, make_course, make_batch)
        service = PaymentVerificationService(db_session)
        first = await service.submit(data["inv_a"].id, _claim("1000"), STUDENT_ID)
        second = await service.submit(data["inv_b"].id, _claim("500"), OTHER_STUDENT_ID)
        third = await service.submit(
            data["inv_a"].id, _claim("700", PaymentMethod.NAGAD), STUDENT_ID
        )

        payments, total = await service.list_pending(PendingPaymentFilters())

        assert total == 3
        assert [p.id for p in payments] == [first.id, second.id, third.id]
        assert payments[0].invoice.invoice_number == data["inv_a"].invoice_number

        # Decided payments leave the queue
        await service.verify(first.id, decided_by_id=ADMIN_ID)
        payments, total = await service.list_pending(PendingPaymentFilters())
        assert total == 2
        assert [p.id for p in payments] == [second.id, third.id]

    async def test_list_pending_by_batch(self, db_session: AsyncSession, make_course, make_batch):
        data = await self._setup(db_session, make_course, make_batch)
        service = PaymentVerificationService(db_session)
        await service.submit(data["inv_a"].id, _claim("1000"), STUDENT_ID)
        other = await service.submit(data["inv_b"].id, _claim("500"), OTHER_STUDENT_ID)

        payments, total = await service.list_pending(
            PendingPaymentFilters(batch_id=data["batch_b"].id)
        )

        assert total == 1
        assert payments[0].id == other.id

    async def test_verify_full_payment_takes_seat(
        self, db_session: AsyncSession, make_course, make_batch
    ):
        data = await self._setup(db_session, make_course, make_batch)
        service = PaymentVerificationService(db_session)
        payment = await service.submit(data["inv_b"].id, _claim("3000"), OTHER_STUDENT_ID)

        invoice = await service.verify(payment.id, decided_by_id=ADMIN_ID, notes="Matched SMS")

        assert invoice.status == InvoiceStatus.PAID.value
        assert invoice.remaining_amount == Decimal("0.00")
        batch = await BatchService(db_session).get_batch(data["batch_b"].id)
        assert batch.current_students == 1

        entries, total = await list_audit_entries(
            db_session, entity_type="InvoicePayment", action=AuditAction.VERIFY_PAYMENT
        )
        assert total == 1
        entry = entries[0]
        assert entry.user_id == ADMIN_ID
        assert entry.new_values["status"] == InvoiceStatus.PAID.value

    async def test_reject_requires_reason(
        self, db_session: AsyncSession, make_course, make_batch
    ):
        data = await self._setup(db_session, make_course, make_batch)
        service = PaymentVerificationService(db_session)
        payment = await service.submit(data["inv_a"].id, _claim("1000"), STUDENT_ID)

        for reason in (None, "", "   "):
            with pytest.raises(MissingReason):
                await service.reject(payment.id, reason, decided_by_id=ADMIN_ID)

        payment = await service.get_payment(payment.id)
        assert payment.status == PaymentStatus.PENDING.value
        invoice = await InvoiceService(db_session).get_invoice(data["inv_a"].id)
        assert invoice.paid_amount == Decimal("0.00")
        assert invoice.status == InvoiceStatus.PENDING.value

    async def test_reject(self, db_session: AsyncSession, make_course, make_batch):
        data = await self._setup(db_session, make_course, make_batch)
        service = PaymentVerificationService(db_session)
        payment = await service.submit(data["inv_a"].id, _claim("1000"), STUDENT_ID)

        invoice = await service.reject(payment.id, "Sender number mismatch", decided_by_id=ADMIN_ID)

        assert invoice.payments[0].status == PaymentStatus.REJECTED.value
        assert invoice.payments[0].rejection_reason == "Sender number mismatch"
        assert invoice.remaining_amount == Decimal("5000.00")

        with pytest.raises(AlreadyDecided):
            await service.verify(payment.id, decided_by_id=ADMIN_ID)

    async def test_decide_dispatch(self, db_session: AsyncSession, make_course, make_batch):
        data = await self._setup(db_session, make_course, make_batch)
        service = PaymentVerificationService(db_session)
        payment = await service.submit(data["inv_a"].id, _claim("2000"), STUDENT_ID)

        invoice = await service.decide(
            payment.id, PaymentDecisionRequest(action="verify", notes="  "), decided_by_id=ADMIN_ID
        )

        assert invoice.status == InvoiceStatus.PARTIAL.value
        assert invoice.paid_amount == Decimal("2000.00")
        assert invoice.payments[0].admin_notes is None

    async def test_unknown_payment(self, db_session: AsyncSession):
        service = PaymentVerificationService(db_session)

        with pytest.raises(NotFoundError):
            await service.verify(999, decided_by_id=ADMIN_ID)
        with pytest.raises(NotFoundError):
            await service.reject(999, "Not found", decided_by_id=ADMIN_ID)


class TestPaymentEndpoints:
    """Tests for payment submission and verification endpoints."""

    async def _enroll(self, client: AsyncClient, make_course, make_batch, headers: dict) -> dict:
        batch = await make_batch(await make_course(), regular_price="5000")
        response = await client.post(
            "/api/v1/enrollments", json={"batch_id": batch.id}, headers=headers
        )
        assert response.status_code == 201
        return response.json()["data"]

    async def _submit(self, client: AsyncClient, invoice_id: int, amount: float, headers: dict):
        return await client.post(
            "/api/v1/payments/submissions",
            json={
                "invoice_id": invoice_id,
                "amount": amount,
                "method": "bkash",
                "sender_number": "01711000000",
                "transaction_id": "8N7A6B5C4D",
            },
            headers=headers,
        )

    async def test_submit_and_verify_flow(
        self,
        client: AsyncClient,
        make_course,
        make_batch,
        student_headers: dict,
        admin_headers: dict,
    ):
        invoice = await self._enroll(client, make_course, make_batch, student_headers)

        submitted = await self._submit(client, invoice["id"], 3000, student_headers)
        assert submitted.status_code == 201
        payment = submitted.json()["data"]
        assert payment["status"] == "pending"

        queue = await client.get("/api/v1/payments/pending", headers=admin_headers)
        assert queue.status_code == 200
        items = queue.json()["data"]["items"]
        assert items[0]["id"] == payment["id"]
        assert items[0]["invoice_remaining_amount"] == 5000.0

        decided = await client.post(
            f"/api/v1/payments/{payment['id']}/decision",
            json={"action": "verify"},
            headers=admin_headers,
        )
        assert decided.status_code == 200
        body = decided.json()
        assert body["message"] == "Payment verified"
        assert body["data"]["status"] == "partial"
        assert body["data"]["paid_amount"] == 3000.0
        assert body["data"]["remaining_amount"] == 2000.0

    async def test_reject_without_reason(
        self,
        client: AsyncClient,
        make_course,
        make_batch,
        student_headers: dict,
        admin_headers: dict,
    ):
        invoice = await self._enroll(client, make_course, make_batch, student_headers)
        payment = (await self._submit(client, invoice["id"], 1000, student_headers)).json()["data"]

        response = await client.post(
            f"/api/v1/payments/{payment['id']}/decision",
            json={"action": "reject"},
            headers=admin_headers,
        )

        assert response.status_code == 422
        assert response.json()["error_code"] == "MissingReason"

    async def test_conflicting_decision(
        self,
        client: AsyncClient,
        make_course,
        make_batch,
        student_headers: dict,
        admin_headers: dict,
    ):
        invoice = await self._enroll(client, make_course, make_batch, student_headers)
        payment = (await self._submit(client, invoice["id"], 1000, student_headers)).json()["data"]
        url = f"/api/v1/payments/{payment['id']}/decision"

        rejected = await client.post(
            url, json={"action": "reject", "reason": "Unknown transaction"}, headers=admin_headers
        )
        assert rejected.json()["message"] == "Payment rejected"

        response = await client.post(url, json={"action": "verify"}, headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["error_code"] == "AlreadyDecided"

    async def test_overpayment_refused(
        self, client: AsyncClient, make_course, make_batch, student_headers: dict
    ):
        invoice = await self._enroll(client, make_course, make_batch, student_headers)

        response = await self._submit(client, invoice["id"], 6000, student_headers)

        assert response.status_code == 422
        assert response.json()["error_code"] == "ValidationError"

    async def test_roles(
        self,
        client: AsyncClient,
        make_course,
        make_batch,
        student_headers: dict,
        mentor_headers: dict,
        admin_headers: dict,
    ):
        invoice = await self._enroll(client, make_course, make_batch, student_headers)
        payment = (await self._submit(client, invoice["id"], 1000, student_headers)).json()["data"]

        queue = await client.get("/api/v1/payments/pending", headers=mentor_headers)
        assert queue.status_code == 403

        decision = await client.post(
            f"/api/v1/payments/{payment['id']}/decision",
            json={"action": "verify"},
            headers=student_headers,
        )
        assert decision.status_code == 403

        submit = await self._submit(client, invoice["id"], 500, admin_headers)
        assert submit.status_code == 403
