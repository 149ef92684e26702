"""Tests for Batches module."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.models import AuditLog
from src.core.exceptions import (
    CapacityExceeded,
    GenerationError,
    InvalidDateRange,
    InvalidStatusTransition,
    NotFoundError,
    ValidationError,
)
from src.modules.batches.models import Batch, BatchStatus
from src.modules.batches.schemas import BatchCreate, BatchFilters, BatchUpdate
from src.modules.batches.service import BatchService

ADMIN_ID = 1


def _batch_data(course_id: int, **overrides) -> BatchCreate:
    values = {
        "course_id": course_id,
        "start_date": date(2026, 11, 1),
        "end_date": date(2027, 2, 1),
        "year": 2026,
    }
    values.update(overrides)
    return BatchCreate(**values)


class TestBatchService:
    """Tests for BatchService."""

    async def test_create_batch_derives_identifiers_and_pricing(
        self, db_session: AsyncSession, make_course
    ):
        course = await make_course()
        service = BatchService(db_session)

        batch = await service.create_batch(_batch_data(course.id), created_by_id=ADMIN_ID)

        assert batch.batch_code == "GDI2601"
        assert batch.name == "Graphics Design Batch-01"
        assert batch.slug == "graphics-design-intensive-graphics-design-batch-01"
        assert batch.regular_price == Decimal("10000.00")
        assert batch.discount_price == Decimal("8000.00")
        assert batch.discount_percentage == 20
        assert batch.current_students == 0
        assert batch.max_students == 30
        assert batch.status == BatchStatus.DRAFT.value

        audit = await db_session.execute(
            select(AuditLog).where(AuditLog.entity_type == "Batch", AuditLog.entity_id == batch.id)
        )
        assert audit.scalar_one().action == "batch.create"

    async def test_sequential_batches_increase(self, db_session: AsyncSession, make_course):
        course = await make_course()
        service = BatchService(db_session)

        first = await service.create_batch(_batch_data(course.id), created_by_id=ADMIN_ID)
        second = await service.create_batch(_batch_data(course.id), created_by_id=ADMIN_ID)
        third = await service.create_batch(
            _batch_data(course.id, name="Weekend Batch"), created_by_id=ADMIN_ID
        )

        assert [first.batch_code, second.batch_code, third.batch_code] == [
            "GDI2601",
            "GDI2602",
            "GDI2603",
        ]
        assert len({first.slug, second.slug, third.slug}) == 3
        assert third.name == "Weekend Batch"

    async def test_same_name_gets_suffixed_slug(self, db_session: AsyncSession, make_course):
        course = await make_course()
        service = BatchService(db_session)

        a = await service.create_batch(_batch_data(course.id, name="Evening"), created_by_id=ADMIN_ID)
        b = await service.create_batch(_batch_data(course.id, name="Evening"), created_by_id=ADMIN_ID)

        assert a.slug == "graphics-design-intensive-evening"
        assert b.slug == "graphics-design-intensive-evening-1"

    async def test_price_override(self, db_session: AsyncSession, make_course):
        course = await make_course()
        service = BatchService(db_session)

        batch = await service.create_batch(
            _batch_data(course.id, regular_price=Decimal("12000"), discount_price=Decimal("9000")),
            created_by_id=ADMIN_ID,
        )

        assert batch.regular_price == Decimal("12000.00")
        assert batch.discount_price == Decimal("9000.00")
        assert batch.discount_percentage == 25

    async def test_invalid_date_range(self, db_session: AsyncSession, make_course):
        course = await make_course()
        service = BatchService(db_session)

        with pytest.raises(InvalidDateRange):
            await service.create_batch(
                _batch_data(course.id, start_date=date(2026, 11, 1), end_date=date(2026, 11, 1)),
                created_by_id=ADMIN_ID,
            )

        result = await db_session.execute(select(Batch))
        assert result.scalars().all() == []

    async def test_missing_course_is_generation_error(self, db_session: AsyncSession):
        service = BatchService(db_session)

        with pytest.raises(GenerationError):
            await service.create_batch(_batch_data(424242), created_by_id=ADMIN_ID)

    async def test_cannot_create_terminal_batch(self, db_session: AsyncSession, make_course):
        course = await make_course()
        service = BatchService(db_session)

        with pytest.raises(InvalidStatusTransition):
            await service.create_batch(
                _batch_data(course.id, status=BatchStatus.COMPLETED), created_by_id=ADMIN_ID
            )

    async def test_code_collision_is_retried(
        self, db_session: AsyncSession, make_course, make_batch, monkeypatch
    ):
        course = await make_course()
        await make_batch(course, batch_code="GDI2601", slug="taken")
        service = BatchService(db_session)

        # Simulate a stale read: the generator believes sequence 1 is free
        async def stale_next_sequence(course, year):
            return 1

        monkeypatch.setattr(service.identifiers, "next_sequence", stale_next_sequence)

        batch = await service.create_batch(_batch_data(course.id), created_by_id=ADMIN_ID)

        assert batch.batch_code == "GDI2602"
        assert batch.name == "Graphics Design Batch-02"

    async def test_collisions_exhaust_attempts(
        self, db_session: AsyncSession, make_course, make_batch, monkeypatch
    ):
        course = await make_course()
        await make_batch(course, batch_code="GDI2601", slug="taken")
        service = BatchService(db_session)

        async def always_taken(course, year=None, after=0):
            return "GDI2601", 1

        monkeypatch.setattr(service.identifiers, "generate_batch_code", always_taken)

        with pytest.raises(GenerationError):
            await service.create_batch(_batch_data(course.id), created_by_id=ADMIN_ID)

    async def test_get_batch_not_found(self, db_session: AsyncSession):
        service = BatchService(db_session)

        with pytest.raises(NotFoundError):
            await service.get_batch(999)
        with pytest.raises(NotFoundError):
            await service.get_batch_by_slug("nope")

    async def test_list_batches_filters(self, db_session: AsyncSession, make_course, make_batch):
        gdi = await make_course()
        web = await make_course(course_code="WEB", title="Web Development", shortcut="Web Dev")
        await make_batch(gdi, batch_code="GDI2601")
        await make_batch(gdi, batch_code="GDI2602", status=BatchStatus.DRAFT)
        await make_batch(web, batch_code="WEB2601")
        service = BatchService(db_session)

        batches, total = await service.list_batches(BatchFilters(course_id=gdi.id))
        assert total == 2

        batches, total = await service.list_batches(BatchFilters(status=BatchStatus.DRAFT))
        assert total == 1
        assert batches[0].batch_code == "GDI2602"

        batches, total = await service.list_batches(BatchFilters(search="WEB26"))
        assert [b.batch_code for b in batches] == ["WEB2601"]


class TestBatchLifecycle:
    """Tests for status transitions and edits."""

    async def test_forward_transitions(self, db_session: AsyncSession, make_course, make_batch):
        course = await make_course()
        batch = await make_batch(course, status=BatchStatus.DRAFT)
        service = BatchService(db_session)

        for status in (
            BatchStatus.PUBLISHED,
            BatchStatus.UPCOMING,
            BatchStatus.ONGOING,
            BatchStatus.COMPLETED,
        ):
            batch = await service.change_status(batch.id, status, changed_by_id=ADMIN_ID)
            assert batch.status == status.value

    async def test_cannot_skip_states(self, db_session: AsyncSession, make_course, make_batch):
        course = await make_course()
        batch = await make_batch(course, status=BatchStatus.DRAFT)
        service = BatchService(db_session)

        with pytest.raises(InvalidStatusTransition):
            await service.change_status(batch.id, BatchStatus.ONGOING, changed_by_id=ADMIN_ID)

    async def test_cancel_from_any_open_state(
        self, db_session: AsyncSession, make_course, make_batch
    ):
        course = await make_course()
        batch = await make_batch(course, status=BatchStatus.UPCOMING)
        service = BatchService(db_session)

        batch = await service.change_status(batch.id, BatchStatus.CANCELLED, changed_by_id=ADMIN_ID)
        assert batch.status == BatchStatus.CANCELLED.value

        with pytest.raises(InvalidStatusTransition):
            await service.change_status(batch.id, BatchStatus.PUBLISHED, changed_by_id=ADMIN_ID)

    async def test_terminal_batch_can_still_be_archived(
        self, db_session: AsyncSession, make_course, make_batch
    ):
        course = await make_course()
        batch = await make_batch(course, status=BatchStatus.COMPLETED)
        service = BatchService(db_session)

        batch = await service.set_active(batch.id, False, user_id=ADMIN_ID)
        assert batch.is_active is False

        with pytest.raises(ValidationError):
            await service.update_batch(batch.id, BatchUpdate(name="Renamed"), updated_by_id=ADMIN_ID)

    async def test_update_keeps_slug_and_recomputes_percentage(
        self, db_session: AsyncSession, make_course
    ):
        course = await make_course()
        service = BatchService(db_session)
        batch = await service.create_batch(_batch_data(course.id), created_by_id=ADMIN_ID)
        slug = batch.slug

        batch = await service.update_batch(
            batch.id,
            BatchUpdate(name="Renamed Batch", discount_price=Decimal("5000")),
            updated_by_id=ADMIN_ID,
        )

        assert batch.name == "Renamed Batch"
        assert batch.slug == slug
        assert batch.batch_code == "GDI2601"
        assert batch.discount_price == Decimal("5000.00")
        assert batch.discount_percentage == 50

    async def test_update_rejects_bad_dates(self, db_session: AsyncSession, make_course, make_batch):
        course = await make_course()
        batch = await make_batch(course)
        service = BatchService(db_session)

        with pytest.raises(InvalidDateRange):
            await service.update_batch(
                batch.id,
                BatchUpdate(end_date=batch.start_date - timedelta(days=1)),
                updated_by_id=ADMIN_ID,
            )

    async def test_update_max_below_current(self, db_session: AsyncSession, make_course, make_batch):
        course = await make_course()
        batch = await make_batch(course, max_students=10, current_students=5)
        service = BatchService(db_session)

        with pytest.raises(CapacityExceeded):
            await service.update_batch(batch.id, BatchUpdate(max_students=4), updated_by_id=ADMIN_ID)

        batch = await service.update_batch(batch.id, BatchUpdate(max_students=5), updated_by_id=ADMIN_ID)
        assert batch.max_students == 5


class TestEnrollmentCapacity:
    """Tests for increment_enrollment."""

    async def test_increment(self, db_session: AsyncSession, make_course, make_batch):
        course = await make_course()
        batch = await make_batch(course, max_students=2)
        service = BatchService(db_session)

        assert await service.increment_enrollment(batch.id) == 1
        assert await service.increment_enrollment(batch.id) == 2

    async def test_full_batch_refuses(self, db_session: AsyncSession, make_course, make_batch):
        course = await make_course()
        batch = await make_batch(course, max_students=2, current_students=2)
        service = BatchService(db_session)

        with pytest.raises(CapacityExceeded):
            await service.increment_enrollment(batch.id)

        batch = await service.get_batch(batch.id)
        assert batch.current_students == 2

    async def test_missing_batch(self, db_session: AsyncSession):
        service = BatchService(db_session)

        with pytest.raises(NotFoundError):
            await service.increment_enrollment(404)


class TestBatchEndpoints:
    """Tests for batch API endpoints."""

    async def test_create_batch(
        self, client: AsyncClient, make_course, mentor_headers: dict
    ):
        course = await make_course()

        response = await client.post(
            "/api/v1/batches",
            json={
                "course_id": course.id,
                "start_date": "2026-11-01",
                "end_date": "2027-02-01",
                "year": 2026,
                "discount_percentage": 99,
            },
            headers=mentor_headers,
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["batch_code"] == "GDI2601"
        assert data["discount_percentage"] == 20
        assert data["pricing"]["effective_price"] == 8000.0
        assert data["available_seats"] == 30

    async def test_create_batch_bad_dates(
        self, client: AsyncClient, make_course, admin_headers: dict
    ):
        course = await make_course()

        response = await client.post(
            "/api/v1/batches",
            json={"course_id": course.id, "start_date": "2026-11-01", "end_date": "2026-10-01"},
            headers=admin_headers,
        )

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "InvalidDateRange"

    async def test_student_cannot_create_batch(
        self, client: AsyncClient, make_course, student_headers: dict
    ):
        course = await make_course()

        response = await client.post(
            "/api/v1/batches",
            json={"course_id": course.id, "start_date": "2026-11-01", "end_date": "2027-01-01"},
            headers=student_headers,
        )
        assert response.status_code == 403

    async def test_public_slug_lookup(self, client: AsyncClient, make_course, make_batch):
        course = await make_course()
        await make_batch(course, slug="gdi-evening")

        response = await client.get("/api/v1/batches/slug/gdi-evening")

        assert response.status_code == 200
        assert response.json()["data"]["batch_code"] == "GDI2601"

        missing = await client.get("/api/v1/batches/slug/unknown")
        assert missing.status_code == 404
        assert missing.json()["error_code"] == "NotFoundError"

    async def test_status_transition_endpoint(
        self, client: AsyncClient, make_course, make_batch, admin_headers: dict
    ):
        course = await make_course()
        batch = await make_batch(course, status=BatchStatus.DRAFT)

        ok = await client.post(
            f"/api/v1/batches/{batch.id}/status",
            json={"status": "published"},
            headers=admin_headers,
        )
        assert ok.status_code == 200
        assert ok.json()["data"]["status"] == "published"

        bad = await client.post(
            f"/api/v1/batches/{batch.id}/status",
            json={"status": "completed"},
            headers=admin_headers,
        )
        assert bad.status_code == 422
        assert bad.json()["error_code"] == "InvalidStatusTransition"

    async def test_list_batches(
        self, client: AsyncClient, make_course, make_batch, admin_headers: dict
    ):
        course = await make_course()
        await make_batch(course, batch_code="GDI2601")
        await make_batch(course, batch_code="GDI2602")

        response = await client.get("/api/v1/batches?limit=1", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 2
        assert data["pages"] == 2
        assert len(data["items"]) == 1
