"""Tests for Courses module."""

from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import DuplicateError, NotFoundError
from src.modules.courses.schemas import CourseCreate
from src.modules.courses.service import CourseService


class TestCourseService:
    """Tests for CourseService."""

    async def test_create_course(self, db_session: AsyncSession):
        service = CourseService(db_session)

        course = await service.create_course(
            CourseCreate(
                title="Graphics Design Intensive",
                course_code="gdi",
                course_shortcut="Graphics Design",
                regular_price=Decimal("10000"),
                discount_price=Decimal("8000"),
            ),
            created_by_id=1,
        )

        assert course.course_code == "GDI"
        assert course.discount_percentage == 20

    async def test_duplicate_code(self, db_session: AsyncSession, make_course):
        await make_course()
        service = CourseService(db_session)

        with pytest.raises(DuplicateError):
            await service.create_course(
                CourseCreate(
                    title="Another",
                    course_code="GDI",
                    course_shortcut="Another",
                    regular_price=Decimal("100"),
                ),
                created_by_id=1,
            )

    async def test_get_missing(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await CourseService(db_session).get_course(77)


class TestCourseEndpoints:
    """Tests for course API endpoints."""

    async def test_admin_creates_course(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/courses",
            json={
                "title": "Web Development",
                "course_code": "web",
                "course_shortcut": "Web Dev",
                "regular_price": "6000",
                "discount_price": "4500",
            },
            headers=admin_headers,
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["course_code"] == "WEB"
        assert data["discount_percentage"] == 25

    async def test_code_must_be_alphanumeric(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/courses",
            json={
                "title": "Bad",
                "course_code": "A-1",
                "course_shortcut": "Bad",
                "regular_price": "10",
            },
            headers=admin_headers,
        )
        assert response.status_code == 422

    async def test_requires_token(self, client: AsyncClient):
        response = await client.get("/api/v1/courses")
        assert response.status_code == 401
