import os
from collections.abc import AsyncGenerator
from datetime import date, timedelta
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.core.auth.jwt import create_access_token
from src.core.auth.models import UserRole
from src.core.database.base import Base
from src.core.database import get_db
from src.main import app
from src.modules.batches.models import Batch, BatchStatus
from src.modules.courses.models import Course

# In-memory SQLite shared by every connection of the test engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)


# SAVEPOINT support on SQLite: let SQLAlchemy emit BEGIN itself
@event.listens_for(test_engine.sync_engine, "connect")
def _disable_driver_begin(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(test_engine.sync_engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


test_async_session = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

ADMIN_ID = 1
MENTOR_ID = 2
STUDENT_ID = 100
OTHER_STUDENT_ID = 101


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test and drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get test database session."""
    async with test_async_session() as session:
        yield session


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Get test HTTP client with overridden database dependency."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


def auth_headers(user_id: int, role: UserRole) -> dict[str, str]:
    token = create_access_token(user_id, role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return auth_headers(ADMIN_ID, UserRole.ADMIN)


@pytest.fixture
def mentor_headers() -> dict[str, str]:
    return auth_headers(MENTOR_ID, UserRole.MENTOR)


@pytest.fixture
def student_headers() -> dict[str, str]:
    return auth_headers(STUDENT_ID, UserRole.STUDENT)


@pytest.fixture
def make_course(db_session: AsyncSession):
    """Factory for courses stored directly in the database."""

    async def _make(
        course_code: str = "GDI",
        title: str = "Graphics Design Intensive",
        shortcut: str = "Graphics Design",
        regular_price: Decimal | str = "10000.00",
        discount_price: Decimal | str | None = "8000.00",
    ) -> Course:
        course = Course(
            title=title,
            course_code=course_code,
            course_shortcut=shortcut,
            regular_price=Decimal(str(regular_price)),
            discount_price=Decimal(str(discount_price)) if discount_price is not None else None,
            discount_percentage=0,
            is_active=True,
        )
        db_session.add(course)
        await db_session.commit()
        return course

    return _make


@pytest.fixture
def make_batch(db_session: AsyncSession):
    """Factory for batches stored directly, bypassing identifier generation."""

    async def _make(
        course: Course,
        batch_code: str = "GDI2601",
        max_students: int = 30,
        current_students: int = 0,
        status: BatchStatus = BatchStatus.PUBLISHED,
        regular_price: Decimal | str | None = None,
        discount_price: Decimal | str | None = None,
        slug: str | None = None,
        is_active: bool = True,
    ) -> Batch:
        regular = Decimal(str(regular_price)) if regular_price is not None else course.regular_price
        if discount_price is not None:
            discount = Decimal(str(discount_price))
        elif regular_price is None:
            discount = course.discount_price
        else:
            discount = None
        batch = Batch(
            batch_code=batch_code,
            name=f"{course.course_shortcut} Batch-{batch_code[-2:]}",
            course_id=course.id,
            course_type="online",
            slug=slug or batch_code.lower(),
            start_date=date.today() + timedelta(days=10),
            end_date=date.today() + timedelta(days=100),
            max_students=max_students,
            current_students=current_students,
            regular_price=regular,
            discount_price=discount,
            discount_percentage=0,
            status=status.value,
            is_active=is_active,
            created_by_id=ADMIN_ID,
        )
        db_session.add(batch)
        await db_session.commit()
        return batch

    return _make
