from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import GenerationError
from src.modules.batches.identifiers import (
    BatchIdentifierGenerator,
    default_batch_name,
    format_batch_code,
    slugify,
)


class TestSlugify:
    """Tests for slug normalization."""

    def test_basic(self):
        assert slugify("Graphics Design Intensive-Graphics Design Batch-01") == (
            "graphics-design-intensive-graphics-design-batch-01"
        )

    def test_collapses_and_trims(self):
        assert slugify("  Web  &  Mobile!! --- Batch__02  ") == "web-mobile-batch-02"

    def test_non_ascii_dropped(self):
        assert slugify("Café Bangla ১") == "caf-bangla"


class TestBatchCodeFormat:
    def test_two_digit_padding(self):
        assert format_batch_code("GDI", 2026, 1) == "GDI2601"
        assert format_batch_code("gdi", 2026, 12) == "GDI2612"

    def test_widens_past_99(self):
        assert format_batch_code("GDI", 2026, 100) == "GDI26100"


class TestBatchIdentifierGenerator:
    """Tests for code / slug generation against the store."""

    async def test_first_batch_of_year(self, db_session: AsyncSession, make_course):
        course = await make_course()
        generator = BatchIdentifierGenerator(db_session)

        code, seq = await generator.generate_batch_code(course, 2026)

        assert code == "GDI2601"
        assert seq == 1
        assert default_batch_name(course, seq) == "Graphics Design Batch-01"

    async def test_next_after_highest(self, db_session: AsyncSession, make_course, make_batch):
        course = await make_course()
        await make_batch(course, batch_code="GDI2601")
        await make_batch(course, batch_code="GDI2605")
        generator = BatchIdentifierGenerator(db_session)

        code, seq = await generator.generate_batch_code(course, 2026)

        assert code == "GDI2606"
        assert seq == 6

    async def test_sequences_are_per_year_and_course(
        self, db_session: AsyncSession, make_course, make_batch
    ):
        gdi = await make_course()
        web = await make_course(course_code="WEB", title="Web Development", shortcut="Web Dev")
        await make_batch(gdi, batch_code="GDI2603")
        await make_batch(gdi, batch_code="GDI2501", slug="gdi-2025")
        generator = BatchIdentifierGenerator(db_session)

        assert (await generator.generate_batch_code(gdi, 2025))[0] == "GDI2502"
        assert (await generator.generate_batch_code(web, 2026))[0] == "WEB2601"

    async def test_longer_course_code_sharing_prefix(
        self, db_session: AsyncSession, make_course, make_batch
    ):
        web = await make_course(course_code="WEB", title="Web Development", shortcut="Web Dev")
        web26 = await make_course(
            course_code="WEB26", title="Web Development 2026", shortcut="Web 26"
        )
        await make_batch(web26, batch_code="WEB262601")
        generator = BatchIdentifierGenerator(db_session)

        assert await generator.generate_batch_code(web, 2026) == ("WEB2601", 1)
        assert await generator.generate_batch_code(web26, 2026) == ("WEB262602", 2)

    async def test_ignores_codes_with_non_numeric_suffix(
        self, db_session: AsyncSession, make_course, make_batch
    ):
        course = await make_course()
        await make_batch(course, batch_code="GDI26XA")
        generator = BatchIdentifierGenerator(db_session)

        code, _ = await generator.generate_batch_code(course, 2026)
        assert code == "GDI2601"

    async def test_after_skips_lost_sequence(self, db_session: AsyncSession, make_course):
        course = await make_course()
        generator = BatchIdentifierGenerator(db_session)

        code, seq = await generator.generate_batch_code(course, 2026, after=3)
        assert (code, seq) == ("GDI2604", 4)

    async def test_unique_slug_suffixes(self, db_session: AsyncSession, make_course, make_batch):
        course = await make_course()
        generator = BatchIdentifierGenerator(db_session)
        base = "graphics-design-intensive-graphics-design-batch-01"

        assert await generator.generate_unique_slug(course.title, "Graphics Design Batch-01") == base

        await make_batch(course, batch_code="GDI2601", slug=base)
        await make_batch(course, batch_code="GDI2602", slug=f"{base}-1")

        slug = await generator.generate_unique_slug(course.title, "Graphics Design Batch-01")
        assert slug == f"{base}-2"

    async def test_missing_course(self, db_session: AsyncSession):
        generator = BatchIdentifierGenerator(db_session)

        with pytest.raises(GenerationError):
            await generator.resolve_course(9999)

        with pytest.raises(GenerationError):
            await generator.resolve_course(None)
