import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.documents.models import DocumentSequence

logger = logging.getLogger(__name__)


class DocumentNumberGenerator:
    """
    Generates sequential document numbers in format: PREFIX-YYYY-NNNNNN

    Examples:
        INV-2026-000001
        INV-2026-000042
    """

    def __init__(self, session: AsyncSession, width: int = 6):
        self.session = session
        self.width = width

    async def _locked_sequence(self, prefix: str, year: int) -> DocumentSequence | None:
        stmt = (
            select(DocumentSequence)
            .where(DocumentSequence.prefix == prefix, DocumentSequence.year == year)
            .with_for_update()
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def generate(self, prefix: str, year: int | None = None) -> str:
        """
        Generate next document number for given prefix and year.

        Uses SELECT FOR UPDATE so concurrent requests serialize on the sequence row.
        """
        if year is None:
            year = datetime.now().year

        sequence = await self._locked_sequence(prefix, year)

        if sequence is None:
            # Two requests may race to create the first row for a year
            try:
                async with self.session.begin_nested():
                    self.session.add(DocumentSequence(prefix=prefix, year=year, last_number=0))
            except IntegrityError:
                logger.info("Sequence %s-%s created concurrently, reusing it", prefix, year)
            sequence = await self._locked_sequence(prefix, year)

        sequence.last_number += 1
        await self.session.flush()

        return sequence.format(self.width)

