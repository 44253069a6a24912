"""Which child instrument applies to which child."""

from sqlalchemy.ext.asyncio import AsyncSession

from app.instruments.model import Instrument
from app.instruments.resolution import InstrumentResolver
from app.models.assessment import ChildAssessmentInstance
from app.services.stores import SqlInstrumentRepository

MIXED_BAND = "mixed"


def uses_age_groups(instance: ChildAssessmentInstance) -> bool:
    """Grouped forms bind each child to the instrument of their frozen age group.

    Instances pinned to one instrument for a single-band classroom use
    that instrument for every child.
    """
    return instance.instrument_id is None or instance.instrument_age_band == MIXED_BAND


class InstrumentBinder:
    """Cached instrument lookups for one request."""

    def __init__(self, session: AsyncSession) -> None:
        self.repository = SqlInstrumentRepository(session)
        self.resolver = InstrumentResolver(self.repository, category="children")
        self._instruments: dict[int, Instrument | None] = {}
        self._group_ids: dict[str, int | None] = {}

    async def get(self, instrument_id: int | None) -> Instrument | None:
        if not instrument_id:
            return None
        if instrument_id not in self._instruments:
            self._instruments[instrument_id] = await self.repository.get(instrument_id)
        return self._instruments[instrument_id]

    async def for_group(
        self, instance: ChildAssessmentInstance, age_group: str | None
    ) -> Instrument | None:
        if not uses_age_groups(instance):
            return await self.get(instance.instrument_id)
        if not age_group:
            return None
        if age_group not in self._group_ids:
            ref = await self.resolver.resolve(age_group)
            self._group_ids[age_group] = ref.instrument_id if ref else None
        return await self.get(self._group_ids[age_group])

    async def bind(
        self,
        instance: ChildAssessmentInstance,
        posted_id: int | None,
        saved_id: int | None,
        age_group: str | None,
    ) -> int | None:
        """Instrument id for a row: frozen on the saved row, then posted, then by age group."""
        for candidate in (saved_id, posted_id):
            if candidate and await self.get(candidate) is not None:
                return candidate
        instrument = await self.for_group(instance, age_group)
        return instrument.id if instrument else None

    def loaded(self) -> dict[int, Instrument]:
        return {k: v for k, v in self._instruments.items() if v is not None}
