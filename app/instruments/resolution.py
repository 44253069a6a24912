"""Layered instrument resolution for an age band.

Priority:
1. explicit instrument reference from the triggering activity
2. exact type match ``<category>_<age_band>``
3. configured fallback band (``mixed`` -> ``preschool``)
4. most recent instrument of the category
5. nothing (the caller shows a blocked state)

Only instruments effective on the resolution date are considered, most
recent ``effective_from`` first.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Protocol

from app.core.config import settings

logger = logging.getLogger(__name__)

ANY_OF_CATEGORY = "__any__"


@dataclass(frozen=True)
class InstrumentRef:
    """Identity of a pinned instrument."""
    instrument_id: int
    version: str | None


class InstrumentCatalog(Protocol):
    async def get_ref(self, instrument_id: int) -> InstrumentRef | None: ...

    async def latest_of_type(self, instrument_type: str, on: date) -> InstrumentRef | None: ...

    async def latest_of_category(self, category: str, on: date) -> InstrumentRef | None: ...


def build_candidates(
    category: str,
    age_band: str | None,
    fallback_bands: dict[str, str] | None = None,
) -> list[str]:
    """Instrument types to try, in order, ending with the category wildcard."""
    if fallback_bands is None:
        fallback_bands = settings.fallback_age_bands

    candidates = []
    if age_band:
        candidates.append(f"{category}_{age_band}")
        fallback = fallback_bands.get(age_band)
        if fallback and fallback != age_band:
            candidates.append(f"{category}_{fallback}")
    candidates.append(ANY_OF_CATEGORY)
    return candidates


class InstrumentResolver:
    """Walks the candidate list against an ``InstrumentCatalog``."""

    def __init__(
        self,
        catalog: InstrumentCatalog,
        category: str = "children",
        fallback_bands: dict[str, str] | None = None,
    ) -> None:
        self.catalog = catalog
        self.category = category
        self.fallback_bands = fallback_bands

    async def resolve(
        self,
        age_band: str | None,
        explicit_ref: int | None = None,
        on: date | None = None,
    ) -> InstrumentRef | None:
        """Resolve an instrument for ``age_band``.

        Without an explicit reference or an age band there is nothing to
        match on and the result is None.
        """
        on = on or date.today()

        if explicit_ref:
            ref = await self.catalog.get_ref(int(explicit_ref))
            if ref is not None:
                return ref
            logger.warning(
                f"Explicit instrument {explicit_ref} not found, falling back to age band"
            )

        if not age_band:
            return None

        for candidate in build_candidates(self.category, age_band, self.fallback_bands):
            if candidate == ANY_OF_CATEGORY:
                ref = await self.catalog.latest_of_category(self.category, on)
            else:
                ref = await self.catalog.latest_of_type(candidate, on)
            if ref is not None:
                return ref

        logger.info(f"No {self.category} instrument resolvable for band {age_band}")
        return None
