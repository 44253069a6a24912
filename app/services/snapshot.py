"""Per-track child age-group snapshots."""

import logging
from datetime import date
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.assessment.roster import Subject
from app.instruments.age_groups import calculate_age_group, calculate_age_months
from app.models.classroom import ChildTrackSnapshot
from app.services.stores import dialect_insert

logger = logging.getLogger(__name__)

# Used for children without a date of birth; not persisted
DEFAULT_AGE_GROUP = "preschool"


class SnapshotService:
    """Freezes each child's age group once per track.

    The frozen group decides which instrument a child is assessed with
    for the whole track, even after a birthday moves them into the next
    band.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_snapshots(
        self, track_id: int, subject_ids: Iterable[int]
    ) -> dict[int, ChildTrackSnapshot]:
        ids = list(set(subject_ids))
        if not ids:
            return {}
        result = await self.session.execute(
            select(ChildTrackSnapshot)
            .where(ChildTrackSnapshot.track_id == track_id)
            .where(ChildTrackSnapshot.child_id.in_(ids))
        )
        return {snap.child_id: snap for snap in result.scalars().all()}

    async def ensure_snapshots(
        self,
        track_id: int,
        subjects: Iterable[Subject],
        reference: date | None = None,
    ) -> dict[int, str]:
        """Frozen age group per subject, creating missing snapshots.

        Args:
            track_id: Track the snapshot belongs to
            subjects: Children to freeze
            reference: Date ages are computed at (today by default)

        Returns:
            ``subject id -> age group``
        """
        subjects = list(subjects)
        existing = await self.get_snapshots(track_id, [s.id for s in subjects])

        groups: dict[int, str] = {}
        created = []
        for subject in subjects:
            snap = existing.get(subject.id)
            if snap is not None:
                groups[subject.id] = snap.frozen_age_group
                continue
            if subject.dob is None:
                groups[subject.id] = DEFAULT_AGE_GROUP
                continue

            # A concurrent request may freeze the same child first; its row wins
            await self.session.execute(
                dialect_insert(self.session, ChildTrackSnapshot)
                .values(
                    child_id=subject.id,
                    track_id=track_id,
                    frozen_age_group=calculate_age_group(subject.dob, reference),
                    dob_at_freeze=subject.dob,
                    age_months_at_freeze=calculate_age_months(subject.dob, reference),
                )
                .on_conflict_do_nothing(index_elements=["child_id", "track_id"])
            )
            created.append(subject.id)

        if created:
            frozen = await self.get_snapshots(track_id, created)
            for subject_id in created:
                groups[subject_id] = frozen[subject_id].frozen_age_group
            logger.info(f"Froze age groups for {len(created)} child(ren) on track {track_id}")
        return groups
