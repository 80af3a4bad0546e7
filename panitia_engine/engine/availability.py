"""
Availability Index — which members are free for a program's time window.

A member is available for [start, end) iff none of their assignments on
another live program (not completed/rejected) overlaps that window. The
program being (re)generated is passed as ``exclude_program_id`` so that its
own current committee never counts against its members.
"""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from panitia_engine.registry.schema import Member
from panitia_engine.store.directory import MemberDirectory
from panitia_engine.store.service import AssignmentStore

logger = logging.getLogger(__name__)


def windows_overlap(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime,
) -> bool:
    """Half-open interval overlap: touching endpoints do not overlap."""
    return a_start < b_end and b_start < a_end


class AvailabilityIndex:
    """Batch form of the conflict check, over every active member at once."""

    def __init__(self, store: AssignmentStore, directory: MemberDirectory) -> None:
        self.store = store
        self.directory = directory

    def busy_member_ids(
        self,
        start: datetime,
        end: datetime,
        exclude_program_id: UUID | None = None,
    ) -> set[UUID]:
        return {
            member_id
            for member_id, _ in self.store.find_overlaps(
                start, end, exclude_program_id=exclude_program_id,
            )
        }

    def available(
        self,
        start: datetime,
        end: datetime,
        exclude_program_id: UUID | None = None,
    ) -> list[Member]:
        """
        Active members with no overlapping commitment, in directory order.

        Never raises for "nobody qualifies"; the result is simply empty.
        """
        busy = self.busy_member_ids(start, end, exclude_program_id)
        members = [m for m in self.directory.list_active_members() if m.id not in busy]
        logger.debug(
            "Availability computed: window=%s..%s available=%d busy=%d",
            start.isoformat(), end.isoformat(), len(members), len(busy),
        )
        return members

    def is_available(
        self,
        member_id: UUID,
        start: datetime,
        end: datetime,
        exclude_program_id: UUID | None = None,
    ) -> bool:
        overlaps = self.store.find_overlaps(
            start, end, exclude_program_id=exclude_program_id, member_ids=[member_id],
        )
        return not overlaps
