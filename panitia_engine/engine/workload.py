"""
Workload Tracker — derived per-member assignment counts and overload levels.

A member's workload is the number of their assignment rows on programs that
are not completed or rejected. It is always recomputed from the Assignment
Store; there is no stored counter a caller could desynchronize.
"""

from __future__ import annotations

import logging
from uuid import UUID

from pydantic import BaseModel, Field

from panitia_engine.registry.schema import WorkloadEntry, WorkloadLevel, WorkloadSummary
from panitia_engine.store.directory import MemberDirectory
from panitia_engine.store.service import AssignmentStore

logger = logging.getLogger(__name__)


class WorkloadThresholds(BaseModel):
    """Upper bounds (inclusive) of each level; anything above ``heavy_max`` is overloaded."""

    available_max: int = Field(default=3, ge=0)
    heavy_max: int = Field(default=5, ge=0)


def classify_workload(count: int, thresholds: WorkloadThresholds | None = None) -> WorkloadLevel:
    thresholds = thresholds or WorkloadThresholds()
    if count <= thresholds.available_max:
        return WorkloadLevel.AVAILABLE
    if count <= thresholds.heavy_max:
        return WorkloadLevel.HEAVY
    return WorkloadLevel.OVERLOADED


class WorkloadTracker:
    def __init__(
        self,
        store: AssignmentStore,
        directory: MemberDirectory,
        thresholds: WorkloadThresholds | None = None,
    ) -> None:
        self.store = store
        self.directory = directory
        self.thresholds = thresholds or WorkloadThresholds()

    def recompute(self, member_id: UUID) -> int:
        """Active assignment count of one member, straight from the store."""
        return self.store.count_active_assignments(member_ids=[member_id]).get(member_id, 0)

    def counts(self, exclude_program_id: UUID | None = None) -> dict[UUID, int]:
        """Counts for every member with at least one active assignment."""
        return self.store.count_active_assignments(exclude_program_id=exclude_program_id)

    def classify(self, count: int) -> WorkloadLevel:
        return classify_workload(count, self.thresholds)

    def report(self) -> list[WorkloadEntry]:
        """Every active member with their load, highest first (ties by name)."""
        counts = self.counts()
        entries = [
            WorkloadEntry(
                member_id=member.id,
                name=member.name,
                commission_id=member.commission_id,
                count=counts.get(member.id, 0),
                level=self.classify(counts.get(member.id, 0)),
            )
            for member in self.directory.list_active_members()
        ]
        entries.sort(key=lambda entry: (-entry.count, entry.name))
        return entries

    def overloaded(self) -> list[WorkloadEntry]:
        return [entry for entry in self.report() if entry.level == WorkloadLevel.OVERLOADED]

    def summary(self) -> WorkloadSummary:
        entries = self.report()
        total = sum(entry.count for entry in entries)
        return WorkloadSummary(
            total_members=len(entries),
            average_assignments=round(total / len(entries), 1) if entries else 0.0,
            overloaded_members=sum(
                1 for entry in entries if entry.level == WorkloadLevel.OVERLOADED
            ),
        )
