"""
Conflict Detector — reports time-overlapping commitments of assignees.

Reporting only: nothing here mutates state or blocks an operation. The
detector is re-run against a program's *current* window, so a schedule
change made after the committee was formed shows up on the next check.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from uuid import UUID

from panitia_engine.registry.schema import ConflictReport, Program
from panitia_engine.store.directory import MemberDirectory
from panitia_engine.store.service import AssignmentStore

logger = logging.getLogger(__name__)


class ConflictDetector:
    def __init__(self, store: AssignmentStore, directory: MemberDirectory) -> None:
        self.store = store
        self.directory = directory

    def conflicts_for(
        self,
        member_id: UUID,
        start: datetime,
        end: datetime,
        exclude_program_id: UUID | None = None,
    ) -> list[Program]:
        """Programs the member is committed to that overlap [start, end), by start time."""
        overlaps = self.store.find_overlaps(
            start, end, exclude_program_id=exclude_program_id, member_ids=[member_id],
        )
        return [program for _, program in overlaps]

    def detect_conflicts(self, program_id: UUID) -> list[ConflictReport]:
        """
        Check every current assignee of a program for overlapping commitments.

        Members holding several roles on the program are reported once.
        Members without conflicts are omitted.
        """
        program = self.directory.get_program(program_id)
        assignees: list[UUID] = []
        for assignment in self.store.list_assignments(program_id=program_id):
            if assignment.member_id not in assignees:
                assignees.append(assignment.member_id)
        if not assignees:
            return []

        overlaps = self.store.find_overlaps(
            program.start_datetime,
            program.end_datetime,
            exclude_program_id=program.id,
            member_ids=assignees,
        )
        by_member: dict[UUID, list[UUID]] = defaultdict(list)
        for member_id, other in overlaps:
            if other.id not in by_member[member_id]:
                by_member[member_id].append(other.id)

        reports = [
            ConflictReport(member_id=member_id, conflicting_program_ids=by_member[member_id])
            for member_id in assignees
            if by_member.get(member_id)
        ]
        if reports:
            logger.info(
                "Conflicts detected: program=%s members=%d",
                str(program_id)[:8], len(reports),
            )
        return reports
