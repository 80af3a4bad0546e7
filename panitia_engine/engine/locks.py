"""
Lock & Revision Manager — protection of assignments against regeneration.

A lock is advisory to the generator only: regeneration keeps locked rows and
their members, while manual add and remove act on the targeted row whatever
its lock state. Revisions are immutable snapshots of a program's assignment
set, taken on demand or automatically before a regeneration.
"""

from __future__ import annotations

import logging
from uuid import UUID

from panitia_engine.registry.schema import Assignment, Revision
from panitia_engine.store.service import AssignmentStore

logger = logging.getLogger(__name__)


class LockManager:
    def __init__(self, store: AssignmentStore) -> None:
        self.store = store

    def toggle_lock(self, assignment_id: UUID) -> Assignment:
        """Flip the lock flag of one assignment and return the updated row."""
        assignment = self.store.set_locked(assignment_id)
        logger.info(
            "Assignment %s: id=%s program=%s role=%s",
            "locked" if assignment.is_locked else "unlocked",
            str(assignment.id)[:8], str(assignment.program_id)[:8], assignment.role,
        )
        return assignment

    def set_lock(self, assignment_id: UUID, locked: bool) -> Assignment:
        return self.store.set_locked(assignment_id, locked)

    def locked_assignments(self, program_id: UUID) -> list[Assignment]:
        return self.store.list_assignments(program_id=program_id, locked=True)

    def snapshot(
        self,
        program_id: UUID,
        reason: str,
        created_by: str | None = None,
        description: str | None = None,
    ) -> Revision:
        """Record the program's current assignment set as a new revision."""
        return self.store.create_revision(
            program_id, change_reason=reason, created_by=created_by, description=description,
        )

    def revisions(self, program_id: UUID) -> list[Revision]:
        return self.store.list_revisions(program_id)
