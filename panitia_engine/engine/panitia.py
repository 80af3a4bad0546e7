"""
Panitia Service — the operations exposed to the API, CLI and UI layers.

This is the one entry point callers use. It wires the engine components
together around a shared Assignment Store:

    generate_assignments  — regenerate one program's committee
    bulk_generate         — regenerate several programs, failures isolated
    list_assignments      — current rows by program and/or member
    add_assignment        — manual add (only commission presence is checked)
    toggle_lock           — protect/unprotect a row from regeneration
    remove_assignment     — manual delete, lock state ignored
    detect_conflicts      — post-hoc overlap report for a program

Conflicts are advisory: they are returned next to successful results and
never block a write.

Concurrent generations of the *same* program must be serialized by the
caller; the service does not lock programs.
"""

from __future__ import annotations

import logging
from typing import Iterable
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from panitia_engine.engine.availability import AvailabilityIndex
from panitia_engine.engine.conflicts import ConflictDetector
from panitia_engine.engine.generator import AssignmentGenerator, GeneratorConfig
from panitia_engine.engine.locks import LockManager
from panitia_engine.engine.workload import WorkloadThresholds, WorkloadTracker
from panitia_engine.errors import (
    InvalidRole,
    MemberWithoutCommission,
    PanitiaError,
    StorageError,
)
from panitia_engine.registry.schema import (
    BULK_CANDIDATE_STATUSES,
    Assignment,
    AssignmentResult,
    BatchStatus,
    BulkFailure,
    BulkResult,
    ConflictReport,
    GenerationResult,
    Program,
    Revision,
    WorkloadEntry,
    WorkloadSummary,
)
from panitia_engine.store.directory import MemberDirectory
from panitia_engine.store.events import AssignmentEventBus
from panitia_engine.store.service import AssignmentStore

logger = logging.getLogger(__name__)


class PanitiaService:
    """
    Committee assignment service.

    Usage:
        store = AssignmentStore(database_url)
        store.initialize()
        service = PanitiaService(store)

        result = service.generate_assignments(program_id)
        for report in result.conflicts:
            ...
    """

    def __init__(
        self,
        store: AssignmentStore,
        config: GeneratorConfig | None = None,
        thresholds: WorkloadThresholds | None = None,
        snapshot_on_regenerate: bool = True,
    ) -> None:
        self.store = store
        self.directory = MemberDirectory(store)
        self.availability = AvailabilityIndex(store, self.directory)
        self.conflicts = ConflictDetector(store, self.directory)
        self.workload = WorkloadTracker(store, self.directory, thresholds)
        self.generator = AssignmentGenerator(
            self.availability, self.directory, config, workload=self.workload,
        )
        self.locks = LockManager(store)
        self.snapshot_on_regenerate = snapshot_on_regenerate

    @classmethod
    def from_settings(cls, settings) -> PanitiaService:
        store = AssignmentStore(
            settings.database_url_sync,
            event_bus=AssignmentEventBus(history_size=settings.event_history_size),
        )
        return cls(
            store,
            config=GeneratorConfig.from_settings(settings),
            thresholds=WorkloadThresholds(
                available_max=settings.workload_available_max,
                heavy_max=settings.workload_heavy_max,
            ),
            snapshot_on_regenerate=settings.snapshot_on_regenerate,
        )

    @property
    def events(self) -> AssignmentEventBus:
        return self.store.event_bus

    # ── Generation ──────────────────────────────────────────────

    def generate_assignments(
        self,
        program_id: UUID,
        batch_id: UUID | None = None,
        created_by: str | None = None,
    ) -> GenerationResult:
        """
        Regenerate the required-role committee of one program.

        Unlocked rows are replaced, locked rows are kept, all in one
        transaction. Feasibility failures raise before anything is written.

        Raises:
            NotFound: Unknown program.
            FeasibilityError: The committee cannot be formed.
            StorageError: The write failed and was rolled back.
        """
        program = self.directory.get_program(program_id)
        locked = self.locks.locked_assignments(program_id)
        proposals = self.generator.generate(program, locked=locked)

        assignments, revision = self.store.replace_unlocked(
            program_id,
            proposals,
            batch_id=batch_id,
            snapshot_reason="regeneration" if self.snapshot_on_regenerate else None,
            created_by=created_by,
        )
        conflicts = self.conflicts.detect_conflicts(program_id)

        logger.info(
            "Committee generated: program=%s rows=%d locked_kept=%d conflicts=%d",
            str(program_id)[:8], len(assignments), len(locked), len(conflicts),
        )
        return GenerationResult(
            program_id=program_id,
            assignments=assignments,
            conflicts=conflicts,
            revision_id=revision.id if revision else None,
            batch_id=batch_id,
        )

    def bulk_generate(
        self,
        program_ids: Iterable[UUID],
        description: str | None = None,
        created_by: str | None = None,
    ) -> BulkResult:
        """
        Generate committees for several programs, one after another.

        Each program runs in its own transaction with the same rules as
        ``generate_assignments``. A failing program is reported and skipped;
        programs completed before it stay committed. Database errors raised
        outside the write transaction are reported as ``storage_error``.
        """
        ordered: list[UUID] = []
        for program_id in program_ids:
            if program_id not in ordered:
                ordered.append(program_id)

        batch = self.store.create_batch(ordered, description=description, created_by=created_by)
        result = BulkResult(batch_id=batch.id)

        finished = False
        try:
            for program_id in ordered:
                try:
                    self.generate_assignments(program_id, batch_id=batch.id, created_by=created_by)
                except PanitiaError as exc:
                    self._record_failure(result, program_id, exc)
                except SQLAlchemyError as exc:
                    self._record_failure(
                        result, program_id,
                        StorageError(f"Storage failure while generating program {program_id}: {exc}"),
                    )
                else:
                    result.succeeded.append(program_id)
            finished = True
        finally:
            if finished and not result.failed:
                status = BatchStatus.COMPLETED
            elif finished and result.succeeded:
                status = BatchStatus.PARTIAL
            else:
                status = BatchStatus.FAILED
            self.store.finish_batch(batch.id, status)

        logger.info(
            "Bulk generation finished: batch=%s succeeded=%d failed=%d",
            str(batch.id)[:8], len(result.succeeded), len(result.failed),
        )
        return result

    def bulk_candidates(self) -> list[Program]:
        """Programs offered for bulk generation: approved or submitted, by start time."""
        return self.directory.list_programs(statuses=BULK_CANDIDATE_STATUSES)

    # ── Manual edits ────────────────────────────────────────────

    def list_assignments(
        self,
        program_id: UUID | None = None,
        member_id: UUID | None = None,
    ) -> list[Assignment]:
        return self.store.list_assignments(program_id=program_id, member_id=member_id)

    def add_assignment(self, program_id: UUID, member_id: UUID, role: str) -> AssignmentResult:
        """
        Manually assign a member to a role, bypassing generation rules.

        The only requirement is that the member belongs to a commission,
        whose id is snapshotted onto the row.

        Raises:
            NotFound: Unknown program or member.
            InvalidRole: The role is empty or whitespace.
            MemberWithoutCommission: The member has no commission.
            DuplicateAssignment: The member already holds this role on the program.
        """
        role = role.strip()
        if not role:
            raise InvalidRole("Role must not be empty")

        program = self.directory.get_program(program_id)
        member = self.directory.get_member(member_id)
        if member.commission_id is None:
            raise MemberWithoutCommission(
                f"Member {member.name} must be assigned to a commission first"
            )

        assignment = self.store.add_assignment(
            program.id, member.id, role, member.commission_id, is_required_role=False,
        )
        conflicts = self._member_conflicts(program, member.id)
        return AssignmentResult(assignment=assignment, conflicts=conflicts)

    def toggle_lock(self, assignment_id: UUID) -> Assignment:
        return self.locks.toggle_lock(assignment_id)

    def remove_assignment(self, assignment_id: UUID) -> Assignment:
        return self.store.remove_assignment(assignment_id)

    # ── Reporting ───────────────────────────────────────────────

    def detect_conflicts(self, program_id: UUID) -> list[ConflictReport]:
        return self.conflicts.detect_conflicts(program_id)

    def snapshot(self, program_id: UUID, reason: str, created_by: str | None = None) -> Revision:
        return self.locks.snapshot(program_id, reason, created_by=created_by)

    def revisions(self, program_id: UUID) -> list[Revision]:
        return self.locks.revisions(program_id)

    def workload_report(self) -> list[WorkloadEntry]:
        return self.workload.report()

    def workload_summary(self) -> WorkloadSummary:
        return self.workload.summary()

    @staticmethod
    def _record_failure(result: BulkResult, program_id: UUID, exc: PanitiaError) -> None:
        logger.warning(
            "Bulk generation skipped program=%s kind=%s reason=%s",
            str(program_id)[:8], exc.kind, exc.message,
        )
        result.failed.append(BulkFailure(program_id=program_id, kind=exc.kind, reason=exc.message))

    def _member_conflicts(self, program: Program, member_id: UUID) -> list[ConflictReport]:
        others = self.conflicts.conflicts_for(
            member_id, program.start_datetime, program.end_datetime, exclude_program_id=program.id,
        )
        if not others:
            return []
        return [ConflictReport(member_id=member_id, conflicting_program_ids=[p.id for p in others])]
