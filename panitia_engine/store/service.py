"""
Assignment Store Service — durable table of current committee assignments.

This service is the only component that writes assignment rows. Every write
runs in its own transaction and, once committed, publishes a change event on
the affected program's channel. The operations are:

- Append a single assignment (manual add)
- Remove a single assignment (manual remove, lock state ignored)
- Toggle the lock flag of an assignment
- Replace the unlocked assignments of a program (regeneration), atomically
- Record revisions (snapshots) and bulk-generation batches
- Query assignments, time overlaps and derived workload counts

Regeneration guarantee: deleting unlocked rows, inserting the new rows and
recording the optional revision happen in one transaction. Locked rows are
never touched, so a reader never observes a program stripped of its locked
committee members.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable
from uuid import UUID, uuid4

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from panitia_engine.errors import DuplicateAssignment, NotFound, StorageError
from panitia_engine.registry.schema import (
    DEFAULT_COMMISSIONS,
    TERMINAL_PROGRAM_STATUSES,
    Assignment,
    Batch,
    BatchStatus,
    ChangeKind,
    Program,
    ProposedAssignment,
    Revision,
    to_storage_time,
)
from panitia_engine.store.events import AssignmentEventBus
from panitia_engine.store.models import (
    AssignmentBatchDB,
    AssignmentDB,
    Base,
    CommissionDB,
    ProgramDB,
    RevisionDB,
)

logger = logging.getLogger(__name__)

_TERMINAL_STATUS_VALUES = tuple(status.value for status in TERMINAL_PROGRAM_STATUSES)


class AssignmentStore:
    """
    Assignment Store — single source of truth for committee assignments.

    Usage:
        store = AssignmentStore(database_url)
        store.initialize()  # Create tables, seed commissions

        assignments, revision = store.replace_unlocked(
            program_id,
            proposals,
            snapshot_reason="regeneration",
        )
    """

    def __init__(
        self,
        database_url: str,
        event_bus: AssignmentEventBus | None = None,
        echo: bool = False,
    ) -> None:
        """
        Initialize the store.

        Args:
            database_url: SQLAlchemy connection string (sync driver).
            event_bus: Channel that receives change events after each commit.
            echo: Log emitted SQL.
        """
        engine_kwargs: dict = {"echo": echo}
        if database_url.startswith("sqlite") and ":memory:" in database_url:
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs.update(
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        self.engine = create_engine(database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine)
        self.event_bus = event_bus or AssignmentEventBus()

    def initialize(self, commissions: Iterable[str] = DEFAULT_COMMISSIONS) -> None:
        """Create the schema and seed the commission registry."""
        Base.metadata.create_all(self.engine)

        with self.SessionLocal() as session:
            existing = set(session.execute(select(CommissionDB.name)).scalars().all())
            missing = [name for name in commissions if name not in existing]
            for name in missing:
                session.add(CommissionDB(name=name, description=name))
            session.commit()

        if missing:
            logger.info("Commission registry seeded: %d added", len(missing))

    # ── Queries ────────────────────────────────────────────────

    def get_assignment(self, assignment_id: UUID) -> Assignment:
        with self.SessionLocal() as session:
            row = session.get(AssignmentDB, assignment_id)
            if row is None:
                raise NotFound("Assignment", assignment_id)
            return Assignment.model_validate(row)

    def list_assignments(
        self,
        program_id: UUID | None = None,
        member_id: UUID | None = None,
        locked: bool | None = None,
    ) -> list[Assignment]:
        """List assignments, optionally filtered by program, member and lock state."""
        stmt = select(AssignmentDB)
        if program_id is not None:
            stmt = stmt.where(AssignmentDB.program_id == program_id)
        if member_id is not None:
            stmt = stmt.where(AssignmentDB.member_id == member_id)
        if locked is not None:
            stmt = stmt.where(AssignmentDB.is_locked.is_(locked))
        stmt = stmt.order_by(
            AssignmentDB.program_id,
            AssignmentDB.created_at,
            AssignmentDB.role,
            AssignmentDB.member_id,
        )
        with self.SessionLocal() as session:
            return [Assignment.model_validate(row) for row in session.execute(stmt).scalars()]

    def find_overlaps(
        self,
        start: datetime,
        end: datetime,
        exclude_program_id: UUID | None = None,
        member_ids: Iterable[UUID] | None = None,
    ) -> list[tuple[UUID, Program]]:
        """
        Find (member, program) commitments whose program window overlaps [start, end).

        Overlap is half-open: ``program.start < end AND start < program.end``.
        Programs in a terminal status and the excluded program never count.
        Results are ordered by program start time, then program id.
        """
        start, end = to_storage_time(start), to_storage_time(end)
        stmt = (
            select(AssignmentDB.member_id, ProgramDB)
            .join(ProgramDB, ProgramDB.id == AssignmentDB.program_id)
            .where(
                ProgramDB.start_datetime < end,
                ProgramDB.end_datetime > start,
                ProgramDB.status.not_in(_TERMINAL_STATUS_VALUES),
            )
            .distinct()
            .order_by(ProgramDB.start_datetime, ProgramDB.id, AssignmentDB.member_id)
        )
        if exclude_program_id is not None:
            stmt = stmt.where(ProgramDB.id != exclude_program_id)
        if member_ids is not None:
            stmt = stmt.where(AssignmentDB.member_id.in_(list(member_ids)))

        with self.SessionLocal() as session:
            return [
                (member_id, Program.model_validate(program))
                for member_id, program in session.execute(stmt).all()
            ]

    def count_active_assignments(
        self,
        member_ids: Iterable[UUID] | None = None,
        exclude_program_id: UUID | None = None,
    ) -> dict[UUID, int]:
        """Count assignment rows per member on programs that are not completed/rejected."""
        stmt = (
            select(AssignmentDB.member_id, func.count(AssignmentDB.id))
            .join(ProgramDB, ProgramDB.id == AssignmentDB.program_id)
            .where(ProgramDB.status.not_in(_TERMINAL_STATUS_VALUES))
            .group_by(AssignmentDB.member_id)
        )
        if member_ids is not None:
            stmt = stmt.where(AssignmentDB.member_id.in_(list(member_ids)))
        if exclude_program_id is not None:
            stmt = stmt.where(AssignmentDB.program_id != exclude_program_id)

        with self.SessionLocal() as session:
            return {member_id: count for member_id, count in session.execute(stmt).all()}

    def list_revisions(self, program_id: UUID) -> list[Revision]:
        """Revisions of a program, newest first."""
        with self.SessionLocal() as session:
            rows = session.execute(
                select(RevisionDB)
                .where(RevisionDB.program_id == program_id)
                .order_by(RevisionDB.revision_number.desc())
            ).scalars()
            return [Revision.model_validate(row) for row in rows]

    def get_batch(self, batch_id: UUID) -> Batch:
        with self.SessionLocal() as session:
            row = session.get(AssignmentBatchDB, batch_id)
            if row is None:
                raise NotFound("Batch", batch_id)
            return Batch.model_validate(row)

    # ── Writes ─────────────────────────────────────────────────

    def add_assignment(
        self,
        program_id: UUID,
        member_id: UUID,
        role: str,
        commission_id: UUID,
        is_required_role: bool = False,
    ) -> Assignment:
        """
        Insert one assignment row.

        Raises:
            DuplicateAssignment: The (program, member, role) triple already exists.
            StorageError: The write failed and was rolled back.
        """
        with self.SessionLocal() as session:
            duplicate = session.execute(
                select(AssignmentDB.id).where(
                    AssignmentDB.program_id == program_id,
                    AssignmentDB.member_id == member_id,
                    AssignmentDB.role == role,
                )
            ).scalar_one_or_none()
            if duplicate is not None:
                raise DuplicateAssignment(
                    f"Member {member_id} already holds role '{role}' on program {program_id}"
                )

            row = AssignmentDB(
                id=uuid4(),
                program_id=program_id,
                member_id=member_id,
                role=role,
                commission_id=commission_id,
                is_required_role=is_required_role,
                is_locked=False,
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateAssignment(
                    f"Member {member_id} already holds role '{role}' on program {program_id}"
                ) from exc
            except SQLAlchemyError as exc:
                session.rollback()
                raise StorageError(f"Could not add assignment: {exc}") from exc
            session.refresh(row)
            assignment = Assignment.model_validate(row)

        logger.info(
            "Assignment added: program=%s member=%s role=%s",
            str(program_id)[:8], str(member_id)[:8], role,
        )
        self.event_bus.publish(program_id, ChangeKind.ADDED, [assignment.id])
        return assignment

    def remove_assignment(self, assignment_id: UUID) -> Assignment:
        """Delete one assignment row regardless of its lock state. Returns the removed row."""
        with self.SessionLocal() as session:
            row = session.get(AssignmentDB, assignment_id)
            if row is None:
                raise NotFound("Assignment", assignment_id)
            removed = Assignment.model_validate(row)
            session.delete(row)
            try:
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise StorageError(f"Could not remove assignment: {exc}") from exc

        logger.info(
            "Assignment removed: program=%s member=%s role=%s locked=%s",
            str(removed.program_id)[:8], str(removed.member_id)[:8],
            removed.role, removed.is_locked,
        )
        self.event_bus.publish(removed.program_id, ChangeKind.REMOVED, [removed.id])
        return removed

    def set_locked(self, assignment_id: UUID, locked: bool | None = None) -> Assignment:
        """Set the lock flag, or flip it when ``locked`` is None."""
        with self.SessionLocal() as session:
            row = session.get(AssignmentDB, assignment_id)
            if row is None:
                raise NotFound("Assignment", assignment_id)
            row.is_locked = (not row.is_locked) if locked is None else locked
            try:
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise StorageError(f"Could not change lock: {exc}") from exc
            session.refresh(row)
            assignment = Assignment.model_validate(row)

        self.event_bus.publish(assignment.program_id, ChangeKind.LOCK_CHANGED, [assignment.id])
        return assignment

    def replace_unlocked(
        self,
        program_id: UUID,
        proposals: Iterable[ProposedAssignment],
        batch_id: UUID | None = None,
        snapshot_reason: str | None = None,
        created_by: str | None = None,
    ) -> tuple[list[Assignment], Revision | None]:
        """
        Regenerate a program's committee in one transaction.

        Deletes every unlocked row of the program, keeps locked rows untouched
        and inserts ``proposals``. When ``snapshot_reason`` is given and the
        program already had rows, a Revision of the old set is recorded first
        and the new rows reference it.

        Returns:
            The program's full assignment set after the commit, and the
            revision that was recorded (if any).

        Raises:
            NotFound: The program does not exist.
            StorageError: The transaction failed; the program's rows are unchanged.
        """
        proposals = list(proposals)
        with self.SessionLocal() as session:
            if session.get(ProgramDB, program_id) is None:
                raise NotFound("Program", program_id)

            try:
                existing = session.execute(
                    select(AssignmentDB).where(AssignmentDB.program_id == program_id)
                ).scalars().all()

                revision_row = None
                if snapshot_reason is not None and existing:
                    revision_row = self._add_revision(
                        session, program_id, existing, snapshot_reason, created_by,
                        description="Snapshot before regeneration",
                    )

                removed = session.execute(
                    delete(AssignmentDB).where(
                        AssignmentDB.program_id == program_id,
                        AssignmentDB.is_locked.is_(False),
                    )
                ).rowcount

                inserted_ids = []
                for proposal in proposals:
                    row = AssignmentDB(
                        id=uuid4(),
                        program_id=program_id,
                        member_id=proposal.member_id,
                        role=proposal.role,
                        commission_id=proposal.commission_id,
                        is_required_role=proposal.is_required_role,
                        is_locked=False,
                        batch_id=batch_id,
                        revision_id=revision_row.id if revision_row is not None else None,
                    )
                    session.add(row)
                    inserted_ids.append(row.id)

                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error(
                    "Regeneration rolled back: program=%s error=%s", str(program_id)[:8], exc,
                )
                raise StorageError(f"Could not replace assignments of program {program_id}") from exc

            revision = Revision.model_validate(revision_row) if revision_row is not None else None

        logger.info(
            "Assignments replaced: program=%s removed=%d inserted=%d revision=%s",
            str(program_id)[:8], removed, len(inserted_ids),
            revision.revision_number if revision else None,
        )
        self.event_bus.publish(program_id, ChangeKind.GENERATED, inserted_ids)
        return self.list_assignments(program_id=program_id), revision

    def create_revision(
        self,
        program_id: UUID,
        change_reason: str,
        created_by: str | None = None,
        description: str | None = None,
    ) -> Revision:
        """Snapshot the program's current assignment set as a new immutable revision."""
        with self.SessionLocal() as session:
            if session.get(ProgramDB, program_id) is None:
                raise NotFound("Program", program_id)
            existing = session.execute(
                select(AssignmentDB).where(AssignmentDB.program_id == program_id)
            ).scalars().all()
            try:
                row = self._add_revision(
                    session, program_id, existing, change_reason, created_by, description,
                )
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise StorageError(f"Could not record revision: {exc}") from exc
            session.refresh(row)
            revision = Revision.model_validate(row)

        logger.info(
            "Revision recorded: program=%s number=%d rows=%d",
            str(program_id)[:8], revision.revision_number, len(revision.assignments_snapshot),
        )
        return revision

    def create_batch(
        self,
        program_ids: Iterable[UUID],
        description: str | None = None,
        created_by: str | None = None,
    ) -> Batch:
        with self.SessionLocal() as session:
            row = AssignmentBatchDB(
                id=uuid4(),
                program_ids=[str(pid) for pid in program_ids],
                description=description,
                created_by=created_by,
                status=BatchStatus.RUNNING.value,
            )
            session.add(row)
            try:
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise StorageError(f"Could not open batch: {exc}") from exc
            session.refresh(row)
            return Batch.model_validate(row)

    def finish_batch(self, batch_id: UUID, status: BatchStatus) -> Batch:
        with self.SessionLocal() as session:
            row = session.get(AssignmentBatchDB, batch_id)
            if row is None:
                raise NotFound("Batch", batch_id)
            row.status = status.value
            try:
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise StorageError(f"Could not close batch: {exc}") from exc
            session.refresh(row)
            return Batch.model_validate(row)

    # ── Internal ────────────────────────────────────────────────

    @staticmethod
    def _add_revision(
        session: Session,
        program_id: UUID,
        rows: Iterable[AssignmentDB],
        change_reason: str,
        created_by: str | None,
        description: str | None = None,
    ) -> RevisionDB:
        last_number = session.execute(
            select(func.max(RevisionDB.revision_number)).where(RevisionDB.program_id == program_id)
        ).scalar()
        revision = RevisionDB(
            id=uuid4(),
            program_id=program_id,
            revision_number=(last_number or 0) + 1,
            created_by=created_by,
            description=description,
            change_reason=change_reason,
            assignments_snapshot=[Assignment.model_validate(row).snapshot() for row in rows],
        )
        session.add(revision)
        session.flush()
        return revision
