"""
Member Directory — read access to members, commissions and programs.

The engine consumes three lookups from here: active members (in stable
name order), the commission registry, and single programs. Members,
commissions and programs are owned by other services; the ``register_*``
helpers exist so that deployments and tests can seed reference data, not as
a CRUD surface.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from panitia_engine.errors import NotFound, StorageError
from panitia_engine.registry.schema import (
    Commission,
    Member,
    Program,
    ProgramStatus,
    to_storage_time,
)
from panitia_engine.store.models import CommissionDB, MemberDB, ProgramDB
from panitia_engine.store.service import AssignmentStore

logger = logging.getLogger(__name__)


class MemberDirectory:
    """Read-only view of reference data, sharing the Assignment Store's database."""

    def __init__(self, store: AssignmentStore) -> None:
        self.SessionLocal = store.SessionLocal

    # ── Lookups consumed by the engine ──────────────────────────

    def list_active_members(self) -> list[Member]:
        """Active members ordered by name, then id (the generator's tie-break order)."""
        with self.SessionLocal() as session:
            rows = session.execute(
                select(MemberDB)
                .where(MemberDB.is_active.is_(True))
                .order_by(MemberDB.name, MemberDB.id)
            ).scalars()
            return [Member.model_validate(row) for row in rows]

    def list_commissions(self) -> list[Commission]:
        with self.SessionLocal() as session:
            rows = session.execute(select(CommissionDB).order_by(CommissionDB.name)).scalars()
            return [Commission.model_validate(row) for row in rows]

    def get_program(self, program_id: UUID) -> Program:
        with self.SessionLocal() as session:
            row = session.get(ProgramDB, program_id)
            if row is None:
                raise NotFound("Program", program_id)
            return Program.model_validate(row)

    def get_member(self, member_id: UUID) -> Member:
        with self.SessionLocal() as session:
            row = session.get(MemberDB, member_id)
            if row is None:
                raise NotFound("Member", member_id)
            return Member.model_validate(row)

    def get_commission_by_name(self, name: str) -> Commission:
        with self.SessionLocal() as session:
            row = session.execute(
                select(CommissionDB).where(CommissionDB.name == name)
            ).scalar_one_or_none()
            if row is None:
                raise NotFound("Commission", name)
            return Commission.model_validate(row)

    def list_programs(self, statuses: Iterable[ProgramStatus] | None = None) -> list[Program]:
        """Programs ordered by start time, optionally restricted to some statuses."""
        stmt = select(ProgramDB).order_by(ProgramDB.start_datetime, ProgramDB.id)
        if statuses is not None:
            stmt = stmt.where(ProgramDB.status.in_([status.value for status in statuses]))
        with self.SessionLocal() as session:
            return [Program.model_validate(row) for row in session.execute(stmt).scalars()]

    # ── Registration helpers ────────────────────────────────────

    def register_commission(self, name: str, description: str | None = None) -> Commission:
        row = CommissionDB(id=uuid4(), name=name, description=description)
        return self._insert(row, Commission)

    def register_member(
        self,
        name: str,
        commission_id: UUID | None,
        nis: str | None = None,
        is_active: bool = True,
        member_id: UUID | None = None,
    ) -> Member:
        row = MemberDB(
            id=member_id or uuid4(),
            name=name,
            nis=nis,
            commission_id=commission_id,
            is_active=is_active,
        )
        return self._insert(row, Member)

    def register_program(
        self,
        name: str,
        start: datetime,
        end: datetime,
        status: ProgramStatus = ProgramStatus.APPROVED,
        type: str = "kegiatan_kecil",
        program_id: UUID | None = None,
    ) -> Program:
        row = ProgramDB(
            id=program_id or uuid4(),
            name=name,
            type=type,
            status=status.value,
            start_datetime=to_storage_time(start),
            end_datetime=to_storage_time(end),
        )
        return self._insert(row, Program)

    def reschedule_program(self, program_id: UUID, start: datetime, end: datetime) -> Program:
        """Move a program's window; existing assignments are left for the conflict report."""
        return self._update_program(
            program_id,
            start_datetime=to_storage_time(start),
            end_datetime=to_storage_time(end),
        )

    def set_program_status(self, program_id: UUID, status: ProgramStatus) -> Program:
        return self._update_program(program_id, status=status.value)

    # ── Internal ────────────────────────────────────────────────

    def _insert(self, row, model):
        with self.SessionLocal() as session:
            session.add(row)
            try:
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise StorageError(f"Could not register {model.__name__.lower()}: {exc}") from exc
            session.refresh(row)
            return model.model_validate(row)

    def _update_program(self, program_id: UUID, **values) -> Program:
        with self.SessionLocal() as session:
            row = session.get(ProgramDB, program_id)
            if row is None:
                raise NotFound("Program", program_id)
            for key, value in values.items():
                setattr(row, key, value)
            try:
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise StorageError(f"Could not update program: {exc}") from exc
            session.refresh(row)
            logger.info("Program updated: id=%s fields=%s", str(program_id)[:8], sorted(values))
            return Program.model_validate(row)
