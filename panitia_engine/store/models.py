"""
Assignment Store — SQLAlchemy models for committee assignments and their context.

The Assignment Store is the single source of truth for who holds which role
on which program. Member, commission and program tables live in the same
schema because the engine joins against them, but the engine treats them as
read-only reference data owned by other services.

Portable column types (``Uuid``, ``JSON``) keep the schema usable on both
PostgreSQL and SQLite. All timestamps are naive UTC.
"""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase

from panitia_engine.registry.schema import utc_now


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all store models."""
    pass


class CommissionDB(Base):
    """Commissions (Komisi A/B/C, Sekbid 1..9). Seeded on initialization."""

    __tablename__ = "commissions"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class MemberDB(Base):
    """
    Committee candidates, owned by the Member Directory.

    Members carry no workload counter; workload is derived from
    ``panitia_assignments``.
    """

    __tablename__ = "members"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(200), nullable=False)
    nis = Column(String(50), nullable=True, unique=True, comment="Student number")
    commission_id = Column(Uuid, ForeignKey("commissions.id"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_member_active_name", "is_active", "name"),
    )


class ProgramDB(Base):
    """Programs (events). The engine reads window and status only."""

    __tablename__ = "programs"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(200), nullable=False)
    type = Column(String(50), nullable=False, default="kegiatan_kecil")
    status = Column(
        String(20), nullable=False, default="draft",
        comment="draft, submitted, under_review, approved, in_progress, completed, rejected",
    )
    start_datetime = Column(DateTime, nullable=False)
    end_datetime = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_program_status", "status"),
        Index("ix_program_window", "start_datetime", "end_datetime"),
    )


class AssignmentBatchDB(Base):
    """One bulk-generation run across several programs (traceability only)."""

    __tablename__ = "panitia_assignment_batches"

    id = Column(Uuid, primary_key=True, default=uuid4)
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    description = Column(Text, nullable=True)
    program_ids = Column(JSON, nullable=False, default=list)
    status = Column(
        String(20), nullable=False, default="running",
        comment="running, completed, partial, failed",
    )


class RevisionDB(Base):
    """
    Immutable snapshot of one program's assignment set.

    Rows are only ever inserted. ``revision_number`` increases per program.
    """

    __tablename__ = "panitia_revisions"

    id = Column(Uuid, primary_key=True, default=uuid4)
    program_id = Column(Uuid, ForeignKey("programs.id"), nullable=False)
    revision_number = Column(Integer, nullable=False)
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    description = Column(Text, nullable=True)
    change_reason = Column(Text, nullable=True)
    assignments_snapshot = Column(JSON, nullable=False, default=list)

    __table_args__ = (
        UniqueConstraint("program_id", "revision_number", name="uq_revision_program_number"),
    )


class AssignmentDB(Base):
    """
    One member holding one role on one program.

    ``commission_id`` is the member's commission at assignment time.
    ``is_locked`` rows survive regeneration of their program.
    """

    __tablename__ = "panitia_assignments"

    id = Column(Uuid, primary_key=True, default=uuid4)
    program_id = Column(Uuid, ForeignKey("programs.id"), nullable=False)
    member_id = Column(Uuid, ForeignKey("members.id"), nullable=False)
    role = Column(String(50), nullable=False)
    commission_id = Column(Uuid, ForeignKey("commissions.id"), nullable=False)
    is_required_role = Column(Boolean, nullable=False, default=False)
    is_locked = Column(Boolean, nullable=False, default=False)
    batch_id = Column(Uuid, ForeignKey("panitia_assignment_batches.id"), nullable=True)
    revision_id = Column(Uuid, ForeignKey("panitia_revisions.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("program_id", "member_id", "role", name="uq_assignment_program_member_role"),
        Index("ix_assignment_program", "program_id"),
        Index("ix_assignment_member", "member_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Assignment program={str(self.program_id)[:8]} "
            f"member={str(self.member_id)[:8]} role={self.role} locked={self.is_locked}>"
        )
