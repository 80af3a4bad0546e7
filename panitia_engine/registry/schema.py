"""
Panitia Schema — Pydantic models for every entity the assignment engine touches.

These models are the canonical in-memory shapes exchanged between the
Assignment Store, the Member Directory, the engine components and the HTTP
layer. ORM rows are converted into them at the store boundary so that no
SQLAlchemy session ever leaks into the engine.

Entities:
    Commission  — named grouping of members (Komisi A/B/C, Sekbid 1..9)
    Member      — committee candidate with an optional commission
    Program     — an event with a [start, end) window and a lifecycle status
    Assignment  — one member holding one role on one program
    Revision    — immutable snapshot of a program's assignment set
    Batch       — traceability record of one bulk-generation run
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field


def utc_now() -> datetime:
    """Current time as naive UTC, the storage convention of the Assignment Store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_storage_time(value: datetime) -> datetime:
    """Normalize a datetime to naive UTC; naive inputs are taken to be UTC already."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# ════════════════════════════════════════════════════════════════
# Enumerations
# ════════════════════════════════════════════════════════════════


class ProgramStatus(str, enum.Enum):
    """Program lifecycle (draft → … → completed, or rejected)."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"


TERMINAL_PROGRAM_STATUSES = frozenset({ProgramStatus.COMPLETED, ProgramStatus.REJECTED})

# Programs offered for bulk generation, ordered by start time
BULK_CANDIDATE_STATUSES = (ProgramStatus.APPROVED, ProgramStatus.SUBMITTED)


class PanitiaRole(str, enum.Enum):
    """Committee roles known to the organization."""

    KETUA = "ketua"
    WAKIL_KETUA = "wakil_ketua"
    SEKRETARIS = "sekretaris"
    BENDAHARA = "bendahara"
    DIVISI_ACARA = "divisi_acara"
    DIVISI_HUMAS = "divisi_humas"
    DIVISI_DOKUMENTASI = "divisi_dokumentasi"
    DIVISI_KONSUMSI = "divisi_konsumsi"
    DIVISI_PERLENGKAPAN = "divisi_perlengkapan"
    DIVISI_DEKORASI = "divisi_dekorasi"


class WorkloadLevel(str, enum.Enum):
    """Overload classification of a member's active assignment count."""

    AVAILABLE = "available"
    HEAVY = "heavy"
    OVERLOADED = "overloaded"


class BatchStatus(str, enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class ChangeKind(str, enum.Enum):
    """What a committed write did to a program's assignment set."""

    GENERATED = "generated"
    ADDED = "added"
    REMOVED = "removed"
    LOCK_CHANGED = "lock_changed"


# ════════════════════════════════════════════════════════════════
# Reference data & defaults
# ════════════════════════════════════════════════════════════════


DEFAULT_COMMISSIONS: tuple[str, ...] = (
    "Komisi A",
    "Komisi B",
    "Komisi C",
    *(f"Sekbid {n}" for n in range(1, 10)),
)

DEFAULT_REQUIRED_ROLES: tuple[str, ...] = (
    PanitiaRole.KETUA.value,
    PanitiaRole.SEKRETARIS.value,
    PanitiaRole.BENDAHARA.value,
    PanitiaRole.DIVISI_ACARA.value,
)


class GatekeeperRule(BaseModel):
    """A role that may only be filled by members of one named commission."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(description="Committee role guarded by the rule (e.g. 'divisi_acara')")
    commission_name: str = Field(description="Commission whose members alone may fill it")


DEFAULT_GATEKEEPER_RULES: tuple[GatekeeperRule, ...] = (
    GatekeeperRule(role=PanitiaRole.DIVISI_ACARA.value, commission_name="Komisi B"),
)


# ════════════════════════════════════════════════════════════════
# Directory Models
# ════════════════════════════════════════════════════════════════


class Commission(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    name: str
    description: str | None = None


class Member(BaseModel):
    """A committee candidate. Only active members with a commission can be generated."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    name: str
    nis: str | None = Field(default=None, description="Student number")
    commission_id: UUID | None = None
    is_active: bool = True


class Program(BaseModel):
    """An event whose committee is generated. Window is half-open: [start, end)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    name: str
    type: str = "kegiatan_kecil"
    status: ProgramStatus = ProgramStatus.DRAFT
    start_datetime: datetime
    end_datetime: datetime

    @computed_field
    @property
    def has_valid_window(self) -> bool:
        return self.start_datetime < self.end_datetime

    @computed_field
    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_PROGRAM_STATUSES


# ════════════════════════════════════════════════════════════════
# Assignment Models
# ════════════════════════════════════════════════════════════════


class Assignment(BaseModel):
    """
    One member holding one role on one program.

    `commission_id` is a snapshot taken at assignment time, not a live
    reference to the member's current commission.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    program_id: UUID
    member_id: UUID
    role: str
    commission_id: UUID
    is_required_role: bool = False
    is_locked: bool = False
    batch_id: UUID | None = None
    revision_id: UUID | None = None
    created_at: datetime | None = None

    def snapshot(self) -> dict[str, Any]:
        """JSON-safe form stored inside a Revision."""
        return {
            "id": str(self.id),
            "member_id": str(self.member_id),
            "role": self.role,
            "commission_id": str(self.commission_id),
            "is_required_role": self.is_required_role,
            "is_locked": self.is_locked,
        }


class ProposedAssignment(BaseModel):
    """A row the generator wants written; becomes an Assignment once stored."""

    model_config = ConfigDict(frozen=True)

    member_id: UUID
    role: str
    commission_id: UUID
    is_required_role: bool = True


class Revision(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    program_id: UUID
    revision_number: int
    created_by: str | None = None
    created_at: datetime | None = None
    description: str | None = None
    change_reason: str | None = None
    assignments_snapshot: list[dict[str, Any]] = Field(default_factory=list)


class Batch(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_by: str | None = None
    created_at: datetime | None = None
    description: str | None = None
    program_ids: list[str] = Field(default_factory=list)
    status: BatchStatus = BatchStatus.RUNNING


# ════════════════════════════════════════════════════════════════
# Results & Reports
# ════════════════════════════════════════════════════════════════


class ConflictReport(BaseModel):
    """An assignee of a program who is also committed to overlapping programs."""

    member_id: UUID
    conflicting_program_ids: list[UUID]


class GenerationResult(BaseModel):
    program_id: UUID
    assignments: list[Assignment]
    conflicts: list[ConflictReport] = Field(default_factory=list)
    revision_id: UUID | None = None
    batch_id: UUID | None = None


class AssignmentResult(BaseModel):
    assignment: Assignment
    conflicts: list[ConflictReport] = Field(default_factory=list)


class BulkFailure(BaseModel):
    program_id: UUID
    kind: str
    reason: str


class BulkResult(BaseModel):
    batch_id: UUID
    succeeded: list[UUID] = Field(default_factory=list)
    failed: list[BulkFailure] = Field(default_factory=list)


class WorkloadEntry(BaseModel):
    member_id: UUID
    name: str
    commission_id: UUID | None = None
    count: int
    level: WorkloadLevel


class WorkloadSummary(BaseModel):
    total_members: int
    average_assignments: float
    overloaded_members: int


class AssignmentChangeEvent(BaseModel):
    """Emitted on a program's channel after a committed write to its assignments."""

    program_id: UUID
    sequence: int
    kind: ChangeKind
    assignment_ids: list[UUID] = Field(default_factory=list)
    occurred_at: datetime = Field(default_factory=utc_now)
