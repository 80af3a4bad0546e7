"""
Error taxonomy of the assignment engine.

Every error carries a stable ``kind`` string that callers (the HTTP layer,
bulk generation reports) expose as-is.
"""

from __future__ import annotations

from uuid import UUID


class PanitiaError(Exception):
    """Base class for all errors raised by the engine."""

    kind = "panitia_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class NotFound(PanitiaError):
    kind = "not_found"

    def __init__(self, entity: str, entity_id: UUID | str) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class StorageError(PanitiaError):
    """A transactional write failed and was rolled back."""

    kind = "storage_error"


class DuplicateAssignment(PanitiaError):
    kind = "duplicate_assignment"


class MemberWithoutCommission(PanitiaError):
    kind = "member_without_commission"


class InvalidRole(PanitiaError):
    """A manual assignment named an empty role."""

    kind = "invalid_role"


# ── Feasibility ────────────────────────────────────────────────


class FeasibilityError(PanitiaError):
    """Generation cannot produce a valid committee; nothing was written."""

    kind = "infeasible"


class InvalidProgramWindow(FeasibilityError):
    kind = "invalid_program_window"


class InsufficientMembers(FeasibilityError):
    kind = "insufficient_members"


class InsufficientCommissionDiversity(FeasibilityError):
    kind = "insufficient_commission_diversity"


class GatekeeperCommissionUnavailable(FeasibilityError):
    kind = "gatekeeper_commission_unavailable"


class InsufficientRoleFill(FeasibilityError):
    kind = "insufficient_role_fill"
