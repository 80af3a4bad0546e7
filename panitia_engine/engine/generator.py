"""
Assignment Generator — greedy, deterministic committee builder for one program.

The generator proposes who fills each required role of a program. It never
writes: the proposals are handed to the Assignment Store, which swaps them in
for the program's unlocked rows in one transaction.

Algorithm (single pass, no backtracking):

1. Take the members available for the program's window (Availability Index,
   the program itself excluded), dropping members without a commission.
2. Gate 1 — at least ``min_available_members`` of them.
3. Gate 2 — at least ``min_commissions`` distinct commissions among them.
4. Members holding a locked row on the program keep it and are not
   candidates; required roles already covered by a locked row are skipped.
   Gate 3 — every gatekeeper role still to fill has a candidate from its
   commission.
5. Each open gatekeeper role reserves the first candidate of its commission.
   Required roles are then walked in order: a gatekeeper role takes its
   reservation, any other role takes the first unclaimed, unreserved
   candidate. Nobody receives two required roles in one pass.
6. Gate 4 — at least ``min_filled_roles`` required roles covered.

Candidate order is the directory's stable order (name, then id), optionally
re-sorted by current workload when ``balance_workload`` is enabled.
"""

from __future__ import annotations

import logging
from typing import Iterable
from uuid import UUID

from pydantic import BaseModel, Field

from panitia_engine.errors import (
    GatekeeperCommissionUnavailable,
    InsufficientCommissionDiversity,
    InsufficientMembers,
    InsufficientRoleFill,
    InvalidProgramWindow,
)
from panitia_engine.registry.schema import (
    DEFAULT_GATEKEEPER_RULES,
    DEFAULT_REQUIRED_ROLES,
    Assignment,
    Commission,
    GatekeeperRule,
    Member,
    Program,
    ProposedAssignment,
)
from panitia_engine.engine.availability import AvailabilityIndex
from panitia_engine.engine.workload import WorkloadTracker
from panitia_engine.store.directory import MemberDirectory

logger = logging.getLogger(__name__)


class GeneratorConfig(BaseModel):
    """Business rules of committee generation."""

    required_roles: list[str] = Field(default_factory=lambda: list(DEFAULT_REQUIRED_ROLES))
    gatekeeper_rules: list[GatekeeperRule] = Field(
        default_factory=lambda: list(DEFAULT_GATEKEEPER_RULES)
    )
    min_commissions: int = Field(default=3, ge=0)
    min_available_members: int = Field(default=3, ge=0)
    min_filled_roles: int = Field(default=3, ge=0)
    balance_workload: bool = False

    @classmethod
    def from_settings(cls, settings) -> GeneratorConfig:
        return cls(
            required_roles=list(settings.required_roles),
            gatekeeper_rules=list(settings.gatekeeper_rules),
            min_commissions=settings.min_commissions,
            min_available_members=settings.min_available_members,
            min_filled_roles=settings.min_filled_roles,
            balance_workload=settings.balance_workload,
        )

    def gatekeeper_for(self, role: str) -> GatekeeperRule | None:
        for rule in self.gatekeeper_rules:
            if rule.role == role:
                return rule
        return None


def plan_committee(
    available: Iterable[Member],
    commissions: dict[UUID, Commission],
    config: GeneratorConfig,
    locked: Iterable[Assignment] = (),
    workload_counts: dict[UUID, int] | None = None,
) -> list[ProposedAssignment]:
    """
    Pure core of the generator: choose members for the required roles.

    Args:
        available: Members free for the program window, in tie-break order.
        commissions: Commission registry keyed by id.
        config: Generation rules.
        locked: Locked assignments of the program, kept as they are.
        workload_counts: Current load per member; used only when
            ``config.balance_workload`` is set.

    Returns:
        Proposals for the required roles not covered by locked rows.

    Raises:
        FeasibilityError subclasses, in gate order.
    """
    locked = list(locked)
    pool = [m for m in available if m.is_active and m.commission_id is not None]

    if len(pool) < config.min_available_members:
        raise InsufficientMembers(
            f"Only {len(pool)} available member(s); at least "
            f"{config.min_available_members} are needed to form a committee"
        )

    distinct_commissions = {m.commission_id for m in pool}
    if len(distinct_commissions) < config.min_commissions:
        raise InsufficientCommissionDiversity(
            f"Available members span {len(distinct_commissions)} commission(s); "
            f"at least {config.min_commissions} are required"
        )

    locked_members = {a.member_id for a in locked}
    covered_roles = {a.role for a in locked if a.role in config.required_roles}
    candidates = [m for m in pool if m.id not in locked_members]
    if config.balance_workload and workload_counts is not None:
        # sorted() is stable, so equal loads keep directory order
        candidates = sorted(candidates, key=lambda m: workload_counts.get(m.id, 0))

    claimed: set[UUID] = set()
    reservations: dict[str, Member] = {}
    for role in config.required_roles:
        rule = config.gatekeeper_for(role)
        if rule is None or role in covered_roles or role in reservations:
            continue
        gatekeepers = [
            m for m in candidates
            if m.id not in claimed
            and commissions.get(m.commission_id) is not None
            and commissions[m.commission_id].name == rule.commission_name
        ]
        if not gatekeepers:
            raise GatekeeperCommissionUnavailable(
                f"No available member of {rule.commission_name}; "
                f"it is required for role '{role}'"
            )
        reservations[role] = gatekeepers[0]
        claimed.add(gatekeepers[0].id)

    proposals: list[ProposedAssignment] = []
    for role in config.required_roles:
        if role in covered_roles:
            continue
        selected = reservations.pop(role, None)
        if selected is None:
            selected = next((m for m in candidates if m.id not in claimed), None)
        if selected is None:
            logger.debug("No candidate left for role %s", role)
            continue
        claimed.add(selected.id)
        proposals.append(
            ProposedAssignment(
                member_id=selected.id,
                role=role,
                commission_id=selected.commission_id,
                is_required_role=True,
            )
        )

    filled = len(covered_roles) + len(proposals)
    if filled < config.min_filled_roles:
        raise InsufficientRoleFill(
            f"Only {filled} of {len(config.required_roles)} required role(s) could be "
            f"filled; at least {config.min_filled_roles} are needed"
        )

    return proposals


class AssignmentGenerator:
    """Binds the pure planner to live availability, commissions and workload."""

    def __init__(
        self,
        availability: AvailabilityIndex,
        directory: MemberDirectory,
        config: GeneratorConfig | None = None,
        workload: WorkloadTracker | None = None,
    ) -> None:
        self.availability = availability
        self.directory = directory
        self.config = config or GeneratorConfig()
        self.workload = workload

    def generate(
        self,
        program: Program,
        locked: Iterable[Assignment] = (),
    ) -> list[ProposedAssignment]:
        """
        Propose the required-role committee of one program.

        Raises:
            InvalidProgramWindow: The program's window is empty or inverted.
            FeasibilityError subclasses: See ``plan_committee``.
        """
        if not program.has_valid_window:
            raise InvalidProgramWindow(
                f"Program {program.id} has an empty window "
                f"({program.start_datetime.isoformat()} .. {program.end_datetime.isoformat()})"
            )

        available = self.availability.available(
            program.start_datetime, program.end_datetime, exclude_program_id=program.id,
        )
        commissions = {c.id: c for c in self.directory.list_commissions()}
        workload_counts = None
        if self.config.balance_workload and self.workload is not None:
            workload_counts = self.workload.counts(exclude_program_id=program.id)

        proposals = plan_committee(
            available, commissions, self.config, locked=locked, workload_counts=workload_counts,
        )
        logger.info(
            "Committee proposed: program=%s available=%d proposals=%d",
            str(program.id)[:8], len(available), len(proposals),
        )
        return proposals
