"""
Tests for the Assignment Generator.

Validates:
- Gate order and error kinds
- Gatekeeper role reserved for its commission
- No member holding two required roles in one pass
- Locked rows covering required roles
- Workload balancing as a tie-break
"""

from __future__ import annotations

from uuid import uuid4

import pytest

from panitia_engine.engine.generator import GeneratorConfig, plan_committee
from panitia_engine.errors import (
    FeasibilityError,
    GatekeeperCommissionUnavailable,
    InsufficientCommissionDiversity,
    InsufficientMembers,
    InsufficientRoleFill,
    InvalidProgramWindow,
)
from panitia_engine.registry.schema import (
    Assignment,
    Commission,
    GatekeeperRule,
    Member,
)


class TestPlanCommittee:
    """Test the pure planner against an in-memory roster."""

    def setup_method(self):
        self.commissions = {
            c.id: c for c in (Commission(name="Komisi A"), Commission(name="Komisi B"), Commission(name="Komisi C"))
        }
        self.by_name = {c.name: c.id for c in self.commissions.values()}
        self.config = GeneratorConfig()

    def _member(self, name: str, commission: str | None) -> Member:
        return Member(name=name, commission_id=self.by_name[commission] if commission else None)

    def _standard(self) -> list[Member]:
        return [
            self._member("Adi", "Komisi A"),
            self._member("Ayu", "Komisi A"),
            self._member("Budi", "Komisi B"),
            self._member("Cahya", "Komisi C"),
            self._member("Citra", "Komisi C"),
        ]

    def test_gatekeeper_role_goes_to_single_b_member(self):
        """Five members over {A, A, B, C, C}: the B member holds divisi_acara and nothing else."""
        members = self._standard()
        proposals = plan_committee(members, self.commissions, self.config)

        by_role = {p.role: p for p in proposals}
        names = {m.id: m.name for m in members}
        assert [p.role for p in proposals] == ["ketua", "sekretaris", "bendahara", "divisi_acara"]
        assert names[by_role["ketua"].member_id] == "Adi"
        assert names[by_role["sekretaris"].member_id] == "Ayu"
        assert names[by_role["bendahara"].member_id] == "Cahya"
        assert names[by_role["divisi_acara"].member_id] == "Budi"
        b_members = [p for p in proposals if p.commission_id == self.by_name["Komisi B"]]
        assert len(b_members) == 1

    def test_no_member_holds_two_required_roles(self):
        proposals = plan_committee(self._standard(), self.commissions, self.config)
        member_ids = [p.member_id for p in proposals]
        assert len(member_ids) == len(set(member_ids))
        assert all(p.is_required_role for p in proposals)

    def test_commission_snapshot_matches_member(self):
        members = self._standard()
        commission_of = {m.id: m.commission_id for m in members}
        for proposal in plan_committee(members, self.commissions, self.config):
            assert proposal.commission_id == commission_of[proposal.member_id]

    def test_too_few_members(self):
        members = self._standard()[:2]
        with pytest.raises(InsufficientMembers) as exc_info:
            plan_committee(members, self.commissions, self.config)
        assert exc_info.value.kind == "insufficient_members"

    def test_members_without_commission_do_not_count(self):
        members = [
            self._member("Adi", "Komisi A"),
            self._member("Budi", "Komisi B"),
            self._member("Nobody", None),
        ]
        with pytest.raises(InsufficientMembers):
            plan_committee(members, self.commissions, self.config)

    def test_too_few_commissions(self):
        members = [
            self._member("Adi", "Komisi A"),
            self._member("Ayu", "Komisi A"),
            self._member("Budi", "Komisi B"),
            self._member("Bayu", "Komisi B"),
        ]
        with pytest.raises(InsufficientCommissionDiversity):
            plan_committee(members, self.commissions, self.config)

    def test_gatekeeper_commission_missing(self):
        members = [
            self._member("Adi", "Komisi A"),
            self._member("Ayu", "Komisi A"),
            self._member("Cahya", "Komisi C"),
            self._member("Citra", "Komisi C"),
        ]
        config = GeneratorConfig(min_commissions=2)
        with pytest.raises(GatekeeperCommissionUnavailable) as exc_info:
            plan_committee(members, self.commissions, config)
        assert "Komisi B" in exc_info.value.message
        assert isinstance(exc_info.value, FeasibilityError)

    def test_gates_checked_in_order(self):
        """Too few members is reported before diversity or gatekeeper problems."""
        members = [self._member("Adi", "Komisi A")]
        with pytest.raises(InsufficientMembers):
            plan_committee(members, self.commissions, self.config)

    def test_insufficient_role_fill(self):
        members = [
            self._member("Adi", "Komisi A"),
            self._member("Budi", "Komisi B"),
        ]
        config = GeneratorConfig(min_available_members=1, min_commissions=1, min_filled_roles=3)
        with pytest.raises(InsufficientRoleFill):
            plan_committee(members, self.commissions, config)

    def test_partial_fill_meets_minimum(self):
        members = [
            self._member("Adi", "Komisi A"),
            self._member("Budi", "Komisi B"),
            self._member("Cahya", "Komisi C"),
        ]
        proposals = plan_committee(members, self.commissions, self.config)
        assert len(proposals) == 3
        assert "divisi_acara" in {p.role for p in proposals}
        assert "bendahara" not in {p.role for p in proposals}

    def test_locked_role_is_skipped(self):
        members = self._standard()
        adi = members[0]
        locked = Assignment(
            id=uuid4(), program_id=uuid4(), member_id=adi.id,
            role="ketua", commission_id=adi.commission_id, is_locked=True,
        )
        proposals = plan_committee(members, self.commissions, self.config, locked=[locked])

        assert "ketua" not in {p.role for p in proposals}
        assert adi.id not in {p.member_id for p in proposals}
        assert len(proposals) == 3

    def test_locked_members_count_towards_gates(self):
        """A locked member still counts as available for the first two gates."""
        members = [
            self._member("Adi", "Komisi A"),
            self._member("Budi", "Komisi B"),
            self._member("Cahya", "Komisi C"),
        ]
        locked = Assignment(
            id=uuid4(), program_id=uuid4(), member_id=members[0].id,
            role="ketua", commission_id=members[0].commission_id, is_locked=True,
        )
        proposals = plan_committee(members, self.commissions, self.config, locked=[locked])
        assert {p.role for p in proposals} == {"sekretaris", "divisi_acara"}

    def test_balance_workload_prefers_idle_members(self):
        members = self._standard()
        counts = {members[0].id: 4, members[1].id: 2}
        config = GeneratorConfig(balance_workload=True)
        proposals = plan_committee(members, self.commissions, config, workload_counts=counts)

        by_role = {p.role: p.member_id for p in proposals}
        assert by_role["ketua"] == members[3].id  # Budi is reserved for divisi_acara
        assert members[0].id not in by_role.values()

    def test_custom_gatekeeper_rule(self):
        config = GeneratorConfig(
            gatekeeper_rules=[GatekeeperRule(role="bendahara", commission_name="Komisi C")],
        )
        members = self._standard()
        proposals = plan_committee(members, self.commissions, config)
        by_role = {p.role: p for p in proposals}
        assert by_role["bendahara"].commission_id == self.by_name["Komisi C"]
        assert by_role["ketua"].member_id == members[0].id

    def test_deterministic(self):
        members = self._standard()
        first = plan_committee(members, self.commissions, self.config)
        second = plan_committee(members, self.commissions, self.config)
        assert first == second


class TestAssignmentGenerator:
    """Test generation against the store (availability and commissions from the database)."""

    def test_invalid_window(self, service, roster):
        roster.standard_members()
        program = roster.program("Empty", 3, 3)
        with pytest.raises(InvalidProgramWindow):
            service.generator.generate(program)

    def test_busy_members_are_not_proposed(self, service, roster):
        members = roster.standard_members()
        roster.members(("Dewi", "Komisi A"))
        other = roster.program("Rapat", 0, 4)
        service.add_assignment(other.id, members[0].id, "ketua")

        program = roster.program("Pensi", 2, 6)
        proposals = service.generator.generate(program)
        assert members[0].id not in {p.member_id for p in proposals}

    def test_inactive_members_are_not_proposed(self, service, roster):
        roster.standard_members()
        ghost = roster.member("Aaron", "Komisi A", is_active=False)
        program = roster.program("Pensi")
        proposals = service.generator.generate(program)
        assert ghost.id not in {p.member_id for p in proposals}
