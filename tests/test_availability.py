"""
Tests for the Availability Index and the Conflict Detector.

Validates:
- Half-open window overlap
- Exclusion of the program being generated
- Terminal programs never blocking a member
- Mutual conflict reports for overlapping programs
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from panitia_engine.engine.availability import windows_overlap
from panitia_engine.registry.schema import ProgramStatus


class TestWindowsOverlap:
    def setup_method(self):
        self.t = datetime(2024, 1, 10, 9, 0)

    def test_overlapping(self):
        h = timedelta(hours=1)
        assert windows_overlap(self.t, self.t + 2 * h, self.t + h, self.t + 3 * h)

    def test_touching_endpoints_do_not_overlap(self):
        h = timedelta(hours=1)
        assert not windows_overlap(self.t, self.t + h, self.t + h, self.t + 2 * h)

    def test_containment(self):
        h = timedelta(hours=1)
        assert windows_overlap(self.t, self.t + 8 * h, self.t + 2 * h, self.t + 3 * h)


class TestAvailabilityIndex:
    """Member availability against the store."""

    def test_member_busy_elsewhere_is_excluded(self, service, roster):
        """P [09:00, 17:00) and Q [08:00, 10:00) overlap, so M is not available for P."""
        m = roster.member("Mira", "Komisi A")
        roster.member("Nina", "Komisi B")
        q = roster.program("Q", 0, 2)
        p = roster.program("P", 1, 9)
        service.add_assignment(q.id, m.id, "ketua")

        available = service.availability.available(p.start_datetime, p.end_datetime, exclude_program_id=p.id)
        assert m.id not in {member.id for member in available}
        assert [member.name for member in available] == ["Nina"]

        conflicts = service.conflicts.conflicts_for(m.id, p.start_datetime, p.end_datetime, exclude_program_id=p.id)
        assert [program.id for program in conflicts] == [q.id]

    def test_own_program_does_not_block(self, service, roster):
        m = roster.member("Mira", "Komisi A")
        p = roster.program("P", 0, 4)
        service.add_assignment(p.id, m.id, "ketua")

        assert service.availability.is_available(m.id, p.start_datetime, p.end_datetime, exclude_program_id=p.id)
        assert not service.availability.is_available(m.id, p.start_datetime, p.end_datetime)

    def test_adjacent_program_does_not_block(self, service, roster):
        m = roster.member("Mira", "Komisi A")
        q = roster.program("Q", 0, 2)
        p = roster.program("P", 2, 4)
        service.add_assignment(q.id, m.id, "ketua")

        assert service.availability.is_available(m.id, p.start_datetime, p.end_datetime, exclude_program_id=p.id)

    def test_terminal_programs_do_not_block(self, service, roster):
        m = roster.member("Mira", "Komisi A")
        done = roster.program("Done", 0, 4)
        service.add_assignment(done.id, m.id, "ketua")
        service.directory.set_program_status(done.id, ProgramStatus.COMPLETED)

        p = roster.program("P", 1, 3)
        assert service.availability.is_available(m.id, p.start_datetime, p.end_datetime, exclude_program_id=p.id)

    def test_inactive_members_never_available(self, service, roster):
        roster.member("Mira", "Komisi A", is_active=False)
        p = roster.program("P", 0, 2)
        assert service.availability.available(p.start_datetime, p.end_datetime) == []

    def test_timezone_aware_window(self, service, roster):
        m = roster.member("Mira", "Komisi A")
        q = roster.program("Q", 0, 2)
        service.add_assignment(q.id, m.id, "ketua")

        start = q.start_datetime.replace(tzinfo=timezone.utc) + timedelta(hours=1)
        assert not service.availability.is_available(m.id, start, start + timedelta(hours=1))


class TestConflictDetector:
    """Post-hoc overlap reports for a program's assignees."""

    def test_overlapping_programs_report_each_other(self, service, roster):
        m = roster.member("Mira", "Komisi A")
        p = roster.program("P", 0, 4)
        q = roster.program("Q", 2, 6)
        service.add_assignment(p.id, m.id, "ketua")
        service.add_assignment(q.id, m.id, "sekretaris")

        p_reports = service.detect_conflicts(p.id)
        q_reports = service.detect_conflicts(q.id)
        assert [(r.member_id, r.conflicting_program_ids) for r in p_reports] == [(m.id, [q.id])]
        assert [(r.member_id, r.conflicting_program_ids) for r in q_reports] == [(m.id, [p.id])]

    def test_disjoint_programs_never_conflict(self, service, roster):
        m = roster.member("Mira", "Komisi A")
        p = roster.program("P", 0, 2)
        q = roster.program("Q", 5, 7)
        service.add_assignment(p.id, m.id, "ketua")
        service.add_assignment(q.id, m.id, "ketua")

        assert service.detect_conflicts(p.id) == []
        assert service.detect_conflicts(q.id) == []

    def test_member_with_two_roles_reported_once(self, service, roster):
        m = roster.member("Mira", "Komisi A")
        p = roster.program("P", 0, 4)
        q = roster.program("Q", 1, 3)
        service.add_assignment(p.id, m.id, "ketua")
        service.add_assignment(p.id, m.id, "divisi_humas")
        service.add_assignment(q.id, m.id, "ketua")

        reports = service.detect_conflicts(p.id)
        assert len(reports) == 1
        assert reports[0].conflicting_program_ids == [q.id]

    def test_conflicts_ordered_by_start(self, service, roster):
        m = roster.member("Mira", "Komisi A")
        p = roster.program("P", 0, 10)
        late = roster.program("Late", 6, 8)
        early = roster.program("Early", 1, 2)
        for program in (p, late, early):
            service.add_assignment(program.id, m.id, "ketua")

        reports = service.detect_conflicts(p.id)
        assert reports[0].conflicting_program_ids == [early.id, late.id]

    def test_reschedule_surfaces_conflict(self, service, roster):
        m = roster.member("Mira", "Komisi A")
        p = roster.program("P", 0, 2)
        q = roster.program("Q", 4, 6)
        service.add_assignment(p.id, m.id, "ketua")
        service.add_assignment(q.id, m.id, "ketua")
        assert service.detect_conflicts(p.id) == []

        service.directory.reschedule_program(
            q.id, q.start_datetime - timedelta(hours=3), q.end_datetime - timedelta(hours=3),
        )
        assert [r.member_id for r in service.detect_conflicts(p.id)] == [m.id]

    def test_manual_add_returns_conflicts(self, service, roster):
        m = roster.member("Mira", "Komisi A")
        p = roster.program("P", 0, 4)
        q = roster.program("Q", 2, 6)
        service.add_assignment(q.id, m.id, "ketua")

        result = service.add_assignment(p.id, m.id, "bendahara")
        assert result.assignment.role == "bendahara"
        assert result.conflicts[0].conflicting_program_ids == [q.id]

    def test_program_without_assignees(self, service, roster):
        p = roster.program("P")
        assert service.detect_conflicts(p.id) == []
