"""
Tests for the assignment audit report.
"""

from __future__ import annotations

from panitia_engine.registry.schema import ProgramStatus
from panitia_engine.store.audit import run_audit


class TestRunAudit:
    def test_clean_store(self, service, roster):
        roster.standard_members()
        program = roster.program("Pensi")
        service.generate_assignments(program.id)

        assert run_audit(service) is True

    def test_conflicts_fail_the_audit(self, service, roster):
        m = roster.member("Mira", "Komisi A")
        p = roster.program("P", 0, 4)
        q = roster.program("Q", 2, 6)
        service.add_assignment(p.id, m.id, "ketua")
        service.add_assignment(q.id, m.id, "ketua")

        assert run_audit(service, verbose=True) is False

    def test_terminal_programs_ignored(self, service, roster):
        m = roster.member("Mira", "Komisi A")
        p = roster.program("P", 0, 4)
        q = roster.program("Q", 2, 6)
        service.add_assignment(p.id, m.id, "ketua")
        service.add_assignment(q.id, m.id, "ketua")
        service.directory.set_program_status(q.id, ProgramStatus.COMPLETED)

        assert run_audit(service) is True
