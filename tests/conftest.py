"""Shared fixtures: an in-memory Assignment Store and a roster seeding helper."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from panitia_engine.engine.panitia import PanitiaService
from panitia_engine.registry.schema import Member, Program, ProgramStatus
from panitia_engine.store.service import AssignmentStore

BASE_TIME = datetime(2026, 3, 2, 8, 0)


class Roster:
    """Seeds members and programs by commission name and hour offsets."""

    def __init__(self, service: PanitiaService) -> None:
        self.service = service
        self.directory = service.directory

    def commission_id(self, name: str):
        return self.directory.get_commission_by_name(name).id

    def member(self, name: str, commission: str | None = "Komisi A", is_active: bool = True) -> Member:
        commission_id = self.commission_id(commission) if commission else None
        return self.directory.register_member(name, commission_id, is_active=is_active)

    def members(self, *people: tuple[str, str]) -> list[Member]:
        return [self.member(name, commission) for name, commission in people]

    def program(
        self,
        name: str,
        start_hour: float = 0,
        end_hour: float = 2,
        status: ProgramStatus = ProgramStatus.APPROVED,
    ) -> Program:
        return self.directory.register_program(
            name,
            BASE_TIME + timedelta(hours=start_hour),
            BASE_TIME + timedelta(hours=end_hour),
            status=status,
        )

    def standard_members(self) -> list[Member]:
        """Five members over three commissions: A, A, B, C, C."""
        return self.members(
            ("Adi", "Komisi A"),
            ("Ayu", "Komisi A"),
            ("Budi", "Komisi B"),
            ("Citra", "Komisi C"),
            ("Cahya", "Komisi C"),
        )


@pytest.fixture
def store() -> AssignmentStore:
    store = AssignmentStore("sqlite+pysqlite:///:memory:")
    store.initialize()
    yield store
    store.engine.dispose()


@pytest.fixture
def service(store) -> PanitiaService:
    return PanitiaService(store)


@pytest.fixture
def roster(service) -> Roster:
    return Roster(service)
