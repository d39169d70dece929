# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from leavetrack.models.enums import LeaveCategory


class EmployeeInfo(BaseModel):
    """Employee metadata from the Employee Directory."""

    id: uuid.UUID
    name: str
    email: str
    approver_id: uuid.UUID | None = None
    # Yearly allocation in days per category; falls back to configured defaults.
    allocations: dict[LeaveCategory, float] | None = None


@runtime_checkable
class EmployeeDirectory(Protocol):
    """Interface for the Employee Directory."""

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeInfo | None:
        """Fetch employee metadata. Returns None if not found."""
        ...

    async def list_reports(self, approver_id: uuid.UUID) -> list[EmployeeInfo]:
        """List employees whose assigned approver is ``approver_id``."""
        ...


class InMemoryEmployeeDirectory:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._employees: dict[uuid.UUID, EmployeeInfo] = {}

    def seed(self, employee: EmployeeInfo) -> None:
        """Seed an employee for testing."""
        self._employees[employee.id] = employee

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeInfo | None:
        """Fetch employee metadata. Returns None if not found."""
        return self._employees.get(employee_id)

    async def list_reports(self, approver_id: uuid.UUID) -> list[EmployeeInfo]:
        """List employees whose assigned approver is ``approver_id``."""
        return [e for e in self._employees.values() if e.approver_id == approver_id]


_employee_directory: EmployeeDirectory = InMemoryEmployeeDirectory()


def get_employee_directory() -> EmployeeDirectory:
    """FastAPI dependency for the Employee Directory."""
    return _employee_directory


def set_employee_directory(directory: EmployeeDirectory) -> None:
    """Override the directory (for testing or production wiring)."""
    global _employee_directory
    _employee_directory = directory
