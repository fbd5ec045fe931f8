from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import EmployeeStatus


@dataclass(frozen=True)
class Employee:
    """Read-only view of an HRMS employee, as far as biometric mapping goes."""

    employee_id: int
    full_name: str
    status: EmployeeStatus
    biometric_id: Optional[str] = None


@dataclass(frozen=True)
class MappingCounts:
    """Active employees with and without a biometric id."""

    mapped: int
    unmapped: int
