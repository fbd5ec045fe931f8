from __future__ import annotations

from typing import Protocol, Sequence

from .model import Employee, MappingCounts


class EmployeeDirectory(Protocol):
    """Read-only access to the HRMS employees table."""

    def list_without_biometric_id(self) -> Sequence[Employee]:
        raise NotImplementedError

    def mapping_counts(self) -> MappingCounts:
        raise NotImplementedError
