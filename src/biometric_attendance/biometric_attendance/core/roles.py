from __future__ import annotations

from typing import Optional

from .enums import DataScope, Role


def role_from_header(value: Optional[str]) -> Role:
    """Parse the X-User-Role header. Missing or unknown values fall back to employee."""
    if not value:
        return Role.EMPLOYEE
    try:
        return Role(value.strip().lower())
    except ValueError:
        return Role.EMPLOYEE


def data_scope(role: Role) -> DataScope:
    if role in (Role.ADMIN, Role.HR):
        return DataScope.ALL
    if role == Role.MANAGER:
        return DataScope.TEAM
    return DataScope.OWN
