from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Caller role taken from the X-User-Role header (not authenticated)."""

    ADMIN = "admin"
    HR = "hr"
    MANAGER = "manager"
    EMPLOYEE = "employee"


class DataScope(str, Enum):
    ALL = "all"
    TEAM = "team"
    OWN = "own"


class DeviceStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class PunchType(str, Enum):
    IN = "IN"
    OUT = "OUT"


class AttendanceStatus(str, Enum):
    """Status values written to the attendance table by reconciliation."""

    PRESENT = "Present"


class EmployeeStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class GatewayErrorKind(str, Enum):
    """Closed set of failures the vendor gateway can report."""

    TIMEOUT = "TIMEOUT"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    UNAVAILABLE = "UNAVAILABLE"
    MALFORMED = "MALFORMED"
