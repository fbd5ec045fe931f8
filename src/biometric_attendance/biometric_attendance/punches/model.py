from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class PunchLog:
    """Stored raw punch. Identity is (device_id, biometric_user_id, punch_time)."""

    id: int
    device_id: str
    biometric_user_id: str
    punch_time: datetime
    punch_type: str
    raw_json: Optional[str] = None
    processed: bool = False


@dataclass(frozen=True)
class UpsertResult:
    inserted_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0

    def __add__(self, other: "UpsertResult") -> "UpsertResult":
        return UpsertResult(
            inserted_count=self.inserted_count + other.inserted_count,
            skipped_count=self.skipped_count + other.skipped_count,
            failed_count=self.failed_count + other.failed_count,
        )


@dataclass(frozen=True)
class UnmappedBiometricId:
    """Read-model: a biometric user id with no active employee behind it."""

    biometric_user_id: str
    punch_count: int
    first_seen: datetime
    last_seen: datetime
    distinct_days: int
    device_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PunchCounts:
    processed: int
    unprocessed: int
