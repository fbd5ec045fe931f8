from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from ..core.enums import GatewayErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class DeviceInfo:
    """Device details reported by the vendor cloud."""

    device_id: str
    device_name: str
    status: str = "active"
    model: Optional[str] = None
    location: Optional[str] = None


@dataclass(frozen=True)
class CanonicalPunch:
    """One punch in the pipeline's own shape.

    ``punch_time`` is a naive local datetime, or None when the vendor value could
    not be parsed (the store rejects such punches per item).
    """

    biometric_user_id: str
    punch_time: Optional[datetime]
    punch_type: str
    raw_payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GatewayError:
    kind: GatewayErrorKind
    message: str
    status_code: Optional[int] = None


@dataclass(frozen=True)
class GatewayResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[GatewayError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "GatewayResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: GatewayErrorKind, message: str, status_code: Optional[int] = None) -> "GatewayResult[T]":
        return cls(error=GatewayError(kind=kind, message=message, status_code=status_code))
