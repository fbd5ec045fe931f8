"""Translate vendor (eSSL ADMS) log shapes into CanonicalPunch.

Vendor payloads are not consistent across firmware versions, so every field is
looked up under several names.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional
from zoneinfo import ZoneInfo

from ..core.enums import PunchType
from .model import CanonicalPunch, DeviceInfo

_USER_ID_KEYS = ("userId", "employeeId", "user_id")
_TIME_KEYS = ("punchTime", "timestamp", "time")
_TYPE_KEYS = ("punchType", "type", "direction")


def _first(log: Mapping[str, Any], keys) -> Any:
    for key in keys:
        value = log.get(key)
        if value is not None and value != "":
            return value
    return None


def _is_code(value: Any, code: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value == code


def derive_punch_type(log: Mapping[str, Any]) -> str:
    """Explicit type field first, then verifyMode/status code (0 IN, 1 OUT), else IN."""
    for key in _TYPE_KEYS:
        value = log.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip().upper()

    verify_mode = log.get("verifyMode")
    status = log.get("status")
    if _is_code(verify_mode, 0) or _is_code(status, 0):
        return PunchType.IN.value
    if _is_code(verify_mode, 1) or _is_code(status, 1):
        return PunchType.OUT.value

    return PunchType.IN.value


def parse_punch_time(value: Any, timezone: str) -> Optional[datetime]:
    """Parse a vendor timestamp into a naive datetime in the given timezone.

    Accepts datetimes, epoch seconds (or milliseconds) and ISO-8601 strings.
    Naive strings are taken as already local to the device.
    """
    tz = ZoneInfo(timezone)

    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e12 else value
        try:
            return datetime.fromtimestamp(seconds, tz).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(tz).replace(tzinfo=None)
    return parsed.replace(microsecond=0)


def normalize_log(log: Mapping[str, Any], *, timezone: str) -> CanonicalPunch:
    user_id = _first(log, _USER_ID_KEYS)
    return CanonicalPunch(
        biometric_user_id=str(user_id).strip() if user_id is not None else "",
        punch_time=parse_punch_time(_first(log, _TIME_KEYS), timezone),
        punch_type=derive_punch_type(log),
        raw_payload=dict(log),
    )


def normalize_device(device_id: str, payload: Mapping[str, Any]) -> DeviceInfo:
    return DeviceInfo(
        device_id=str(payload.get("deviceId") or device_id),
        device_name=str(payload.get("deviceName") or payload.get("name") or device_id),
        status=str(payload.get("status") or "active"),
        model=payload.get("model"),
        location=payload.get("location"),
    )
