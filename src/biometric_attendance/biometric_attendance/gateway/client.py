from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

import requests

from ..common.datetime_utils import to_vendor_date
from ..common.validators import require_non_empty
from ..core.constants import (
    CREDENTIAL_PLACEHOLDER,
    DEFAULT_GATEWAY_TIMEOUT_SECONDS,
    DEFAULT_GATEWAY_URL,
    DEFAULT_TIMEZONE,
)
from ..core.enums import GatewayErrorKind
from .model import CanonicalPunch, DeviceInfo, GatewayResult
from .normalize import normalize_device, normalize_log

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewaySettings:
    base_url: str = DEFAULT_GATEWAY_URL
    token: str = ""
    api_key: str = ""
    timeout: float = DEFAULT_GATEWAY_TIMEOUT_SECONDS
    timezone: str = DEFAULT_TIMEZONE

    @property
    def bearer(self) -> str:
        return self.token or self.api_key

    def credentials_configured(self) -> bool:
        """False when the URL or both secrets are unset or left as placeholders."""

        def _unset(value: str) -> bool:
            return not value or CREDENTIAL_PLACEHOLDER in value

        if _unset(self.base_url):
            return False
        return not (_unset(self.token) and _unset(self.api_key))


class EsslGateway:
    """Client for the eSSL ADMS cloud API.

    Every call returns a GatewayResult; transport and vendor failures are mapped
    to a GatewayErrorKind here and never raised to callers. No retries.
    """

    def __init__(self, settings: GatewaySettings, *, session: Optional[requests.Session] = None):
        self._settings = settings
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Content-Type": "application/json",
                "Accept": "application/json",
                "Authorization": f"Bearer {settings.bearer}",
            }
        )

    @property
    def settings(self) -> GatewaySettings:
        return self._settings

    def credentials_configured(self) -> bool:
        return self._settings.credentials_configured()

    def validate_device(self, device_id: str) -> GatewayResult[DeviceInfo]:
        device_id = require_non_empty(device_id, "Device ID")

        result = self._get(f"/devices/{device_id}")
        if not result.ok:
            logger.warning("ADMS validate_device(%s) failed: %s", device_id, result.error.message)
            return GatewayResult(error=result.error)

        body = result.value
        if not body.get("success"):
            return GatewayResult.failure(GatewayErrorKind.NOT_FOUND, "Device not found in ADMS account")

        device = body.get("device")
        if not isinstance(device, dict):
            return GatewayResult.failure(GatewayErrorKind.MALFORMED, "ADMS device response has no device object")

        return GatewayResult.success(normalize_device(device_id, device))

    def fetch_punches(self, device_id: str, start_date: date, end_date: date) -> GatewayResult[list[CanonicalPunch]]:
        device_id = require_non_empty(device_id, "Device ID")

        result = self._get(
            f"/devices/{device_id}/attendance",
            params={"startDate": to_vendor_date(start_date), "endDate": to_vendor_date(end_date)},
        )
        if not result.ok:
            logger.warning("ADMS fetch_punches(%s) failed: %s", device_id, result.error.message)
            return GatewayResult(error=result.error)

        body = result.value
        if not body.get("success"):
            return GatewayResult.failure(GatewayErrorKind.NOT_FOUND, "No attendance data found")

        logs = body.get("logs")
        if logs is None:
            logs = body.get("data")
        if logs is None:
            logs = []
        if not isinstance(logs, list):
            return GatewayResult.failure(GatewayErrorKind.MALFORMED, "ADMS attendance response logs is not a list")

        punches = [
            normalize_log(log, timezone=self._settings.timezone) for log in logs if isinstance(log, dict)
        ]
        if len(punches) != len(logs):
            logger.warning("ADMS returned %d non-object log entries for %s", len(logs) - len(punches), device_id)
        return GatewayResult.success(punches)

    def test_connection(self) -> GatewayResult[int]:
        result = self._get("/devices")
        if not result.ok:
            return GatewayResult(error=result.error)
        devices = result.value.get("devices") or []
        return GatewayResult.success(len(devices) if isinstance(devices, list) else 0)

    def _get(self, path: str, *, params: Optional[dict[str, Any]] = None) -> GatewayResult[dict]:
        url = self._settings.base_url.rstrip("/") + path
        try:
            response = self._session.get(url, params=params, timeout=self._settings.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.Timeout:
            return GatewayResult.failure(GatewayErrorKind.TIMEOUT, "eSSL ADMS API request timed out")
        except requests.HTTPError as e:
            return self._http_failure(e.response)
        except requests.ConnectionError:
            return GatewayResult.failure(
                GatewayErrorKind.UNAVAILABLE,
                "Unable to connect to eSSL ADMS API. Please check your internet connection.",
            )
        except ValueError:
            # requests' JSONDecodeError is also a RequestException
            return GatewayResult.failure(GatewayErrorKind.MALFORMED, "eSSL ADMS API returned a non-JSON response")
        except requests.RequestException as e:
            return GatewayResult.failure(GatewayErrorKind.UNAVAILABLE, str(e))

        if not isinstance(body, dict):
            return GatewayResult.failure(GatewayErrorKind.MALFORMED, "eSSL ADMS API returned an unexpected body")
        return GatewayResult.success(body)

    @staticmethod
    def _http_failure(response: Optional[requests.Response]) -> GatewayResult[dict]:
        status = response.status_code if response is not None else None
        message = None
        if response is not None:
            try:
                payload = response.json()
                if isinstance(payload, dict):
                    message = payload.get("message") or payload.get("error")
            except ValueError:
                message = None

        if status in (401, 403):
            kind = GatewayErrorKind.UNAUTHORIZED
            message = message or "eSSL ADMS API rejected the credentials"
        elif status == 404:
            kind = GatewayErrorKind.NOT_FOUND
            message = message or "Not found in ADMS account"
        else:
            kind = GatewayErrorKind.UNAVAILABLE
            message = message or f"eSSL ADMS API error (HTTP {status})"
        return GatewayResult.failure(kind, str(message), status)
