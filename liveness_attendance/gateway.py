from __future__ import annotations

from datetime import date
from typing import Any, Optional

import numpy as np
import requests

from .config import (
    GATEWAY_BASE_URL,
    GATEWAY_HEALTH_TIMEOUT_SECONDS,
    GATEWAY_TIMEOUT_SECONDS,
    GATEWAY_TOKEN,
)
from .exceptions import GatewayAuthError, GatewayConflict, GatewayNetworkError
from .logger import setup_logger
from .types import AttendanceRecord, MatchCandidate, MatchResult, NoMatch

_CONFLICT_KINDS = {
    "user id already taken": GatewayConflict.DUPLICATE_IDENTITY,
    "face already registered": GatewayConflict.DUPLICATE_FACE,
}


class MatchGateway:
    """JSON client for the identity matching and persistence backend."""

    def __init__(
        self,
        base_url: str = GATEWAY_BASE_URL,
        token: str = GATEWAY_TOKEN,
        timeout_seconds: float = GATEWAY_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self.logger = setup_logger(self.__class__.__name__)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}{path}"
        kwargs.setdefault("timeout", self.timeout_seconds)
        try:
            return self.session.request(method, url, headers=self._headers(), **kwargs)
        except requests.RequestException as exc:
            self.logger.warning("Gateway %s %s failed: %s", method, path, exc)
            raise GatewayNetworkError(f"Network error: {exc}") from exc

    @staticmethod
    def _json(resp: requests.Response) -> dict[str, Any]:
        try:
            body = resp.json()
        except ValueError as exc:
            raise GatewayNetworkError(f"Gateway returned a non-JSON body (HTTP {resp.status_code}).") from exc
        if not isinstance(body, dict):
            raise GatewayNetworkError(f"Gateway returned an unexpected body (HTTP {resp.status_code}).")
        return body

    def _raise_for_conflict(self, resp: requests.Response) -> None:
        if resp.status_code != 409:
            return
        body = self._json(resp)
        error = str(body.get("error") or "Conflict")
        kind = _CONFLICT_KINDS.get(error.strip().lower(), GatewayConflict.OTHER)
        raise GatewayConflict(
            kind,
            error,
            existing_identity_id=body.get("existingUserId"),
            existing_display_name=body.get("existingUser"),
        )

    def _raise_for_status(self, resp: requests.Response, action: str, allowed: tuple[int, ...] = ()) -> None:
        """Raise for every failure status except those listed in ``allowed``."""
        self._raise_for_conflict(resp)
        status = resp.status_code
        if status < 400 or status in allowed:
            return
        if status in (401, 403):
            raise GatewayAuthError(f"{action} rejected: HTTP {status}, check the gateway token.")
        raise GatewayNetworkError(f"{action} failed: {self._error_text(resp)}")

    def _error_text(self, resp: requests.Response, default: Optional[str] = None) -> str:
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return default or f"HTTP {resp.status_code}"

    def health(self) -> bool:
        try:
            resp = self._request("GET", "/api/health", timeout=GATEWAY_HEALTH_TIMEOUT_SECONDS)
        except GatewayNetworkError:
            return False
        return bool(resp.ok)

    def match(self, descriptor: np.ndarray, liveness_score: float) -> MatchResult:
        payload = {
            "embedding": [float(v) for v in descriptor],
            "livenessScore": float(liveness_score),
        }
        resp = self._request("POST", "/api/mark-attendance", json=payload)
        # 404 is the gateway's "no enrolled face is close enough".
        self._raise_for_status(resp, "Match", allowed=(404,))

        if resp.status_code == 404:
            body = {"error": self._error_text(resp, default="No match found")}
        else:
            body = self._json(resp)
        if not body.get("success"):
            reason = str(body.get("error") or "No match found")
            self.logger.info("No match: %s", reason)
            return NoMatch(reason=reason)

        try:
            return MatchCandidate(
                identity_id=str(body["userId"]),
                display_name=str(body["name"]),
                confidence=float(body["confidence"]),
                distance=float(body["distance"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise GatewayNetworkError(f"Gateway match response is incomplete: {exc}") from exc

    def register(
        self,
        identity_id: str,
        display_name: str,
        descriptor: np.ndarray,
        email: Optional[str] = None,
        password: Optional[str] = None,
        role: str = "user",
    ) -> dict[str, Any]:
        payload = {
            "userId": identity_id,
            "name": display_name,
            "embedding": [float(v) for v in descriptor],
            "email": email,
            "password": password,
            "role": role,
        }
        resp = self._request("POST", "/api/register", json=payload)
        self._raise_for_status(resp, "Registration")

        body = self._json(resp)
        if not body.get("success"):
            raise GatewayNetworkError(f"Registration failed: {body.get('error') or f'HTTP {resp.status_code}'}")
        return body

    def record_attendance(self, record: AttendanceRecord) -> None:
        payload = {
            "userId": record.identity_id,
            "confidence": record.confidence,
            "distance": record.distance,
            "livenessScore": record.liveness_score,
            "confirmedAt": record.confirmed_at.isoformat(timespec="seconds"),
        }
        resp = self._request("POST", "/api/attendance/confirm", json=payload)
        self._raise_for_status(resp, "Attendance recording")

    def export_attendance(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> str:
        params: dict[str, str] = {}
        if start_date:
            params["startDate"] = start_date.isoformat()
        if end_date:
            params["endDate"] = end_date.isoformat()
        resp = self._request("GET", "/api/export-attendance", params=params)
        self._raise_for_status(resp, "Export")
        return resp.text
