"""Alert service client.

Delivers cadence activation alerts to the field-collection alerting service.
The client manages OAuth2 client-credentials authentication, an HTTP session
with retries, and per-request timeouts clamped to the caller's deadline.
"""
from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Sequence

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from cadence.alerts import Deadline
from cadence.models import CadenceItem

__all__ = [
    "AlertAPIError",
    "AlertAuthError",
    "AlertServiceClient",
    "AlertServiceError",
    "client_from_environment",
]

logger = logging.getLogger(__name__)


DEFAULT_TOKEN_REFRESH_BUFFER_SECONDS = 60
DEFAULT_TIMEOUT_SECONDS = 10
DEFAULT_MAX_RETRIES = 2
DEFAULT_BACKOFF_FACTOR = 0.5

DEFAULT_BASE_URL = os.getenv("ALERT_SERVICE_BASE_URL", "")
DEFAULT_TOKEN_URL = os.getenv("ALERT_SERVICE_TOKEN_URL", "")
DEFAULT_CLIENT_ID = os.getenv("ALERT_SERVICE_CLIENT_ID")
DEFAULT_CLIENT_SECRET = os.getenv("ALERT_SERVICE_CLIENT_SECRET")
DEFAULT_SCOPE = os.getenv("ALERT_SERVICE_SCOPE", "")


class AlertServiceError(RuntimeError):
    """Base exception for alert service client errors."""


class AlertAuthError(AlertServiceError):
    """Raised when OAuth2 authentication fails."""


class AlertAPIError(AlertServiceError):
    """Raised when the alert service rejects a request or cannot be reached."""


@dataclass(frozen=True)
class TokenData:
    """Container for OAuth2 token information."""

    access_token: str
    expires_at: datetime

    def is_valid(self, buffer_seconds: int) -> bool:
        return datetime.now(timezone.utc) + timedelta(seconds=buffer_seconds) < self.expires_at


class AlertServiceClient:
    """Client for the alert service's batch alert endpoint."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        token_url: str = DEFAULT_TOKEN_URL,
        client_id: Optional[str] = DEFAULT_CLIENT_ID,
        client_secret: Optional[str] = DEFAULT_CLIENT_SECRET,
        scope: Optional[str] = DEFAULT_SCOPE,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        token_refresh_buffer: int = DEFAULT_TOKEN_REFRESH_BUFFER_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url must be provided")
        if not token_url:
            raise ValueError("token_url must be provided")
        if not client_id or not client_secret:
            raise ValueError("client_id and client_secret must be provided")

        self.base_url = base_url.rstrip("/")
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.scope = scope or ""
        self.timeout = timeout
        self.token_refresh_buffer = token_refresh_buffer

        self._session = session or self._build_session(max_retries=max_retries, backoff_factor=backoff_factor)
        self._token_lock = threading.Lock()
        self._token: Optional[TokenData] = None

    def _build_session(self, *, max_retries: int, backoff_factor: float) -> requests.Session:
        session = requests.Session()
        retry_strategy = Retry(
            total=max_retries,
            read=max_retries,
            connect=max_retries,
            status=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=(429, 502, 503, 504),
            allowed_methods=("GET", "POST"),
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def create_alerts(self, deadline: Deadline, items: Sequence[CadenceItem]) -> None:
        """Post one alert per cadence item in a single batch request."""

        if not items:
            return
        payload = {
            "alerts": [
                {
                    "type": "blood_collection_due",
                    "cadence_item_id": item.id,
                    "patient_id": item.patient_id,
                    "practice_id": item.practice_id,
                    "test_order_id": item.test_order_id,
                    "due_date": item.cadence_date.isoformat(),
                    "collection_method": item.blood_collection_method,
                }
                for item in items
            ]
        }
        response = self._request("POST", "alerts", deadline, json_payload=payload, expected_status=(200, 201, 202))
        logger.info("Alert service accepted %s alerts (status=%s)", len(items), response.status_code)

    def _request_timeout(self, deadline: Deadline) -> float:
        if deadline.cancelled:
            raise AlertAPIError("Alert request cancelled before it was sent")
        remaining = deadline.remaining()
        if remaining <= 0:
            raise AlertAPIError("Alert deadline elapsed before the request was sent")
        return min(self.timeout, remaining)

    def _get_access_token(self, deadline: Deadline) -> str:
        token = self._token
        if token and token.is_valid(self.token_refresh_buffer):
            return token.access_token

        with self._token_lock:
            token = self._token
            if token and token.is_valid(self.token_refresh_buffer):
                return token.access_token

            logger.debug("Refreshing alert service OAuth2 token")
            payload = {
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            }
            if self.scope:
                payload["scope"] = self.scope
            try:
                response = self._session.post(
                    self.token_url, data=payload, timeout=self._request_timeout(deadline)
                )
                response.raise_for_status()
                data = response.json()
            except requests.RequestException as exc:
                logger.error("Failed to obtain alert service token: %s", exc)
                raise AlertAuthError("Failed to obtain alert service token") from exc
            except ValueError as exc:
                logger.error("Invalid token response received from alert service: %s", exc)
                raise AlertAuthError("Invalid token response from alert service") from exc

            access_token = data.get("access_token")
            if not access_token or not isinstance(access_token, str):
                logger.error("Token response did not include access_token")
                raise AlertAuthError("Token response missing access_token")
            expires_in = data.get("expires_in")
            if not expires_in:
                logger.warning("Token response missing expires_in; defaulting to 5 minutes")
                expires_in = 300
            try:
                expires_in_int = int(expires_in)
            except (TypeError, ValueError) as exc:
                raise AlertAuthError("Invalid expires_in value in token response") from exc

            token = TokenData(
                access_token=access_token,
                expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in_int),
            )
            self._token = token
            return token.access_token

    def _request(
        self,
        method: str,
        path: str,
        deadline: Deadline,
        *,
        json_payload: Optional[Dict[str, Any]] = None,
        expected_status: tuple = (200,),
    ) -> Response:
        token = self._get_access_token(deadline)
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }
        try:
            response = self._session.request(
                method=method.upper(),
                url=url,
                json=json_payload,
                headers=headers,
                timeout=self._request_timeout(deadline),
            )
        except requests.RequestException as exc:
            logger.error("Request to alert service failed: %s", exc)
            raise AlertAPIError("Failed to execute request to alert service") from exc

        if response.status_code not in expected_status:
            logger.error(
                "Alert service error response: status=%s body=%s",
                response.status_code,
                response.text[:2048],
            )
            raise AlertAPIError(f"Alert service responded with unexpected status {response.status_code}")
        return response


def client_from_environment() -> Optional[AlertServiceClient]:
    """Build a client from ``ALERT_SERVICE_*`` variables, or ``None`` when unconfigured."""

    if not DEFAULT_BASE_URL:
        logger.info("ALERT_SERVICE_BASE_URL is not set; alerts are disabled")
        return None
    return AlertServiceClient()
