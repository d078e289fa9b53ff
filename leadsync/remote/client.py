"""
Podio REST client implementing the RemoteStore contract.

Covers:
- app authentication (grant_type=app) and the OAuth2 header
- create / filter / update / delete of app items
- Retry-After/backoff for HTTP 429 only. A rate-limited request was never
  executed, so retrying it cannot create a second item. Every other failure
  is raised as RemoteUnavailable and left to the caller.
"""

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import requests

from leadsync.core.errors import AuthenticationError, RemoteUnavailable
from leadsync.core.models import RemoteRecord
from leadsync.observability import metrics
from leadsync.observability.logger import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.podio.com"


@dataclass(frozen=True)
class PodioCredentials:
    client_id: str
    client_secret: str
    app_id: int
    app_token: str


def _serialize_payload(payload: dict[int, Any]) -> dict[str, Any]:
    return {str(field_id): value for field_id, value in payload.items()}


class PodioClient:
    """
    HTTP client for one Podio app.

    One authenticated session is shared by every worker thread; the token is
    obtained once by ``authenticate()`` and refreshed when the API answers 401.
    """

    def __init__(
        self,
        credentials: PodioCredentials,
        *,
        session: Optional[requests.Session] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 30,
        max_retries: int = 3,
        min_backoff_s: float = 1.0,
        max_backoff_s: float = 30.0,
    ) -> None:
        self._creds = credentials
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._max_retries = max_retries
        self._min_backoff_s = min_backoff_s
        self._max_backoff_s = max_backoff_s
        self._session = session or requests.Session()
        self._access_token: str | None = None
        self._token_lock = threading.Lock()

    @property
    def app_id(self) -> int:
        return self._creds.app_id

    @property
    def authenticated(self) -> bool:
        return self._access_token is not None

    def authenticate(self) -> None:
        """
        Obtain an access token with app authentication.

        Raises:
            AuthenticationError: If the credentials are rejected or the token
                endpoint cannot be reached
        """
        data = {
            "grant_type": "app",
            "app_id": str(self._creds.app_id),
            "app_token": self._creds.app_token,
            "client_id": self._creds.client_id,
            "client_secret": self._creds.client_secret,
        }
        try:
            resp = self._session.post(
                f"{self._base_url}/oauth/token",
                data=data,
                timeout=self._timeout_s,
            )
        except requests.RequestException as e:
            raise AuthenticationError(f"token request failed: {e}") from e

        if resp.status_code != 200:
            raise AuthenticationError(f"token request rejected: {resp.text}", status_code=resp.status_code)

        try:
            token = (resp.json() or {}).get("access_token")
        except ValueError as e:
            raise AuthenticationError(f"token response is not JSON: {e}", status_code=resp.status_code) from e
        if not token:
            raise AuthenticationError("token response has no access_token")

        with self._token_lock:
            self._access_token = token
        logger.info("Authenticated with Podio", extra={"app_id": self._creds.app_id})

    # =======================
    # REMOTE STORE OPERATIONS
    # =======================

    def create(self, payload: dict[int, Any]) -> RemoteRecord:
        body = self._request_json(
            "create",
            "POST",
            f"/item/app/{self._creds.app_id}/",
            json={"fields": _serialize_payload(payload)},
        )
        item_id = body.get("item_id")
        if item_id is None:
            raise RemoteUnavailable("create", "response has no item_id")

        # The create response only echoes ids; the item now holds the payload.
        return RemoteRecord(
            item_id=item_id,
            fields={
                field_id: value if isinstance(value, list) else [value]
                for field_id, value in payload.items()
            },
            created_on=datetime.now(timezone.utc),
            revision=body.get("revision") or 0,
        )

    def query(self, filters: dict[int, Any] | None, limit: int, offset: int) -> list[RemoteRecord]:
        request: dict[str, Any] = {"limit": limit, "offset": offset, "remember": False}
        if filters:
            request["filters"] = _serialize_payload(filters)

        body = self._request_json(
            "query",
            "POST",
            f"/item/app/{self._creds.app_id}/filter/",
            json=request,
        )
        items = body.get("items") or []
        try:
            return [RemoteRecord.from_api(item) for item in items]
        except (KeyError, ValueError) as e:
            raise RemoteUnavailable("query", f"malformed item in response: {e}") from e

    def update(self, item_id: int, payload: dict[int, Any]) -> int:
        body = self._request_json(
            "update",
            "PUT",
            f"/item/{item_id}",
            json={"fields": _serialize_payload(payload)},
            item_id=item_id,
        )
        return int(body.get("revision") or 0)

    def delete(self, item_id: int) -> None:
        self._request_json("delete", "DELETE", f"/item/{item_id}", item_id=item_id)

    # =======================
    # TRANSPORT
    # =======================

    def _request_json(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        item_id: int | None = None,
    ) -> dict[str, Any]:
        """
        Send one request and decode the JSON body.

        Strategy:
        - 401: re-authenticate once and resend.
        - 429: honour Retry-After if present, else exponential backoff.
        - anything else non-2xx, undecodable 2xx bodies and transport errors:
          RemoteUnavailable.
        """
        if not self.authenticated:
            self.authenticate()

        url = f"{self._base_url}{path}"
        reauthenticated = False
        attempt = 0

        while True:
            try:
                with metrics.track_duration(metrics.remote_request_duration_seconds, operation=operation):
                    resp = self._session.request(
                        method=method,
                        url=url,
                        json=json,
                        headers={"Authorization": f"OAuth2 {self._access_token}"},
                        timeout=self._timeout_s,
                    )
            except requests.RequestException as e:
                metrics.record_remote_call(operation, success=False)
                raise RemoteUnavailable(operation, str(e), item_id=item_id) from e

            if 200 <= resp.status_code < 300:
                if resp.status_code == 204 or not resp.content:
                    metrics.record_remote_call(operation, success=True)
                    return {}
                try:
                    body = resp.json()
                except ValueError as e:
                    metrics.record_remote_call(operation, success=False)
                    raise RemoteUnavailable(
                        operation,
                        f"invalid JSON response: {e}",
                        status_code=resp.status_code,
                        item_id=item_id,
                    ) from e
                metrics.record_remote_call(operation, success=True)
                return body

            if resp.status_code == 401 and not reauthenticated:
                reauthenticated = True
                logger.info("Access token rejected, re-authenticating", extra={"operation": operation})
                self.authenticate()
                continue

            if resp.status_code == 429 and attempt < self._max_retries:
                sleep_s = self._retry_delay(resp, attempt)
                attempt += 1
                metrics.increment_counter(metrics.remote_retries_total, 1, operation=operation)
                logger.warning(
                    f"Rate limited on {operation}, retrying in {sleep_s:.1f}s",
                    extra={"operation": operation, "attempt": attempt, "item_id": item_id},
                )
                time.sleep(sleep_s)
                continue

            metrics.record_remote_call(operation, success=False)
            raise RemoteUnavailable(operation, resp.text, status_code=resp.status_code, item_id=item_id)

    def _retry_delay(self, resp: requests.Response, attempt: int) -> float:
        retry_after = resp.headers.get("Retry-After")
        if retry_after:
            try:
                return min(self._max_backoff_s, float(retry_after))
            except ValueError:
                pass
        base = min(self._max_backoff_s, self._min_backoff_s * (2 ** attempt))
        return base + (0.15 * base)
