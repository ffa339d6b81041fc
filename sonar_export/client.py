"""SonarQube API client.

Usage:
    client = SonarClient(url="https://sonar.example.com", token="squ_xxx")
    data   = client.get("/api/issues/search", {"componentKeys": "my-project"})
    ok     = client.validate_connection()
    info   = client.get_project_info("my-project")
"""

import logging
from typing import Any

import requests

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class SonarClientError(Exception):
    """Base exception for all client errors."""


class AuthenticationError(SonarClientError):
    """Raised on HTTP 401: invalid or expired token."""


class ForbiddenError(SonarClientError):
    """Raised on HTTP 403: token lacks the required permission."""


class NotFoundError(SonarClientError):
    """Raised on HTTP 404: project or resource not found."""


class NetworkError(SonarClientError):
    """Raised on connection timeout or unreachable server."""


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class SonarClient:
    """Thin wrapper around the SonarQube REST API."""

    def __init__(self, url: str, token: str, timeout: int = 30) -> None:
        self.base_url = url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._session = requests.Session()
        # SonarQube auth: token as username, empty password
        self._session.auth = (token, "")

    @classmethod
    def from_settings(cls, settings, timeout: int = 30) -> "SonarClient":
        """Build a client from a ``config.SonarQubeSettings``."""
        return cls(url=settings.url, token=settings.token, timeout=timeout)

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def get(self, endpoint: str, params: dict[str, Any] | None = None) -> dict:
        """Perform a single GET request and return the parsed JSON response.

        Parameters whose value is ``None`` are left out of the query string.

        Raises:
            AuthenticationError: HTTP 401
            ForbiddenError:      HTTP 403
            NotFoundError:       HTTP 404
            SonarClientError:    Any other non-2xx response
            NetworkError:        Timeout or connection failure
        """
        cleaned = {k: v for k, v in (params or {}).items() if v is not None}
        return self._request(endpoint, cleaned)

    def validate_connection(self) -> bool:
        """Return True when ``/api/system/status`` answers with a 2xx status.

        The response body is not parsed.
        """
        try:
            self._send("/api/system/status", {})
        except SonarClientError as exc:
            log.error("Failed to validate SonarQube connection: %s", exc)
            return False
        log.info("SonarQube connection validated successfully")
        return True

    def get_project_info(self, project_key: str, organization: str | None = None) -> dict | None:
        """Return the project component (``name``, ``key``, ...) or None."""
        try:
            data = self.get(
                "/api/projects/search",
                {"projects": project_key, "organization": organization},
            )
        except SonarClientError as exc:
            log.error("Failed to fetch project info: %s", exc)
            return None
        components = data.get("components") or []
        return components[0] if components else None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _request(self, endpoint: str, params: dict[str, Any]) -> dict:
        response = self._send(endpoint, params)
        try:
            return response.json()
        except ValueError as exc:
            log.error("API request returned a non-JSON body")
            raise SonarClientError(
                f"Invalid JSON in response from {response.url}: {response.text[:200]!r}"
            ) from exc

    def _send(self, endpoint: str, params: dict[str, Any]) -> requests.Response:
        url = f"{self.base_url}{endpoint}"
        log.debug("Making GET request to: %s", url)
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
        except requests.exceptions.Timeout as exc:
            log.error("API request failed: timeout after %ss", self._timeout)
            raise NetworkError(
                f"Request timed out after {self._timeout}s while contacting '{url}'"
            ) from exc
        except requests.exceptions.ConnectionError as exc:
            log.error("API request failed: server unreachable")
            raise NetworkError(
                f"Unable to reach SonarQube server at '{self.base_url}'"
            ) from exc

        if response.status_code == 401:
            log.error("Authentication failed (401 Unauthorized)")
            log.error("Possible causes: invalid or expired token, "
                      "insufficient permissions, incorrect SonarQube URL")
            raise AuthenticationError(
                "Authentication failed: check that your token is valid and not expired."
            )
        if response.status_code == 403:
            log.error("Access forbidden (403 Forbidden)")
            log.error("The token does not have sufficient permissions")
            raise ForbiddenError(
                f"Access forbidden: {url}"
            )
        if response.status_code == 404:
            log.error("Not found (404): the project key may be incorrect")
            raise NotFoundError(
                f"Resource not found: {url}"
            )
        if not response.ok:
            log.error("API request failed with status %s", response.status_code)
            raise SonarClientError(
                f"Unexpected response {response.status_code} from {url}: {response.text[:200]}"
            )

        return response
