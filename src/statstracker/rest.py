"""Shared ``requests`` plumbing for the JSON REST API clients."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import requests

from .errors import ApiError

Timeout = Optional[float]


class JsonApiClient:
    """Small session wrapper that issues GET requests and decodes JSON bodies.

    Failed requests are not retried; callers decide whether a failure is
    fatal or only drops the item being processed.
    """

    _SERVICE_NAME = "API"

    def __init__(self, base_url: str, headers: Mapping[str, str]) -> None:
        """Initialize an authenticated session.

        Args:
            base_url: Root URL every relative path is resolved against.
            headers: Headers sent with every request, including credentials.
        """
        self._base_url = base_url.rstrip("/")
        self._session = requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        self._session.headers.update(dict(headers))

    def _build_url(self, path: str) -> str:
        """Build a fully qualified URL; absolute URLs pass through unchanged."""
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    def _get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Timeout = None,
    ) -> requests.Response:
        """Execute a GET request and reject HTTP error statuses.

        Raises:
            ApiError: If the request fails or returns HTTP >= 400.
        """
        url = self._build_url(path)
        try:
            response = self._session.get(url, params=params, timeout=timeout)
        except requests.RequestException as exc:
            raise ApiError(f"{self._SERVICE_NAME} request failed: GET {url}") from exc

        if response.status_code >= 400:
            raise ApiError(
                f"{self._SERVICE_NAME} API request failed: "
                f"GET {url} returned {response.status_code} - {response.text}"
            )

        return response

    def _decode(self, response: requests.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(f"{self._SERVICE_NAME} API returned invalid JSON: GET {url}") from exc

    def _get_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Timeout = None,
    ) -> Dict[str, Any]:
        """GET ``path`` and return the decoded JSON object.

        Raises:
            ApiError: If the request fails or the payload is not a JSON object.
        """
        response = self._get(path, params=params, timeout=timeout)
        payload = self._decode(response, self._build_url(path))
        if not isinstance(payload, dict):
            raise ApiError(
                f"{self._SERVICE_NAME} API returned unexpected payload shape: GET {self._build_url(path)}"
            )
        return payload

    def close(self) -> None:
        self._session.close()
