"""Shared HTTP client (requests + retry executor).

All API calls go through ApiClient so that URL building, auth headers,
timeouts, response logging and the retry policy stay in one place.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

import requests
from pydantic import BaseModel

from restprobe.domain.config import AppConfig
from restprobe.domain.models.response import ApiResponse
from restprobe.infrastructure.retry import RetryingRequestExecutor, RetryPolicy

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"

# Exceptions from the transport layer; anything else is a local bug and is not retried
TRANSPORT_ERRORS = (requests.RequestException,)


def api_response_from_requests(resp: requests.Response, elapsed_ms: Optional[float] = None) -> ApiResponse:
    """Convert a requests.Response into an ApiResponse"""
    if elapsed_ms is None:
        elapsed_ms = resp.elapsed.total_seconds() * 1000.0 if resp.elapsed else 0.0
    return ApiResponse(
        status_code=resp.status_code,
        body=resp.text or "",
        headers=dict(resp.headers),
        elapsed_ms=elapsed_ms,
        url=resp.url,
        method=resp.request.method if resp.request is not None else None,
    )


def build_path(endpoint: str, path_params: Optional[Mapping[str, Any]] = None) -> str:
    """Fill {name} placeholders in an endpoint template

    Args:
        endpoint: Endpoint template (e.g. "/users/{id}")
        path_params: Values for the placeholders (URL-quoted)

    Returns:
        Endpoint path

    Raises:
        ValueError: If a placeholder has no value
    """
    if not path_params:
        return endpoint
    quoted = {k: quote(str(v), safe="") for k, v in path_params.items()}
    try:
        return endpoint.format(**quoted)
    except KeyError as e:
        raise ValueError(f"Missing path parameter {e} for endpoint {endpoint}") from e


def _serialize_body(body: Any) -> Any:
    if isinstance(body, BaseModel):
        return body.model_dump(mode="json", exclude_none=True)
    return body


class ApiClient:
    """HTTP client for the API under test.

    Built from an explicit AppConfig; the session and executor can be
    injected so tests can mount fake transports or use zero-delay policies.
    """

    def __init__(
        self,
        config: AppConfig,
        session: Optional[requests.Session] = None,
        executor: Optional[RetryingRequestExecutor] = None,
    ):
        """Initialize API client

        Args:
            config: Application configuration
            session: requests session (a new one is created if None)
            executor: Retry executor (built from config.retry if None, retrying transport errors only)
        """
        self.config = config
        self.session = session or requests.Session()
        self.executor = executor or RetryingRequestExecutor(
            RetryPolicy.from_config(config.retry), retry_on=TRANSPORT_ERRORS
        )
        self.base_url = config.api.root_url
        self.timeout = config.timeouts.as_requests_timeout()
        logger.info(f"API client configured with base URL: {self.base_url}")

    def _default_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": JSON_CONTENT_TYPE, "Accept": JSON_CONTENT_TYPE}
        auth = self.config.auth
        if auth.enabled and auth.type == "bearer" and auth.token:
            headers["Authorization"] = f"Bearer {auth.token}"
        return headers

    def url_for(self, endpoint: str, path_params: Optional[Mapping[str, Any]] = None) -> str:
        path = build_path(endpoint, path_params)
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _log_response(self, method: str, endpoint: str, response: ApiResponse) -> None:
        if not self.config.logging.log_responses:
            return
        logger.info(f"{method} {endpoint} - Status: {response.status_code}, Time: {response.elapsed_ms:.0f}ms")
        logger.debug(f"Response body: {response.body}")

    def request(
        self,
        method: str,
        endpoint: str,
        *,
        body: Any = None,
        path_params: Optional[Mapping[str, Any]] = None,
        query_params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> ApiResponse:
        """Send one request through the retry executor

        Args:
            method: HTTP method
            endpoint: Endpoint template relative to the API root, or an absolute URL
            body: JSON body (dict or pydantic model)
            path_params: Values for {name} placeholders
            query_params: Query string parameters
            headers: Extra headers (override defaults)

        Returns:
            Final ApiResponse (status codes are never raised)

        Raises:
            RetryExhaustedError: If every attempt failed at the transport level
        """
        method = method.upper()
        url = self.url_for(endpoint, path_params)
        request_headers = self._default_headers()
        if headers:
            request_headers.update(headers)
        payload = _serialize_body(body)

        def _send() -> ApiResponse:
            logger.info(f"Sending {method} request to: {url}")
            started = time.monotonic()
            resp = self.session.request(
                method,
                url,
                json=payload,
                params=dict(query_params) if query_params else None,
                headers=request_headers,
                timeout=self.timeout,
            )
            response = api_response_from_requests(resp, (time.monotonic() - started) * 1000.0)
            self._log_response(method, endpoint, response)
            return response

        return self.executor.execute(_send)

    def get(
        self,
        endpoint: str,
        path_params: Optional[Mapping[str, Any]] = None,
        query_params: Optional[Mapping[str, Any]] = None,
    ) -> ApiResponse:
        return self.request("GET", endpoint, path_params=path_params, query_params=query_params)

    def post(self, endpoint: str, body: Any = None, path_params: Optional[Mapping[str, Any]] = None) -> ApiResponse:
        return self.request("POST", endpoint, body=body, path_params=path_params)

    def put(self, endpoint: str, body: Any = None, path_params: Optional[Mapping[str, Any]] = None) -> ApiResponse:
        return self.request("PUT", endpoint, body=body, path_params=path_params)

    def patch(self, endpoint: str, body: Any = None, path_params: Optional[Mapping[str, Any]] = None) -> ApiResponse:
        return self.request("PATCH", endpoint, body=body, path_params=path_params)

    def delete(self, endpoint: str, path_params: Optional[Mapping[str, Any]] = None) -> ApiResponse:
        return self.request("DELETE", endpoint, path_params=path_params)

    def close(self) -> None:
        self.session.close()
