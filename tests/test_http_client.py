"""Tests for ApiClient: URL building, headers and retry integration"""

from __future__ import annotations

import json
import logging
from unittest.mock import MagicMock

import pytest
import requests

from restprobe.domain.config import AppConfig
from restprobe.domain.models.response import ApiResponse
from restprobe.domain.models.user import User
from restprobe.infrastructure.http_client import ApiClient, api_response_from_requests, build_path
from restprobe.infrastructure.retry import RetryExhaustedError

BASE_URL = "http://api.test"


class TestBuildPath:
    """Tests for endpoint template expansion"""

    def test_no_params(self):
        assert build_path("/users") == "/users"

    def test_fills_placeholders(self):
        assert build_path("/users/{id}", {"id": 42}) == "/users/42"

    def test_values_are_quoted(self):
        assert build_path("/users/{id}", {"id": "a b/c"}) == "/users/a%20b%2Fc"

    def test_missing_param(self):
        with pytest.raises(ValueError, match="Missing path parameter"):
            build_path("/users/{id}", {"name": "x"})


class TestApiResponse:
    """Tests for the response descriptor"""

    def test_header_lookup_is_case_insensitive(self):
        response = ApiResponse(status_code=200, headers={"Content-Type": "application/json"})
        assert response.header("content-type") == "application/json"
        assert response.content_type == "application/json"
        assert response.header("X-Missing", "none") == "none"

    def test_json_on_empty_body(self):
        with pytest.raises(ValueError, match="empty"):
            ApiResponse(status_code=204).json()

    def test_is_success(self):
        assert ApiResponse(status_code=201).is_success
        assert not ApiResponse(status_code=404).is_success

    def test_from_requests_response(self):
        resp = requests.Response()
        resp.status_code = 200
        resp._content = b'{"ok": true}'
        resp.encoding = "utf-8"
        resp.headers["Content-Type"] = "application/json"
        resp.url = "http://api.test/v1/users"

        response = api_response_from_requests(resp, elapsed_ms=12.5)

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert response.elapsed_ms == 12.5
        assert response.url == "http://api.test/v1/users"
        assert response.method is None


class TestApiClient:
    """Tests for ApiClient"""

    def test_url_includes_version(self, client):
        assert client.url_for("/users/{id}", {"id": 3}) == f"{BASE_URL}/v1/users/3"

    def test_absolute_url_passes_through(self, client):
        assert client.url_for("https://other.example.com/health") == "https://other.example.com/health"

    def test_timeout_tuple(self, client):
        assert client.timeout == (10.0, 30.0)

    def test_default_headers_without_auth(self, client):
        headers = client._default_headers()
        assert headers["Content-Type"] == "application/json"
        assert headers["Accept"] == "application/json"
        assert "Authorization" not in headers

    def test_bearer_header_when_enabled(self, app_config, session):
        app_config.auth = {"enabled": True, "token": "abc123"}
        client = ApiClient(app_config, session=session)
        assert client._default_headers()["Authorization"] == "Bearer abc123"

    def test_enabled_auth_without_token_sends_no_header(self, app_config, session):
        app_config.auth = {"enabled": True}
        client = ApiClient(app_config, session=session)
        assert "Authorization" not in client._default_headers()

    def test_request_sends_json_and_query(self, app_config):
        """Test that body, query and headers reach the session"""
        resp = requests.Response()
        resp.status_code = 201
        resp._content = b'{"id": 1}'
        resp.encoding = "utf-8"
        session = MagicMock(spec=requests.Session)
        session.request.return_value = resp
        client = ApiClient(app_config, session=session)

        response = client.request(
            "post", "/users", body=User(email="a@example.com"), query_params={"x": "1"}, headers={"X-Trace": "t"}
        )

        assert response.status_code == 201
        args, kwargs = session.request.call_args
        assert args == ("POST", f"{BASE_URL}/v1/users")
        assert kwargs["json"] == {"email": "a@example.com"}
        assert kwargs["params"] == {"x": "1"}
        assert kwargs["headers"]["X-Trace"] == "t"
        assert kwargs["timeout"] == (10.0, 30.0)

    def test_get_round_trip_through_fake_api(self, client):
        response = client.get("/users/{id}", path_params={"id": 1})
        assert response.status_code == 200
        assert response.method == "GET"
        assert response.json()["email"] == "george.bluth@reqres.in"

    def test_retriable_status_is_retried(self, client, fake_api, sleeper):
        """Test that 503 from the server is retried and the next success returned"""
        fake_api.fail_next(2, status=503)

        response = client.get("/users/{id}", path_params={"id": 2})

        assert response.status_code == 200
        assert fake_api.request_count == 3
        assert sleeper.calls == [0.01, 0.01]

    def test_persistent_503_is_returned(self, client, fake_api):
        fake_api.fail_next(5, status=503)
        response = client.get("/users")
        assert response.status_code == 503
        assert fake_api.request_count == 3

    def test_404_is_not_retried(self, client, fake_api):
        response = client.get("/users/{id}", path_params={"id": 999})
        assert response.status_code == 404
        assert fake_api.request_count == 1

    def test_connection_error_is_retried_then_raised(self, client, fake_api):
        fake_api.fail_next(3, error=requests.ConnectionError("connection refused"))

        with pytest.raises(RetryExhaustedError) as exc_info:
            client.get("/users")

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, requests.ConnectionError)
        assert fake_api.request_count == 3

    def test_timeout_then_success(self, client, fake_api):
        fake_api.fail_next(1, error=requests.Timeout("read timed out"))
        response = client.get("/users")
        assert response.status_code == 200
        assert fake_api.request_count == 2

    def test_response_logging_disabled_by_default(self, client, caplog):
        caplog.set_level(logging.INFO, logger="restprobe.infrastructure.http_client")
        client.get("/users")
        assert not any("Status:" in r.getMessage() for r in caplog.records)

    def test_response_logging_enabled(self, app_config, session, caplog):
        app_config.logging = {"log_responses": True}
        client = ApiClient(app_config, session=session)
        caplog.set_level(logging.DEBUG, logger="restprobe.infrastructure.http_client")

        client.get("/users/{id}", path_params={"id": 1})

        messages = [r.getMessage() for r in caplog.records]
        assert any(m.startswith("GET /users/{id} - Status: 200, Time:") for m in messages)
        assert any(m.startswith("Response body:") for m in messages)

    def test_default_executor_from_config(self, session):
        config = AppConfig(api={"base_url": BASE_URL}, retry={"max_attempts": 4, "delay_ms": 0})
        client = ApiClient(config, session=session)
        assert client.executor.policy.max_attempts == 4
        assert client.executor.policy.delay_ms == 0

    def test_default_executor_does_not_retry_local_errors(self, app_config):
        """Test that a bug raised inside the send is not replayed as a transport error"""
        session = MagicMock(spec=requests.Session)
        session.request.side_effect = TypeError("bad argument")
        client = ApiClient(app_config, session=session)

        with pytest.raises(TypeError, match="bad argument"):
            client.get("/users")

        assert session.request.call_count == 1
        assert client.executor.retry_on == (requests.RequestException,)

    def test_default_executor_retries_transport_errors(self, app_config):
        session = MagicMock(spec=requests.Session)
        session.request.side_effect = requests.ConnectionError("refused")
        client = ApiClient(app_config, session=session)

        with pytest.raises(RetryExhaustedError):
            client.get("/users")

        assert session.request.call_count == 3

    def test_put_and_patch_bodies(self, client, fake_api):
        put = client.put("/users/{id}", {"email": "new@example.com"}, path_params={"id": 3})
        assert json.loads(put.body)["email"] == "new@example.com"
        patch = client.patch("/users/{id}", {"first_name": "Zed"}, path_params={"id": 3})
        assert patch.json()["first_name"] == "Zed"
        assert patch.json()["email"] == "new@example.com"
