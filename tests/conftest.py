"""Shared fixtures: zero-delay config and an in-memory users API"""

from __future__ import annotations

from typing import List

import pytest
import requests

from restprobe.domain.config import AppConfig
from restprobe.infrastructure.endpoints.users import UserEndpoints
from restprobe.infrastructure.fake_api import FakeUsersApi
from restprobe.infrastructure.http_client import ApiClient
from restprobe.infrastructure.retry import RetryingRequestExecutor, RetryPolicy

BASE_URL = "http://api.test"


class SleepRecorder:
    """Records requested delays instead of sleeping"""

    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "RESTPROBE_ENV",
        "RESTPROBE_BASE_URL",
        "RESTPROBE_API_VERSION",
        "RESTPROBE_AUTH_TOKEN",
        "RESTPROBE_RETRY_MAX_ATTEMPTS",
        "RESTPROBE_RETRY_DELAY_MS",
        "RESTPROBE_LOG_RESPONSES",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(
        api={"base_url": BASE_URL, "api_version": "v1"},
        retry={"max_attempts": 3, "delay_ms": 10},
    )


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fake_api() -> FakeUsersApi:
    return FakeUsersApi()


@pytest.fixture
def session(fake_api) -> requests.Session:
    s = requests.Session()
    s.mount(BASE_URL, fake_api)
    return s


@pytest.fixture
def client(app_config, session, sleeper) -> ApiClient:
    executor = RetryingRequestExecutor(RetryPolicy.from_config(app_config.retry), sleep=sleeper)
    return ApiClient(app_config, session=session, executor=executor)


@pytest.fixture
def users(client) -> UserEndpoints:
    return UserEndpoints(client)
