"""Service running the users API scenario checks"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from restprobe.domain.models.response import ApiResponse
from restprobe.infrastructure.endpoints.users import UserEndpoints
from restprobe.infrastructure.retry import RetryError
from restprobe.infrastructure.test_data import TestDataGenerator

logger = logging.getLogger(__name__)

MAX_RESPONSE_TIME_MS = 5000
MISSING_USER_ID = 99999


class CheckFailed(AssertionError):
    """A scenario expectation did not hold."""

    pass


@dataclass
class ScenarioResult:
    """Result of one scenario"""

    name: str
    passed: bool
    detail: str = ""


def _expect_status(response: ApiResponse, *expected: int) -> None:
    if response.status_code not in expected:
        wanted = " or ".join(str(s) for s in expected)
        raise CheckFailed(f"expected status {wanted}, got {response.status_code}")


def _expect_fast(response: ApiResponse) -> None:
    if response.elapsed_ms >= MAX_RESPONSE_TIME_MS:
        raise CheckFailed(f"response took {response.elapsed_ms:.0f}ms (limit {MAX_RESPONSE_TIME_MS}ms)")


def _json_object(response: ApiResponse) -> dict:
    body = response.json()
    if not isinstance(body, dict):
        raise CheckFailed(f"expected a JSON object body, got {type(body).__name__}")
    return body


class UserApiSuite:
    """Runs GET/POST/PATCH/PUT/DELETE scenarios against the users API.

    DELETE is checked against an explicit contract: the first delete of an
    existing user returns 204, every repeat returns 404.
    """

    def __init__(self, endpoints: UserEndpoints, data: Optional[TestDataGenerator] = None):
        self.endpoints = endpoints
        self.data = data or TestDataGenerator()

    def scenarios(self) -> List[Tuple[str, Callable[[], str]]]:
        return [
            ("list users", self.check_list_users),
            ("get existing user", self.check_get_user),
            ("get missing user", self.check_get_missing_user),
            ("create user", self.check_create_user),
            ("reject invalid user", self.check_create_invalid_user),
            ("update user", self.check_update_user),
            ("patch user", self.check_patch_user),
            ("delete user", self.check_delete_user),
            ("delete twice", self.check_delete_twice),
            ("delete invalid id", self.check_delete_invalid_id),
        ]

    def run(self, only: Optional[List[str]] = None) -> dict:
        """Run scenarios

        Args:
            only: Scenario names to run (None = all)

        Returns:
            Dictionary with run statistics and per-scenario results

        Raises:
            ValueError: If a name in only is not a known scenario
        """
        scenarios = self.scenarios()
        if only is not None:
            known = [n for n, _ in scenarios]
            unknown = [n for n in only if n not in known]
            if unknown:
                raise ValueError(
                    f"Unknown scenario(s): {', '.join(unknown)}. Available scenarios: {', '.join(known)}"
                )

        results: List[ScenarioResult] = []
        selected = [(n, fn) for n, fn in scenarios if only is None or n in only]

        for i, (name, check) in enumerate(selected, 1):
            logger.info(f"Running scenario {i}/{len(selected)}: {name}")
            try:
                detail = check()
                results.append(ScenarioResult(name=name, passed=True, detail=detail))
            except CheckFailed as e:
                logger.error(f"Scenario '{name}' failed: {e}")
                results.append(ScenarioResult(name=name, passed=False, detail=str(e)))
            except RetryError as e:
                logger.error(f"Scenario '{name}' aborted: {e}")
                results.append(ScenarioResult(name=name, passed=False, detail=str(e)))
            except ValueError as e:
                logger.error(f"Scenario '{name}' got an unparsable response: {e}")
                results.append(ScenarioResult(name=name, passed=False, detail=f"invalid JSON: {e}"))

        passed = sum(1 for r in results if r.passed)
        return {
            "total": len(results),
            "passed": passed,
            "failed": len(results) - passed,
            "results": results,
        }

    def _create(self) -> int:
        response = self.endpoints.create_user(self.data.random_user())
        _expect_status(response, 201)
        user_id = _json_object(response).get("id")
        if user_id is None:
            raise CheckFailed("created user has no id")
        return int(user_id)

    def check_list_users(self) -> str:
        response = self.endpoints.get_all_users(page=1, per_page=5)
        _expect_status(response, 200)
        _expect_fast(response)
        data = _json_object(response).get("data")
        if not isinstance(data, list):
            raise CheckFailed("response has no data list")
        if len(data) > 5:
            raise CheckFailed(f"per_page=5 returned {len(data)} users")
        return f"{len(data)} users on page 1"

    def check_get_user(self) -> str:
        user_id = self._create()
        response = self.endpoints.get_user_by_id(user_id)
        _expect_status(response, 200)
        if _json_object(response).get("id") != user_id:
            raise CheckFailed(f"expected user {user_id}")
        return f"user {user_id} found"

    def check_get_missing_user(self) -> str:
        response = self.endpoints.get_user_by_id(MISSING_USER_ID)
        _expect_status(response, 404)
        return "404 for missing user"

    def check_create_user(self) -> str:
        user = self.data.random_user()
        response = self.endpoints.create_user(user)
        _expect_status(response, 201)
        body = _json_object(response)
        for field in ("email", "first_name", "last_name"):
            if body.get(field) != getattr(user, field):
                raise CheckFailed(f"{field} not echoed back")
        if body.get("id") is None:
            raise CheckFailed("created user has no id")
        return f"created user {body['id']}"

    def check_create_invalid_user(self) -> str:
        response = self.endpoints.create_user(self.data.invalid_user())
        _expect_status(response, 400, 422)
        return f"rejected with {response.status_code}"

    def check_update_user(self) -> str:
        user_id = self._create()
        replacement = self.data.random_user()
        response = self.endpoints.update_user(user_id, replacement)
        _expect_status(response, 200)
        if _json_object(response).get("email") != replacement.email:
            raise CheckFailed("email not replaced")
        return f"user {user_id} replaced"

    def check_patch_user(self) -> str:
        user_id = self._create()
        updates = self.data.user_for_update()
        response = self.endpoints.partially_update_user(user_id, updates)
        _expect_status(response, 200)
        body = _json_object(response)
        if body.get("first_name") != updates.first_name or body.get("phone") != updates.phone:
            raise CheckFailed("patched fields not applied")
        if body.get("email") is None:
            raise CheckFailed("unpatched fields were dropped")
        return f"user {user_id} patched"

    def check_delete_user(self) -> str:
        user_id = self._create()
        response = self.endpoints.delete_user(user_id)
        _expect_status(response, 204)
        if response.body.strip():
            raise CheckFailed("delete response body is not empty")
        _expect_status(self.endpoints.get_user_by_id(user_id), 404)
        return f"user {user_id} deleted and no longer accessible"

    def check_delete_twice(self) -> str:
        user_id = self._create()
        _expect_status(self.endpoints.delete_user(user_id), 204)
        _expect_status(self.endpoints.delete_user(user_id), 404)
        return "204 then 404"

    def check_delete_invalid_id(self) -> str:
        response = self.endpoints.delete_user(0)
        _expect_status(response, 400, 404)
        return f"rejected with {response.status_code}"
