"""In-process fake of the users API for offline runs and tests.

FakeUsersApi is a requests transport adapter: mount it on a Session and
every request to that prefix is answered from memory, with no network.

The DELETE contract is explicit: deleting an existing user returns 204
with an empty body, and every later DELETE of the same id returns 404.
"""

import json
import logging
import re
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import formatdate
from typing import Any, Deque, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

logger = logging.getLogger(__name__)

_USERS_PATH = re.compile(r"/users(?:/(?P<id>[^/]+))?/?$")
_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

DEFAULT_PER_PAGE = 6

SEED_USERS = [
    ("george.bluth@reqres.in", "George", "Bluth"),
    ("janet.weaver@reqres.in", "Janet", "Weaver"),
    ("emma.wong@reqres.in", "Emma", "Wong"),
    ("eve.holt@reqres.in", "Eve", "Holt"),
    ("charles.morris@reqres.in", "Charles", "Morris"),
    ("tracey.ramos@reqres.in", "Tracey", "Ramos"),
    ("michael.lawson@reqres.in", "Michael", "Lawson"),
    ("lindsay.ferguson@reqres.in", "Lindsay", "Ferguson"),
    ("tobias.funke@reqres.in", "Tobias", "Funke"),
    ("byron.fields@reqres.in", "Byron", "Fields"),
    ("george.edwards@reqres.in", "George", "Edwards"),
    ("rachel.howell@reqres.in", "Rachel", "Howell"),
]


@dataclass
class Fault:
    """Injected failure for the next request"""

    status: Optional[int] = None
    error: Optional[Exception] = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def is_valid_email(email: Any) -> bool:
    return isinstance(email, str) and ".." not in email and bool(_EMAIL.match(email))


class FakeUsersApi(BaseAdapter):
    """Transport adapter serving the users API from memory"""

    def __init__(self, seed: bool = True):
        super().__init__()
        self._lock = threading.Lock()
        self._users: Dict[int, Dict[str, Any]] = {}
        self._next_id = 1
        self._faults: Deque[Fault] = deque()
        self.request_count = 0
        if seed:
            for email, first_name, last_name in SEED_USERS:
                self._insert(
                    {
                        "email": email,
                        "first_name": first_name,
                        "last_name": last_name,
                        "role": "user",
                        "status": "active",
                        "is_active": True,
                    }
                )

    def _insert(self, data: Dict[str, Any]) -> Dict[str, Any]:
        user = dict(data)
        user["id"] = self._next_id
        user["created_at"] = _now()
        self._users[self._next_id] = user
        self._next_id += 1
        return user

    def fail_next(self, count: int = 1, status: Optional[int] = 503, error: Optional[Exception] = None) -> None:
        """Queue failures for the next `count` requests

        Args:
            count: Number of requests to fail
            status: Status code to answer with (ignored when error is set)
            error: Exception to raise instead of answering
        """
        with self._lock:
            for _ in range(count):
                self._faults.append(Fault(status=None if error else status, error=error))

    def user_ids(self) -> List[int]:
        with self._lock:
            return sorted(self._users)

    def send(self, request: requests.PreparedRequest, **kwargs) -> requests.Response:
        with self._lock:
            self.request_count += 1
            fault = self._faults.popleft() if self._faults else None
            if fault is not None and fault.error is not None:
                logger.debug(f"Injected error for {request.method} {request.url}: {fault.error}")
                raise fault.error
            if fault is not None:
                status, body = fault.status, {"error": "Injected failure"}
            else:
                status, body = self._handle(request)
        return self._build_response(request, status, body)

    def close(self) -> None:
        pass

    def _handle(self, request: requests.PreparedRequest) -> Tuple[int, Optional[Any]]:
        parsed = urlparse(request.url)
        match = _USERS_PATH.search(parsed.path)
        if match is None:
            return 404, {"error": "Not found"}

        method = (request.method or "GET").upper()
        raw_id = match.group("id")
        if raw_id is None:
            if method == "GET":
                return self._list(parse_qs(parsed.query))
            if method == "POST":
                return self._create(self._read_json(request))
            return 405, {"error": "Method not allowed"}

        try:
            user_id = int(raw_id)
        except ValueError:
            return 400, {"error": "Invalid user id"}
        if user_id <= 0:
            return 400, {"error": "Invalid user id"}

        if method == "GET":
            return self._get(user_id)
        if method == "PUT":
            return self._update(user_id, self._read_json(request), replace=True)
        if method == "PATCH":
            return self._update(user_id, self._read_json(request), replace=False)
        if method == "DELETE":
            return self._delete(user_id)
        return 405, {"error": "Method not allowed"}

    @staticmethod
    def _read_json(request: requests.PreparedRequest) -> Dict[str, Any]:
        if not request.body:
            return {}
        raw = request.body.decode("utf-8") if isinstance(request.body, bytes) else request.body
        try:
            data = json.loads(raw)
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def _list(self, query: Dict[str, List[str]]) -> Tuple[int, Any]:
        users = [self._users[k] for k in sorted(self._users)]
        if "email" in query:
            users = [u for u in users if u.get("email") == query["email"][0]]
        if "role" in query:
            users = [u for u in users if u.get("role") == query["role"][0]]
        try:
            page = max(int(query.get("page", ["1"])[0]), 1)
            per_page = max(int(query.get("per_page", [str(DEFAULT_PER_PAGE)])[0]), 1)
        except ValueError:
            return 400, {"error": "Invalid pagination parameters"}
        start = (page - 1) * per_page
        return 200, {
            "page": page,
            "per_page": per_page,
            "total": len(users),
            "total_pages": (len(users) + per_page - 1) // per_page,
            "data": users[start:start + per_page],
        }

    def _get(self, user_id: int) -> Tuple[int, Any]:
        user = self._users.get(user_id)
        if user is None:
            return 404, {"error": "User not found"}
        return 200, user

    def _create(self, data: Dict[str, Any]) -> Tuple[int, Any]:
        if not is_valid_email(data.get("email")):
            return 400, {"error": "Invalid email"}
        data.pop("id", None)
        return 201, self._insert(data)

    def _update(self, user_id: int, data: Dict[str, Any], replace: bool) -> Tuple[int, Any]:
        existing = self._users.get(user_id)
        if existing is None:
            return 404, {"error": "User not found"}
        if "email" in data and not is_valid_email(data["email"]):
            return 400, {"error": "Invalid email"}
        data.pop("id", None)
        data.pop("created_at", None)
        base = {"id": user_id, "created_at": existing["created_at"]}
        updated = {**base, **data} if replace else {**existing, **data}
        updated["updated_at"] = _now()
        self._users[user_id] = updated
        return 200, updated

    def _delete(self, user_id: int) -> Tuple[int, Optional[Any]]:
        if self._users.pop(user_id, None) is None:
            return 404, {"error": "User not found"}
        return 204, None

    @staticmethod
    def _build_response(request: requests.PreparedRequest, status: int, body: Optional[Any]) -> requests.Response:
        response = requests.Response()
        response.status_code = status
        response.url = request.url
        response.request = request
        response.encoding = "utf-8"
        response.headers = CaseInsensitiveDict({"Date": formatdate(usegmt=True)})
        if body is None:
            response._content = b""
        else:
            response._content = json.dumps(body).encode("utf-8")
            response.headers["Content-Type"] = "application/json; charset=utf-8"
        return response
