"""ApiResponse model - transport-agnostic description of one HTTP response"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ApiResponse:
    """Response descriptor handed back to callers by the executor"""

    status_code: int
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    elapsed_ms: float = 0.0
    url: Optional[str] = None
    method: Optional[str] = None

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get a header value (case-insensitive)"""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    @property
    def content_type(self) -> Optional[str]:
        return self.header("Content-Type")

    @property
    def is_success(self) -> bool:
        """Check if status is 2xx"""
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        """Decode the body as JSON

        Raises:
            ValueError: If the body is empty or not valid JSON
        """
        if not self.body.strip():
            raise ValueError(f"Response body is empty (status {self.status_code})")
        return json.loads(self.body)
