"""API endpoint wrappers"""

from restprobe.infrastructure.endpoints.users import UserEndpoints

__all__ = ["UserEndpoints"]
