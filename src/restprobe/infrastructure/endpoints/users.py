"""User endpoints of the users API"""

import logging
from typing import Any, Dict, Optional

from restprobe.domain.models.response import ApiResponse
from restprobe.domain.models.user import User
from restprobe.infrastructure.http_client import ApiClient

logger = logging.getLogger(__name__)

USERS_ENDPOINT = "/users"
USER_BY_ID_ENDPOINT = "/users/{id}"


class UserEndpoints:
    """All user-related API operations.

    Methods only build paths and parameters; status codes are returned to
    the caller for assertions.
    """

    def __init__(self, client: ApiClient):
        self.client = client

    def get_all_users(self, page: Optional[int] = None, per_page: Optional[int] = None) -> ApiResponse:
        query: Dict[str, Any] = {}
        if page is not None:
            query["page"] = page
        if per_page is not None:
            query["per_page"] = per_page
        if query:
            logger.info(f"Getting users with pagination - page: {page}, per_page: {per_page}")
        else:
            logger.info("Getting all users")
        return self.client.get(USERS_ENDPOINT, query_params=query or None)

    def get_user_by_id(self, user_id: int) -> ApiResponse:
        logger.info(f"Getting user by ID: {user_id}")
        return self.client.get(USER_BY_ID_ENDPOINT, path_params={"id": user_id})

    def create_user(self, user: User) -> ApiResponse:
        logger.info(f"Creating new user with email: {user.email}")
        return self.client.post(USERS_ENDPOINT, user)

    def update_user(self, user_id: int, user: User) -> ApiResponse:
        """Full update (PUT)"""
        logger.info(f"Updating user with ID: {user_id}")
        return self.client.put(USER_BY_ID_ENDPOINT, user, path_params={"id": user_id})

    def partially_update_user(self, user_id: int, updates: User) -> ApiResponse:
        """Partial update (PATCH)"""
        logger.info(f"Partially updating user with ID: {user_id}")
        return self.client.patch(USER_BY_ID_ENDPOINT, updates, path_params={"id": user_id})

    def delete_user(self, user_id: int) -> ApiResponse:
        logger.info(f"Deleting user with ID: {user_id}")
        return self.client.delete(USER_BY_ID_ENDPOINT, path_params={"id": user_id})

    def search_users_by_email(self, email: str) -> ApiResponse:
        logger.info(f"Searching users by email: {email}")
        return self.client.get(USERS_ENDPOINT, query_params={"email": email})

    def search_users_by_role(self, role: str) -> ApiResponse:
        logger.info(f"Searching users by role: {role}")
        return self.client.get(USERS_ENDPOINT, query_params={"role": role})
