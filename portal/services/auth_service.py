"""Auth service — cookie identity and admin role checks."""
from __future__ import annotations

import json
import logging
from typing import Optional
from urllib.parse import unquote

from fastapi import Request

from portal.database import ADMIN_ROLES, get_user
from portal.errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)

AUTH_COOKIE = "auth"


def get_username_from_cookie(request: Request) -> Optional[str]:
    """Read the username from the ``auth`` cookie (URL-encoded JSON)."""
    raw = request.cookies.get(AUTH_COOKIE)
    if not raw:
        return None
    try:
        info = json.loads(unquote(raw))
    except ValueError:
        logger.debug("Ignoring malformed auth cookie")
        return None
    if not isinstance(info, dict):
        return None
    return info.get("username") or None


class AuthService:
    def __init__(self, db_path: str, root_username: str = ""):
        self.db_path = db_path
        self.root_username = root_username

    def is_admin(self, username: str) -> bool:
        if self.root_username and username == self.root_username:
            return True
        user = get_user(self.db_path, username)
        return bool(user and user["role"] in ADMIN_ROLES and not user["banned"])

    def require_admin(self, request: Request) -> str:
        """Return the caller's username or raise ``Unauthorized`` / ``Forbidden``."""
        username = get_username_from_cookie(request)
        if not username:
            raise Unauthorized("Unauthorized")
        if not self.is_admin(username):
            logger.warning(f"Rejected admin request from '{username}'")
            raise Forbidden("insufficient permissions")
        return username
