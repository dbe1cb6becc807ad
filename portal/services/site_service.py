"""Catalog site lookup, scoped per user."""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from portal.database import get_user
from portal.models.config import ApiSite

if TYPE_CHECKING:
    from portal.services.config_service import ConfigService


class SiteService:
    def __init__(self, config_service: "ConfigService", db_path: str):
        self.config_service = config_service
        self.db_path = db_path

    async def get_available_api_sites(self, username: Optional[str] = None) -> list[ApiSite]:
        """Enabled API sites, narrowed to the user's ``enabled_apis`` when set."""
        sites = [s for s in self.config_service.get_api_sites() if not s.disabled]
        if not username:
            return sites
        user = get_user(self.db_path, username)
        if not user or user["enabled_apis"] is None:
            return sites
        allowed = set(user["enabled_apis"])
        return [s for s in sites if s.key in allowed]
