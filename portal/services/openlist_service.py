"""OpenList config service — validates and applies backend settings."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from portal.errors import AuthFailure, ValidationError
from portal.models.config import OpenListConfig

if TYPE_CHECKING:
    from portal.services.config_service import ConfigService
    from portal.services.openlist_client import OpenListClient

logger = logging.getLogger(__name__)

MIN_SCAN_INTERVAL = 60  # minutes

# Admin UI field name -> model field
_FIELD_ALIASES = {
    "Enabled": "enabled",
    "URL": "url",
    "Username": "username",
    "Password": "password",
    "RootPath": "root_path",
    "OfflineDownloadPath": "offline_download_path",
    "ScanInterval": "scan_interval",
}


def normalize_payload(data: dict) -> dict:
    """Map admin UI keys (``URL``, ``ScanInterval``...) to snake_case."""
    out: dict[str, Any] = {}
    for key, value in data.items():
        out[_FIELD_ALIASES.get(key, key)] = value
    return out


def parse_scan_interval(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class OpenListService:
    """Applies admin edits to ``openlist_config``.

    Enabling requires a successful live login; disabling never contacts
    the server.  Scanner-owned fields are carried over from the stored
    record on every save.
    """

    def __init__(self, config_service: "ConfigService", client: "OpenListClient"):
        self.config_service = config_service
        self.client = client

    def get_masked_config(self) -> dict:
        data = self.config_service.get_openlist_config().model_dump()
        if data.get("password"):
            data["password"] = "******"
        return data

    async def save(self, data: dict) -> OpenListConfig:
        """Validate *data* and persist it.

        Raises :class:`ValidationError`, :class:`AuthFailure` or
        :class:`PersistError`; nothing is written unless all checks pass.
        """
        fields = normalize_payload(data)
        previous = self.config_service.get_openlist_config()

        url = fields.get("url") or ""
        username = fields.get("username") or ""
        password = fields.get("password") or ""
        root_path = fields.get("root_path") or "/"
        offline_download_path = fields.get("offline_download_path") or "/"

        if not fields.get("enabled"):
            new_config = OpenListConfig(
                enabled=False,
                url=url,
                username=username,
                password=password,
                root_path=root_path,
                offline_download_path=offline_download_path,
                last_refresh_time=previous.last_refresh_time,
                resource_count=previous.resource_count,
                scan_interval=0,
            )
            self.config_service.save_openlist_config(new_config)
            logger.info("OpenList disabled")
            return new_config

        if not url or not username or not password:
            raise ValidationError("missing required fields: URL, username and password")

        scan_interval = parse_scan_interval(fields.get("scan_interval"))
        if 0 < scan_interval < MIN_SCAN_INTERVAL:
            raise ValidationError(f"interval too small: scan interval must be at least {MIN_SCAN_INTERVAL} minutes")

        try:
            await self.client.validate(url, username, password)
        except AuthFailure as e:
            raise AuthFailure(f"credential check failed: {e.message}") from e

        new_config = OpenListConfig(
            enabled=True,
            url=url,
            username=username,
            password=password,
            root_path=root_path,
            offline_download_path=offline_download_path,
            last_refresh_time=previous.last_refresh_time,
            resource_count=previous.resource_count,
            scan_interval=scan_interval,
        )
        self.config_service.save_openlist_config(new_config)
        logger.info(f"OpenList enabled for {url} (scan interval {scan_interval} min)")
        return new_config
