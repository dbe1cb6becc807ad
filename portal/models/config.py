"""Pydantic models for the admin configuration record."""
from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ApiSite(BaseModel):
    """A catalog API site (CMS-style listing endpoint)."""
    model_config = ConfigDict(extra="allow")

    key: str
    name: str = ""
    api: str = ""
    detail: str = ""
    disabled: bool = False


class LiveSource(BaseModel):
    """A live-TV playlist (M3U) configured by the admin."""
    model_config = ConfigDict(extra="allow")

    key: str
    name: str = ""
    url: str = ""
    ua: str = ""
    epg: str = ""
    disabled: bool = False


class OpenListConfig(BaseModel):
    """Settings for the credential-gated OpenList backend.

    ``last_refresh_time`` and ``resource_count`` are owned by the library
    scanner; saves from the admin UI only carry them forward.
    """
    model_config = ConfigDict(extra="allow")

    enabled: bool = False
    url: str = ""
    username: str = ""
    password: str = ""
    root_path: str = "/"
    offline_download_path: str = "/"
    last_refresh_time: Optional[str] = None
    resource_count: Optional[int] = None
    scan_interval: int = 0  # minutes, 0 = no periodic scan

    @property
    def has_credentials(self) -> bool:
        return bool(self.url and self.username and self.password)

    @property
    def is_active(self) -> bool:
        return self.enabled and self.has_credentials


class AdminConfig(BaseModel):
    """Root admin configuration record."""
    model_config = ConfigDict(extra="allow")

    api_sites: list[ApiSite] = Field(default_factory=list)
    live_config: list[LiveSource] = Field(default_factory=list)
    openlist_config: OpenListConfig = Field(default_factory=OpenListConfig)


class Settings(BaseModel):
    """Process settings, read from the environment once at startup."""

    data_dir: str = "./data"
    subscribe_enabled: bool = False
    subscribe_token: str = ""
    site_base: str = ""
    root_username: str = ""
    storage_type: str = "file"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            data_dir=os.environ.get("DATA_DIR", "/data" if os.path.exists("/data") else "./data"),
            subscribe_enabled=os.environ.get("ENABLE_TVBOX_SUBSCRIBE") == "true",
            subscribe_token=os.environ.get("TVBOX_SUBSCRIBE_TOKEN", ""),
            site_base=os.environ.get("SITE_BASE", ""),
            root_username=os.environ.get("USERNAME", ""),
            storage_type=os.environ.get("STORAGE_TYPE", "file"),
        )
