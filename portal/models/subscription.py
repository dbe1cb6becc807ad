"""Pydantic models for the TVBox subscription document."""
from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

# Well-known key of the synthetic OpenList site; clients key their cache on it.
GATED_SOURCE_KEY = "openlist"
GATED_SOURCE_NAME = "Private Library"


class SourceKind(str, enum.Enum):
    CATALOG = "catalog"
    GATED = "gated"


class MediaSourceItem(BaseModel):
    """One entry of ``sites``.  ``kind`` is internal and never serialized."""
    model_config = ConfigDict(populate_by_name=True)

    key: str
    name: str
    kind: SourceKind = Field(default=SourceKind.CATALOG, exclude=True)
    type: int = 1
    api: str
    searchable: bool = True
    quick_search: bool = Field(default=True, alias="quickSearch")
    filterable: bool = True
    ext: str = ""

    @field_serializer("searchable", "quick_search", "filterable")
    def _as_flag(self, value: bool) -> int:
        return 1 if value else 0


class LiveChannelItem(BaseModel):
    """One entry of ``lives``; ``playerType`` is only emitted for degraded entries."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    type: int = 0
    player_type: Optional[int] = Field(default=None, alias="playerType")
    url: str
    epg: str = ""
    logo: str = ""


class SubscriptionDocument(BaseModel):
    spider: str = ""
    wallpaper: str = ""
    sites: list[MediaSourceItem] = Field(default_factory=list)
    lives: list[LiveChannelItem] = Field(default_factory=list)
    parses: list = Field(default_factory=list)
    rules: list = Field(default_factory=list)
    ads: list = Field(default_factory=list)

    def to_tvbox(self) -> dict:
        """Render in the key layout TVBox clients expect."""
        data = self.model_dump(by_alias=True)
        for live in data["lives"]:
            if live.get("playerType") is None:
                live.pop("playerType", None)
        return data
