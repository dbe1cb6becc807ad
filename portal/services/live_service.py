"""Live channel service — fetches and caches M3U playlists for live sources."""
from __future__ import annotations

import logging
import re
import time
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from portal.models.config import LiveSource
    from portal.services.config_service import ConfigService
    from portal.services.http_client import HttpClientService

logger = logging.getLogger(__name__)

LIVE_CACHE_TTL = 1800  # seconds

_ATTR_RE = re.compile(r'([\w-]+)="([^"]*)"')
_EPG_ATTRS = ("x-tvg-url", "url-tvg")


class LiveChannel(BaseModel):
    name: str
    url: str
    tvg_id: str = ""
    logo: str = ""
    group: str = ""


class CachedLiveChannels(BaseModel):
    channels: list[LiveChannel] = Field(default_factory=list)
    epg_url: str = ""
    fetched_at: float = 0.0


def parse_m3u(content: str) -> CachedLiveChannels:
    """Parse an extended M3U playlist.

    The EPG URL comes from the ``#EXTM3U`` header (``x-tvg-url`` or
    ``url-tvg``); only the first of a comma-separated list is kept.
    """
    result = CachedLiveChannels()
    pending: Optional[dict] = None
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith("#EXTM3U"):
            attrs = dict(_ATTR_RE.findall(line))
            for attr in _EPG_ATTRS:
                if attrs.get(attr):
                    result.epg_url = attrs[attr].split(",")[0].strip()
                    break
        elif line.startswith("#EXTINF"):
            attrs = dict(_ATTR_RE.findall(line))
            name = line.rsplit(",", 1)[-1].strip() if "," in line else ""
            pending = {
                "name": name or attrs.get("tvg-name", ""),
                "tvg_id": attrs.get("tvg-id", ""),
                "logo": attrs.get("tvg-logo", ""),
                "group": attrs.get("group-title", ""),
            }
        elif line.startswith("#"):
            continue
        elif pending is not None:
            result.channels.append(LiveChannel(url=line, **pending))
            pending = None
    return result


class LiveService:
    """In-memory cache of parsed live playlists, keyed by live source key."""

    def __init__(self, config_service: "ConfigService", http_client: "HttpClientService"):
        self.config_service = config_service
        self.http_client = http_client
        self._cache: dict[str, CachedLiveChannels] = {}

    def _is_fresh(self, entry: CachedLiveChannels) -> bool:
        return time.time() - entry.fetched_at < LIVE_CACHE_TTL

    async def _fetch(self, live: "LiveSource") -> CachedLiveChannels:
        client = await self.http_client.get_client()
        headers = {"User-Agent": live.ua} if live.ua else None
        response = await client.get(live.url, headers=headers)
        response.raise_for_status()
        parsed = parse_m3u(response.text)
        parsed.fetched_at = time.time()
        logger.info(f"Fetched live source '{live.key}': {len(parsed.channels)} channels")
        return parsed

    async def get_cached_live_channels(self, key: str) -> Optional[CachedLiveChannels]:
        """Return the cached playlist for *key*, refreshing it when stale.

        Returns ``None`` for an unknown key.  Fetch errors propagate.
        """
        entry = self._cache.get(key)
        if entry is not None and self._is_fresh(entry):
            return entry
        live = self.config_service.get_live_by_key(key)
        if live is None:
            return None
        entry = await self._fetch(live)
        self._cache[key] = entry
        return entry
