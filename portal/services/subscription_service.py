"""Subscription service — aggregates sources and builds the TVBox document."""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Mapping, Optional
from urllib.parse import quote

from pydantic import BaseModel, Field

from portal.errors import BuildError
from portal.models.subscription import (
    GATED_SOURCE_KEY,
    GATED_SOURCE_NAME,
    LiveChannelItem,
    MediaSourceItem,
    SourceKind,
    SubscriptionDocument,
)

if TYPE_CHECKING:
    from portal.models.config import ApiSite, LiveSource
    from portal.services.config_service import ConfigService
    from portal.services.live_service import LiveService
    from portal.services.site_service import SiteService

logger = logging.getLogger(__name__)

CMS_PROXY_PATH = "/api/cms-proxy"
OPENLIST_PROXY_PATH = "/api/openlist/cms-proxy"
LOOPBACK_HOSTS = ("localhost", "127.0.0.1")


class SubscribeOptions(BaseModel):
    base_url: str
    ad_filter: bool = False
    subscribe_token: str


class ResolvedSources(BaseModel):
    catalog_sources: list[MediaSourceItem] = Field(default_factory=list)
    gated_source: Optional[MediaSourceItem] = None
    live_channels: list[LiveChannelItem] = Field(default_factory=list)


def resolve_base_url(site_base: str, origin: Optional[str], headers: Mapping[str, str]) -> str:
    """Pick the base URL for absolute links.

    Precedence: ``SITE_BASE`` setting, then the ``origin`` query
    parameter, then the request's host headers.
    """
    base_url = site_base or origin
    if base_url:
        return base_url.rstrip("/")
    host = headers.get("host") or headers.get("x-forwarded-host") or ""
    proto = headers.get("x-forwarded-proto")
    if not proto:
        proto = "http" if any(h in host for h in LOOPBACK_HOSTS) else "https"
    return f"{proto}://{host}"


def cms_proxy_url(base_url: str, api: str) -> str:
    return f"{base_url}{CMS_PROXY_PATH}?api={quote(api, safe='')}"


def catalog_item(site: "ApiSite") -> MediaSourceItem:
    return MediaSourceItem(
        key=site.key,
        name=site.name,
        kind=SourceKind.CATALOG,
        api=site.api,
        ext=site.detail or "",
    )


def gated_item(subscribe_token: str) -> MediaSourceItem:
    """The OpenList library as a site; ``api`` is a portal path made absolute at build time."""
    return MediaSourceItem(
        key=GATED_SOURCE_KEY,
        name=GATED_SOURCE_NAME,
        kind=SourceKind.GATED,
        api=f"{OPENLIST_PROXY_PATH}/{quote(subscribe_token, safe='')}",
        ext="",
    )


class SubscriptionService:
    def __init__(
        self,
        config_service: "ConfigService",
        site_service: "SiteService",
        live_service: "LiveService",
    ):
        self.config_service = config_service
        self.site_service = site_service
        self.live_service = live_service

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    async def _live_item(self, live: "LiveSource") -> LiveChannelItem:
        try:
            cached = await self.live_service.get_cached_live_channels(live.key)
        except Exception as e:
            logger.warning(f"EPG lookup failed for live source '{live.key}': {e}")
            return LiveChannelItem(name=live.name, url=live.url, epg=live.epg or "", player_type=1)
        epg = live.epg or (cached.epg_url if cached else "") or ""
        return LiveChannelItem(name=live.name, url=live.url, epg=epg)

    async def resolve(self, username: Optional[str], subscribe_token: str) -> ResolvedSources:
        """Collect catalog sites, the OpenList site and live channels for *username*.

        A failed playlist lookup degrades that one channel; a site that
        cannot be mapped raises :class:`BuildError`.
        """
        sites = await self.site_service.get_available_api_sites(username)
        try:
            catalog = [catalog_item(site) for site in sites]
        except Exception as e:
            raise BuildError(f"invalid api site: {e}") from e

        gated = None
        if self.config_service.get_openlist_config().is_active:
            gated = gated_item(subscribe_token)

        lives = self.config_service.get_enabled_lives()
        live_items = await asyncio.gather(*(self._live_item(live) for live in lives))

        return ResolvedSources(catalog_sources=catalog, gated_source=gated, live_channels=list(live_items))

    # ------------------------------------------------------------------
    # Document
    # ------------------------------------------------------------------

    @staticmethod
    def build(resolved: ResolvedSources, options: SubscribeOptions) -> SubscriptionDocument:
        """Assemble the document; the OpenList site, when present, comes first."""
        sites: list[MediaSourceItem] = []
        if resolved.gated_source is not None:
            gated = resolved.gated_source
            sites.append(gated.model_copy(update={"api": f"{options.base_url}{gated.api}"}))

        for item in resolved.catalog_sources:
            try:
                api = cms_proxy_url(options.base_url, item.api) if options.ad_filter else item.api
                sites.append(item.model_copy(update={"api": api}))
            except Exception as e:
                raise BuildError(f"cannot map site '{item.key}': {e}") from e

        return SubscriptionDocument(sites=sites, lives=list(resolved.live_channels))

    async def generate(self, username: Optional[str], options: SubscribeOptions) -> dict:
        resolved = await self.resolve(username, options.subscribe_token)
        document = self.build(resolved, options)
        return document.to_tvbox()
