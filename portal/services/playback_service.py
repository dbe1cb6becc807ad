"""Live playback session — loader selection and player lifecycle.

A :class:`PlaybackSession` owns at most one player per surface.  Every
source selection tears the current player down before anything new is
built, and :meth:`PlaybackSession.close` (or leaving ``async with``)
releases it on the way out.
"""
from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol
from urllib.parse import urlsplit

import httpx
from pydantic import BaseModel, ConfigDict, Field

from portal.errors import PlaybackAttachError

if TYPE_CHECKING:
    from portal.services.http_client import HttpClientService

logger = logging.getLogger(__name__)


class LoaderKind(str, enum.Enum):
    HLS = "hls"
    FLV = "flv"


class SessionState(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    ATTACHED = "attached"
    ERROR = "error"


class WebLiveSource(BaseModel):
    """A selectable live room as listed by ``/api/web-live/sources``."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    key: str
    name: str = ""
    platform: str = ""
    room_id: str = Field(default="", alias="roomId")


# ----------------------------------------------------------------------
# Loaders
# ----------------------------------------------------------------------

class StreamLoader:
    """Feeds one stream into a surface on behalf of the player.

    Subclasses set ``kind`` and the transport settings returned by
    ``options()``.
    """

    kind: LoaderKind

    def __init__(self):
        self.surface: Any = None
        self.url: Optional[str] = None

    def options(self) -> dict:
        return {}

    @property
    def attached(self) -> bool:
        return self.surface is not None

    def attach(self, surface: Any, url: str) -> None:
        self.surface = surface
        self.url = url
        logger.debug(f"{self.kind.value} loader attached to {url}")

    def detach(self) -> None:
        self.surface = None


class HlsLoader(StreamLoader):
    kind = LoaderKind.HLS

    def options(self) -> dict:
        return {"debug": False, "enable_worker": True, "low_latency_mode": True}


class FlvLoader(StreamLoader):
    kind = LoaderKind.FLV

    def options(self) -> dict:
        return {"type": "flv", "is_live": True}


LOADERS: dict[LoaderKind, type[StreamLoader]] = {
    LoaderKind.HLS: HlsLoader,
    LoaderKind.FLV: FlvLoader,
}


def select_loader(url: str) -> LoaderKind:
    """``.m3u8`` paths are HLS; anything else is treated as a live FLV stream."""
    path = urlsplit(url).path
    if path.lower().endswith(".m3u8"):
        return LoaderKind.HLS
    return LoaderKind.FLV


class Player(Protocol):
    def destroy(self) -> None: ...


# (surface, url, loader, autoplay=..., live=...) -> Player.  The factory
# configures the transport from ``loader.options()`` and the player hands its
# media element to ``loader.attach()`` when it starts.
PlayerFactory = Callable[..., Player]


# ----------------------------------------------------------------------
# Stream resolution
# ----------------------------------------------------------------------

class StreamResolver:
    """Client for the portal's web-live endpoints."""

    def __init__(self, http_client: "HttpClientService", base_url: str):
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")

    async def list_sources(self) -> list[WebLiveSource]:
        client = await self.http_client.get_client()
        response = await client.get(f"{self.base_url}/api/web-live/sources")
        response.raise_for_status()
        return [WebLiveSource.model_validate(s) for s in response.json()]

    async def resolve(self, source: WebLiveSource) -> str:
        """Return a playable URL for *source* or raise :class:`PlaybackAttachError`."""
        try:
            client = await self.http_client.get_client()
            response = await client.get(
                f"{self.base_url}/api/web-live/stream",
                params={"platform": source.platform, "roomId": source.room_id},
            )
        except httpx.HTTPError as e:
            raise PlaybackAttachError(f"stream lookup failed: {e}") from e
        if not response.is_success:
            raise PlaybackAttachError(f"stream lookup failed: HTTP {response.status_code}")
        try:
            url = response.json().get("url")
        except (ValueError, AttributeError):
            url = None
        if not isinstance(url, str) or not url:
            raise PlaybackAttachError("stream lookup returned no url")
        return url


# ----------------------------------------------------------------------
# Session
# ----------------------------------------------------------------------

class PlaybackSession:
    """State machine for one playback surface: idle -> loading -> attached | error."""

    def __init__(self, surface: Any, resolver: StreamResolver, player_factory: PlayerFactory):
        self.surface = surface
        self.resolver = resolver
        self.player_factory = player_factory

        self.state = SessionState.IDLE
        self.current_source: Optional[WebLiveSource] = None
        self.stream_url: Optional[str] = None
        self.player: Optional[Player] = None
        self.loader: Optional[StreamLoader] = None
        self.error: Optional[str] = None
        self._generation = 0

    @property
    def loader_kind(self) -> Optional[LoaderKind]:
        return self.loader.kind if self.loader is not None else None

    async def __aenter__(self) -> "PlaybackSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def fetch_sources(self) -> list[WebLiveSource]:
        return await self.resolver.list_sources()

    async def select_source(self, source: WebLiveSource) -> None:
        """Switch to *source*.

        The in-flight lookup of an earlier selection is not cancelled;
        its result is dropped if a newer selection was made meanwhile.
        """
        self._generation += 1
        generation = self._generation
        self.current_source = source
        self.teardown()
        self.state = SessionState.LOADING
        self.error = None

        try:
            url = await self.resolver.resolve(source)
        except PlaybackAttachError as e:
            if generation != self._generation:
                return
            logger.error(f"Cannot play '{source.key}': {e.message}")
            self.state = SessionState.ERROR
            self.error = e.message
            return

        if generation != self._generation:
            logger.debug(f"Dropping stale stream url for '{source.key}'")
            return
        try:
            self.attach(url)
        except PlaybackAttachError as e:
            logger.error(f"Cannot play '{source.key}': {e.message}")

    def attach(self, url: str) -> None:
        """Build a player for *url* on the surface, replacing any current one."""
        self.teardown()
        loader = LOADERS[select_loader(url)]()
        try:
            player = self.player_factory(self.surface, url, loader, autoplay=True, live=True)
        except Exception as e:
            loader.detach()
            self.state = SessionState.ERROR
            self.error = f"player construction failed: {e}"
            raise PlaybackAttachError(self.error) from e
        self.player = player
        self.loader = loader
        self.stream_url = url
        self.state = SessionState.ATTACHED
        logger.info(f"Playing {url} with {loader.kind.value} loader")

    def teardown(self) -> None:
        """Destroy the active player, if any, before returning."""
        if self.player is None:
            return
        player, loader = self.player, self.loader
        self.player = None
        self.loader = None
        self.stream_url = None
        try:
            player.destroy()
        finally:
            if loader is not None:
                loader.detach()
        logger.debug("Player destroyed")

    def close(self) -> None:
        self.teardown()
        self._generation += 1
        self.state = SessionState.IDLE
