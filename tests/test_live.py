"""Tests for M3U parsing and the live playlist cache."""

import asyncio
import json

import httpx
import pytest

from portal.services.config_service import ConfigService
from portal.services.http_client import HttpClientService
from portal.services.live_service import LiveService, parse_m3u

PLAYLIST = """#EXTM3U url-tvg="http://epg.example.com/a.xml,http://epg.example.com/b.xml"
#EXTINF:-1 tvg-id="cctv1" tvg-name="CCTV1" tvg-logo="http://logo/1.png" group-title="News",CCTV-1 综合
http://live.example.com/cctv1.m3u8

#EXTINF:-1 tvg-id="cctv2",CCTV-2
#EXTVLCOPT:http-user-agent=Mozilla
http://live.example.com/cctv2.flv
"""


class TestParseM3u:

    def test_channels_and_epg(self):
        parsed = parse_m3u(PLAYLIST)
        assert parsed.epg_url == "http://epg.example.com/a.xml"
        assert [c.name for c in parsed.channels] == ["CCTV-1 综合", "CCTV-2"]
        first = parsed.channels[0]
        assert first.tvg_id == "cctv1"
        assert first.logo == "http://logo/1.png"
        assert first.group == "News"
        assert parsed.channels[1].url == "http://live.example.com/cctv2.flv"

    def test_x_tvg_url_header(self):
        parsed = parse_m3u('#EXTM3U x-tvg-url="http://epg/x.xml"\n')
        assert parsed.epg_url == "http://epg/x.xml"
        assert parsed.channels == []

    def test_plain_playlist_without_header(self):
        parsed = parse_m3u("http://orphan/stream\n")
        assert parsed.epg_url == ""
        assert parsed.channels == []


class TestLiveService:

    def _service(self, tmp_path, handler):
        (tmp_path / "config.json").write_text(json.dumps({
            "live_config": [{"key": "tv", "name": "TV", "url": "http://lists/tv.m3u", "ua": "okhttp/3.15"}],
        }))
        cfg = ConfigService(str(tmp_path))
        cfg.load()
        return LiveService(cfg, HttpClientService(transport=httpx.MockTransport(handler)))

    def test_fetches_once_and_caches(self, tmp_path):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, text=PLAYLIST)

        service = self._service(tmp_path, handler)

        async def run():
            first = await service.get_cached_live_channels("tv")
            second = await service.get_cached_live_channels("tv")
            return first, second

        first, second = asyncio.run(run())
        assert first is second
        assert len(requests) == 1
        assert requests[0].headers["user-agent"] == "okhttp/3.15"
        assert first.epg_url == "http://epg.example.com/a.xml"

    def test_unknown_key(self, tmp_path):
        service = self._service(tmp_path, lambda request: httpx.Response(200, text=PLAYLIST))
        assert asyncio.run(service.get_cached_live_channels("nope")) is None

    def test_fetch_error_propagates(self, tmp_path):
        service = self._service(tmp_path, lambda request: httpx.Response(404))
        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(service.get_cached_live_channels("tv"))
