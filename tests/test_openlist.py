"""Tests for OpenList credential checks and config saves."""

import asyncio
import json

import httpx
import pytest

from portal.errors import AuthFailure, PersistError, ValidationError
from portal.services.config_service import ConfigService
from portal.services.http_client import HttpClientService
from portal.services.openlist_client import OpenListClient
from portal.services.openlist_service import OpenListService, parse_scan_interval


class RecordingClient:
    """OpenListClient stand-in that records calls and answers with a fixed verdict."""

    def __init__(self, ok: bool = True, message: str = "invalid password"):
        self.ok = ok
        self.message = message
        self.calls = []

    async def validate(self, url, username, password):
        self.calls.append((url, username, password))
        if not self.ok:
            raise AuthFailure(self.message)


@pytest.fixture()
def cfg(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({
        "openlist_config": {"enabled": False, "last_refresh_time": "2024-01-01", "resource_count": 42},
    }))
    service = ConfigService(str(tmp_path))
    service.load()
    return service


def _enable(**extra):
    data = {"Enabled": True, "URL": "http://ol.example.com", "Username": "alice", "Password": "pw"}
    data.update(extra)
    return data


class TestParseScanInterval:

    def test_numeric_strings(self):
        assert parse_scan_interval("90") == 90
        assert parse_scan_interval(120) == 120

    def test_garbage_defaults_to_zero(self):
        assert parse_scan_interval("soon") == 0
        assert parse_scan_interval(None) == 0
        assert parse_scan_interval("") == 0


class TestOpenListService:

    def test_disable_forces_interval_and_paths(self, cfg):
        client = RecordingClient()
        service = OpenListService(cfg, client)
        saved = asyncio.run(service.save({"Enabled": False, "ScanInterval": "15", "RootPath": "", "URL": "http://x"}))

        assert client.calls == []
        assert saved.enabled is False
        assert saved.scan_interval == 0
        assert saved.root_path == "/"
        assert saved.offline_download_path == "/"
        assert saved.url == "http://x"
        assert saved.last_refresh_time == "2024-01-01"
        assert saved.resource_count == 42
        assert cfg.get_openlist_config() == saved

    @pytest.mark.parametrize("interval", ["1", "30", "59"])
    def test_small_interval_rejected_before_login(self, cfg, interval):
        client = RecordingClient()
        before = cfg.get_openlist_config()
        with pytest.raises(ValidationError, match="interval too small"):
            asyncio.run(OpenListService(cfg, client).save(_enable(ScanInterval=interval)))
        assert client.calls == []
        assert cfg.get_openlist_config() == before

    @pytest.mark.parametrize("missing", ["URL", "Username", "Password"])
    def test_missing_fields(self, cfg, missing):
        data = _enable()
        data[missing] = ""
        with pytest.raises(ValidationError, match="missing required fields"):
            asyncio.run(OpenListService(cfg, RecordingClient()).save(data))

    def test_auth_failure_is_not_persisted(self, cfg):
        before = cfg.get_openlist_config()
        with pytest.raises(AuthFailure, match="credential check failed: invalid password"):
            asyncio.run(OpenListService(cfg, RecordingClient(ok=False)).save(_enable()))
        assert cfg.get_openlist_config() == before

    def test_enable_persists_after_login(self, cfg):
        client = RecordingClient()
        saved = asyncio.run(OpenListService(cfg, client).save(_enable(ScanInterval="60", RootPath="/media")))

        assert client.calls == [("http://ol.example.com", "alice", "pw")]
        assert saved.enabled is True
        assert saved.scan_interval == 60
        assert saved.root_path == "/media"
        assert saved.last_refresh_time == "2024-01-01"
        assert saved.resource_count == 42

        reloaded = ConfigService(cfg.data_dir)
        reloaded.load()
        assert reloaded.get_openlist_config() == saved

    def test_snake_case_payload(self, cfg):
        saved = asyncio.run(OpenListService(cfg, RecordingClient()).save({
            "enabled": True, "url": "http://ol", "username": "u", "password": "p", "scan_interval": "0",
        }))
        assert saved.enabled is True
        assert saved.scan_interval == 0

    def test_persist_error_leaves_config_untouched(self, cfg, monkeypatch):
        before = cfg.get_openlist_config()
        monkeypatch.setattr(cfg, "config_file", "/proc/definitely/not/writable/config.json")
        with pytest.raises(PersistError):
            asyncio.run(OpenListService(cfg, RecordingClient()).save({"Enabled": False}))
        assert cfg.get_openlist_config() == before


class TestConfigPreservation:

    def test_malformed_site_does_not_wipe_record(self, tmp_path):
        broken_site = {"name": "No key", "api": "http://nokey/api"}
        (tmp_path / "config.json").write_text(json.dumps({
            "api_sites": [broken_site, {"key": "alpha", "name": "Alpha", "api": "http://alpha/api"}],
            "live_config": [{"key": "tv", "name": "TV", "url": "http://lists/tv.m3u"}],
            "openlist_config": {"enabled": False, "last_refresh_time": "2024-01-01", "resource_count": 42},
            "theme": "dark",
        }))
        cfg = ConfigService(str(tmp_path))
        cfg.load()
        assert [s.key for s in cfg.get_api_sites()] == ["alpha"]

        saved = asyncio.run(OpenListService(cfg, RecordingClient()).save({"Enabled": False}))
        assert saved.last_refresh_time == "2024-01-01"
        assert saved.resource_count == 42

        stored = json.loads((tmp_path / "config.json").read_text())
        assert stored["api_sites"][0] == broken_site
        assert [s["key"] for s in stored["api_sites"][1:]] == ["alpha"]
        assert [l["key"] for l in stored["live_config"]] == ["tv"]
        assert stored["theme"] == "dark"
        assert stored["openlist_config"]["last_refresh_time"] == "2024-01-01"
        assert stored["openlist_config"]["resource_count"] == 42

    def test_unreadable_file_is_not_overwritten(self, tmp_path):
        (tmp_path / "config.json").write_text("{not json")
        cfg = ConfigService(str(tmp_path))
        cfg.load()
        with pytest.raises(PersistError, match="unreadable"):
            asyncio.run(OpenListService(cfg, RecordingClient()).save({"Enabled": False}))
        assert (tmp_path / "config.json").read_text() == "{not json"

    def test_malformed_openlist_section_blocks_save(self, tmp_path):
        (tmp_path / "config.json").write_text(json.dumps({
            "openlist_config": {"enabled": False, "resource_count": "lots"},
        }))
        cfg = ConfigService(str(tmp_path))
        cfg.load()
        with pytest.raises(PersistError):
            asyncio.run(OpenListService(cfg, RecordingClient()).save({"Enabled": False}))
        stored = json.loads((tmp_path / "config.json").read_text())
        assert stored["openlist_config"]["resource_count"] == "lots"


class TestOpenListClient:

    def _client(self, handler):
        return OpenListClient(HttpClientService(transport=httpx.MockTransport(handler)))

    def test_login_returns_token(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"code": 200, "message": "success", "data": {"token": "abc"}})

        token = asyncio.run(self._client(handler).login("http://ol.example.com/", "alice", "pw"))
        assert token == "abc"
        assert seen["url"] == "http://ol.example.com/api/auth/login"
        assert seen["body"] == {"username": "alice", "password": "pw"}

    def test_rejected_credentials_carry_remote_message(self):
        def handler(request):
            return httpx.Response(200, json={"code": 400, "message": "password is incorrect", "data": None})

        with pytest.raises(AuthFailure, match="password is incorrect"):
            asyncio.run(self._client(handler).validate("http://ol", "alice", "bad"))

    def test_non_json_response(self):
        def handler(request):
            return httpx.Response(502, text="<html>bad gateway</html>")

        with pytest.raises(AuthFailure, match="HTTP 502"):
            asyncio.run(self._client(handler).validate("http://ol", "alice", "pw"))

    def test_unreachable_server(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(AuthFailure, match="cannot reach OpenList server"):
            asyncio.run(self._client(handler).validate("http://ol", "alice", "pw"))
