#!/usr/bin/env python3
"""
Tests for the resource_manager.py functionality.

These tests verify the proper operation of:
- Stylesheet and template loading from disk
- Caching of stylesheets and templates
- HTTP data requests and response decoding
- Error wrapping
- Session lifetime across event loops
"""

import asyncio
import json
import sys
from pathlib import Path
from unittest import mock

import aiohttp
import pytest

# Add parent directory to sys.path to allow importing the framework
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from module_lifecycle import (
    BaseModule, LogLevel, ResourceManager, ResourceError,
    get_default_resource_manager, set_default_resource_manager,
    close_default_resource_manager
)

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Test Classes & Fixtures
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

class FakeResponse:
    """Stands in for an aiohttp response."""

    def __init__(self, body, content_type="application/json", status=200):
        self.body = body
        self.content_type = content_type
        self.status = status

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def raise_for_status(self):
        if self.status >= 400:
            raise aiohttp.ClientError(f"HTTP {self.status}")

    async def json(self):
        return self.body

    async def text(self):
        return self.body if isinstance(self.body, str) else json.dumps(self.body)


class FakeSession:
    """Stands in for an aiohttp client session."""

    def __init__(self, responses):
        self.responses = responses
        self.requests = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        return self.responses[url]

    async def close(self):
        self.closed = True

    def detach(self):
        self.closed = True


@pytest.fixture
def assets(tmp_path):
    """Directory with a template and two stylesheets."""
    (tmp_path / "panel.html").write_text("<div>{title}</div>", encoding="utf-8")
    (tmp_path / "base.css").write_text("body {}", encoding="utf-8")
    (tmp_path / "panel.css").write_text(".panel {}", encoding="utf-8")
    return tmp_path

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Test Cases
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

class TestLocalResources:
    """Test cases for resources read from disk."""

    @pytest.mark.asyncio
    async def test_load_template_is_cached(self, assets):
        manager = ResourceManager(base_path=assets)

        assert await manager.load_template("panel.html") == "<div>{title}</div>"

        (assets / "panel.html").write_text("changed", encoding="utf-8")
        assert await manager.load_template("panel.html") == "<div>{title}</div>"

        manager.clear_cache()
        assert await manager.load_template("panel.html") == "changed"

    @pytest.mark.asyncio
    async def test_load_css(self, assets):
        manager = ResourceManager(base_path=assets)

        assert await manager.load_css("base.css") == ["body {}"]
        assert await manager.load_css(["panel.css", "base.css", "panel.css"]) == [
            ".panel {}", "body {}", ".panel {}"
        ]

    @pytest.mark.asyncio
    async def test_missing_file(self, assets):
        manager = ResourceManager(base_path=assets)

        with pytest.raises(ResourceError):
            await manager.load_template("missing.html")

    @pytest.mark.asyncio
    async def test_module_loads_template_in_on_load(self, assets):
        class Panel(BaseModule):
            async def on_load(self, options=None):
                template = await self.get_template("panel.html")
                self.html = template.format(**self.transform_data(options))

        module = Panel(
            dependencies={"resource_manager": ResourceManager(base_path=assets)},
            log_level=LogLevel.ERROR
        )
        await module.load({"title": "Hello"})

        assert module.loaded
        assert module.html == "<div>Hello</div>"


class TestRemoteResources:
    """Test cases for resources requested over HTTP."""

    @pytest.mark.asyncio
    async def test_fetch_json(self):
        session = FakeSession({"https://api.test/items": FakeResponse({"items": [1, 2]})})
        manager = ResourceManager(session=session)

        data = await manager.fetch_data(
            "https://api.test/items",
            {"method": "post", "json": {"q": 1}, "headers": {"X-Test": "1"}}
        )

        assert data == {"items": [1, 2]}
        assert session.requests == [
            ("POST", "https://api.test/items", {"json": {"q": 1}, "headers": {"X-Test": "1"}})
        ]

    @pytest.mark.asyncio
    async def test_fetch_text(self):
        session = FakeSession({"https://api.test/plain": FakeResponse("ok", content_type="text/plain")})
        manager = ResourceManager(session=session)

        assert await manager.fetch_data("https://api.test/plain") == "ok"
        assert session.requests[0][0] == "GET"

    @pytest.mark.asyncio
    async def test_fetch_errors(self):
        session = FakeSession({"https://api.test/fail": FakeResponse({}, status=500)})
        manager = ResourceManager(session=session)

        with pytest.raises(ResourceError):
            await manager.fetch_data("https://api.test/fail")
        with pytest.raises(ResourceError):
            await manager.fetch_data("https://api.test/fail", {"timeout": 5})

    @pytest.mark.asyncio
    async def test_remote_template(self):
        session = FakeSession({
            "https://cdn.test/panel.html": FakeResponse("<p></p>", content_type="text/html")
        })
        manager = ResourceManager(session=session)

        assert await manager.load_template("https://cdn.test/panel.html") == "<p></p>"
        assert await manager.load_template("https://cdn.test/panel.html") == "<p></p>"
        assert len(session.requests) == 1

    @pytest.mark.asyncio
    async def test_injected_session_is_not_closed(self):
        session = FakeSession({})
        manager = ResourceManager(session=session)

        await manager.close()

        assert not session.closed


class TestDefaultResourceManager:
    """Test cases for the shared resource manager."""

    def test_shared_instance(self):
        replacement = ResourceManager()
        try:
            set_default_resource_manager(replacement)
            assert get_default_resource_manager() is replacement
            assert BaseModule(log_level=LogLevel.ERROR).resource_manager is replacement

            set_default_resource_manager(None)
            created = get_default_resource_manager()
            assert isinstance(created, ResourceManager)
            assert get_default_resource_manager() is created
        finally:
            set_default_resource_manager(None)

    @pytest.mark.asyncio
    async def test_close_default_resource_manager(self):
        try:
            manager = get_default_resource_manager()
            session = FakeSession({})
            manager._session = session

            await close_default_resource_manager()

            assert session.closed
            assert get_default_resource_manager() is not manager
            await close_default_resource_manager()
        finally:
            set_default_resource_manager(None)


class TestSessionLifetime:
    """Test cases for sessions created by the manager."""

    def _session_factory(self, created):
        def factory(**kwargs):
            session = FakeSession({
                "https://api.test/a": FakeResponse({"page": "a"}),
                "https://api.test/b": FakeResponse({"page": "b"}),
            })
            created.append(session)
            return session
        return factory

    def test_new_session_per_event_loop(self):
        created = []
        manager = ResourceManager()

        with mock.patch.object(aiohttp, "ClientSession", side_effect=self._session_factory(created)):
            first = asyncio.run(manager.fetch_data("https://api.test/a"))
            second = asyncio.run(manager.fetch_data("https://api.test/b"))

        assert first == {"page": "a"}
        assert second == {"page": "b"}
        assert len(created) == 2
        assert created[0].closed
        assert [request[1] for request in created[1].requests] == ["https://api.test/b"]

    def test_session_reused_within_a_loop(self):
        created = []
        manager = ResourceManager()

        async def fetch_both():
            await manager.fetch_data("https://api.test/a")
            await manager.fetch_data("https://api.test/b")
            await manager.close()

        with mock.patch.object(aiohttp, "ClientSession", side_effect=self._session_factory(created)):
            asyncio.run(fetch_both())

        assert len(created) == 1
        assert len(created[0].requests) == 2
        assert created[0].closed

    def test_closed_session_is_replaced(self):
        created = []
        manager = ResourceManager()

        async def fetch_after_close():
            await manager.fetch_data("https://api.test/a")
            created[0].closed = True
            return await manager.fetch_data("https://api.test/b")

        with mock.patch.object(aiohttp, "ClientSession", side_effect=self._session_factory(created)):
            assert asyncio.run(fetch_after_close()) == {"page": "b"}

        assert len(created) == 2
