"""Tests for the status/docs web server."""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio
from aiohttp import test_utils

from webserver import BotStatus, StatusWebServer

INDEX_TEMPLATE = (
    "<img src='{{AvatarUrl}}'><h1>{{BotName}}</h1><p>{{BotId}} {{Status}} "
    "{{Latency}}ms {{GuildCount}} guilds</p>"
)


def fake_status() -> BotStatus:
    return BotStatus(
        name="Herald",
        bot_id=123456789012345678,
        avatar_url="https://cdn.example/avatar.png",
        status="Connected",
        latency_ms=42,
        guild_count=3,
    )


@pytest.fixture
def site(tmp_path: Path) -> Path:
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "intro.md").write_text("# Welcome\n\nSome *docs*.\n", encoding="utf-8")
    (docs / "Commands.md").write_text("| a | b |\n|---|---|\n| 1 | 2 |\n", encoding="utf-8")
    (tmp_path / "index.html").write_text(INDEX_TEMPLATE, encoding="utf-8")
    return tmp_path


@pytest_asyncio.fixture
async def client(site: Path):
    server = StatusWebServer(
        status_provider=fake_status,
        index_path=site / "index.html",
        docs_dir=site / "docs",
    )
    async with test_utils.TestClient(test_utils.TestServer(server.create_app())) as test_client:
        yield test_client


@pytest.mark.asyncio
async def test_index_substitutes_status(client: test_utils.TestClient) -> None:
    resp = await client.get("/")
    text = await resp.text()

    assert resp.status == 200
    assert resp.content_type == "text/html"
    assert "<h1>Herald</h1>" in text
    assert "123456789012345678 Connected 42ms 3 guilds" in text
    assert "https://cdn.example/avatar.png" in text
    assert "{{" not in text


@pytest.mark.asyncio
async def test_api_reports_bot_and_system(client: test_utils.TestClient) -> None:
    resp = await client.get("/api")
    payload = await resp.json()

    assert resp.status == 200
    assert payload["discordbot"] == {
        "discordbot_name": "Herald",
        "discordbot_id": "123456789012345678",
        "discordbot_guilds": "3",
        "discordbot_latency": 42,
        "discordbot_status": "Connected",
    }
    assert set(payload["system"]) == {"environment", "osplatform", "servertime"}
    assert "discordpy_version" in payload["system"]["environment"]


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/docs", "/docs/"])
async def test_docs_root_redirects_to_intro(client: test_utils.TestClient, path: str) -> None:
    resp = await client.get(path, allow_redirects=False)

    assert resp.status == 302
    assert resp.headers["Location"] == "/docs/intro"


@pytest.mark.asyncio
async def test_doc_page_renders_markdown_with_sidebar(client: test_utils.TestClient) -> None:
    resp = await client.get("/docs/intro")
    text = await resp.text()

    assert resp.status == 200
    assert "<h1" in text and "Welcome" in text
    assert "<em>docs</em>" in text
    assert "<a class='active' href='/docs/intro'>intro</a>" in text
    assert "<a class='' href='/docs/Commands'>Commands</a>" in text


@pytest.mark.asyncio
async def test_doc_lookup_is_case_insensitive(client: test_utils.TestClient) -> None:
    resp = await client.get("/docs/COMMANDS")
    text = await resp.text()

    assert resp.status == 200
    assert "<table>" in text
    assert "<a class='active' href='/docs/Commands'>Commands</a>" in text


@pytest.mark.asyncio
async def test_unknown_doc_is_404(client: test_utils.TestClient) -> None:
    resp = await client.get("/docs/missing")

    assert resp.status == 404
    assert "404" in await resp.text()


@pytest.mark.asyncio
async def test_other_paths_fall_back_to_index(client: test_utils.TestClient) -> None:
    resp = await client.get("/somewhere/else")

    assert resp.status == 200
    assert await resp.text() == INDEX_TEMPLATE


@pytest.mark.asyncio
async def test_missing_index(tmp_path: Path) -> None:
    server = StatusWebServer(fake_status, tmp_path / "index.html", tmp_path / "docs")
    async with test_utils.TestClient(test_utils.TestServer(server.create_app())) as test_client:
        index = await test_client.get("/")
        other = await test_client.get("/nope")

        assert "index.html missing" in await index.text()
        assert await other.text() == "<h1>404</h1>"


def test_doc_names_cannot_escape_docs_dir(site: Path) -> None:
    (site / "secret.md").write_text("secret", encoding="utf-8")
    server = StatusWebServer(fake_status, site / "index.html", site / "docs")

    assert server._find_doc("../secret") is None
    assert server._find_doc("intro/../../secret") is None
    assert server._find_doc("intro") == site / "docs" / "intro.md"


def test_list_docs_without_directory(tmp_path: Path) -> None:
    server = StatusWebServer(fake_status, tmp_path / "index.html", tmp_path / "nope")
    assert server.list_docs() == []
