"""
Status and documentation web server for Herald.

A small aiohttp application that republishes the bot's status on a templated
index page and as JSON, and renders Markdown files from a docs directory.
"""

from __future__ import annotations

import datetime
import html
import json
import logging
import math
import platform
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import aiohttp
import discord
import markdown2
from aiohttp import web

logger = logging.getLogger("herald.web")

DEFAULT_DOC = "intro"

# Doc names map straight onto file names, so only allow plain names.
_DOC_NAME = re.compile(r"^[a-z0-9][a-z0-9_\-]*$")

_MARKDOWN_EXTRAS = [
    "fenced-code-blocks",
    "tables",
    "strike",
    "task_list",
    "header-ids",
    "footnotes",
    "cuddled-lists",
]

DOCS_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <title>{title} - Docs</title>
    <link rel='stylesheet' href='https://cdnjs.cloudflare.com/ajax/libs/github-markdown-css/5.2.0/github-markdown.min.css'>
    <style>
        body {{ display: flex; margin: 0; font-family: sans-serif; height: 100vh; }}
        .sidebar {{ width: 250px; background: #f6f8fa; border-right: 1px solid #d0d7de; padding: 20px; overflow-y: auto; }}
        .sidebar h3 {{ font-size: 1.2em; margin-bottom: 15px; }}
        .sidebar a {{ display: block; padding: 5px 10px; color: #0969da; text-decoration: none; border-radius: 6px; }}
        .sidebar a:hover {{ background: #ebf0f4; }}
        .sidebar a.active {{ background: #0969da; color: white; font-weight: bold; }}
        .content {{ flex: 1; padding: 45px; overflow-y: auto; }}
    </style>
</head>
<body>
    <div class='sidebar'>
        <h3>Documentation</h3>
        {sidebar}
        <hr>
        <a href='/'>Home Page</a>
    </div>
    <div class='content markdown-body'>
        {content}
    </div>
</body>
</html>"""


@dataclass
class BotStatus:
    """Point-in-time view of the bot used by the web pages."""
    name: str
    bot_id: int
    avatar_url: str
    status: str
    latency_ms: int
    guild_count: int


StatusProvider = Callable[[], BotStatus]


def status_from_client(client: discord.Client) -> BotStatus:
    """Build a ``BotStatus`` from a live discord.py client."""
    user = client.user
    if user is None:
        return BotStatus(
            name="(not logged in)",
            bot_id=0,
            avatar_url="",
            status="Disconnected",
            latency_ms=0,
            guild_count=0,
        )

    if client.is_closed():
        state = "Disconnected"
    elif client.is_ready():
        state = "Connected"
    else:
        state = "Connecting"

    latency = client.latency
    # latency is inf/nan until the first heartbeat
    latency_ms = int(latency * 1000) if math.isfinite(latency) else 0

    return BotStatus(
        name=user.name,
        bot_id=user.id,
        avatar_url=user.display_avatar.with_size(256).url,
        status=state,
        latency_ms=latency_ms,
        guild_count=len(client.guilds),
    )


class StatusWebServer:
    """
    Serves the index page, the status API and the Markdown docs.

    Args:
        status_provider: Callable returning the current ``BotStatus``.
        index_path: HTML template for ``/``.
        docs_dir: Directory of ``*.md`` documentation pages.
    """

    def __init__(
        self,
        status_provider: StatusProvider,
        index_path: str | Path = "index.html",
        docs_dir: str | Path = "docs",
    ):
        self.status_provider = status_provider
        self.index_path = Path(index_path)
        self.docs_dir = Path(docs_dir)
        self._runner: Optional[web.AppRunner] = None

    def create_app(self) -> web.Application:
        """Create the aiohttp application and register all routes."""
        app = web.Application(middlewares=[self._error_middleware])
        app.router.add_get("/", self.handle_index)
        app.router.add_get("/api", self.handle_api)
        app.router.add_get("/docs", self.handle_docs_root)
        app.router.add_get("/docs/", self.handle_docs_root)
        app.router.add_get("/docs/{name:.*}", self.handle_doc)
        app.router.add_get("/{tail:.*}", self.handle_fallback)
        return app

    async def start(self, host: str = "0.0.0.0", port: int = 8080) -> None:
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, host, port)
        await site.start()
        logger.info(f"Webserver is ready, running at http://{host}:{port}")

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Webserver stopped")

    @web.middleware
    async def _error_middleware(self, request: web.Request, handler) -> web.StreamResponse:
        try:
            return await handler(request)
        except web.HTTPException:
            raise
        except Exception as e:
            logger.exception(f"Error serving {request.path}: {e}")
            return web.Response(
                text="<h1>500 - Internal Server Error</h1>",
                status=500,
                content_type="text/html",
            )

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    async def handle_index(self, request: web.Request) -> web.Response:
        if not self.index_path.is_file():
            return web.Response(text="<h1>index.html missing</h1>", content_type="text/html")

        page = self.index_path.read_text(encoding="utf-8")
        status = self.status_provider()
        replacements = {
            "{{AvatarUrl}}": status.avatar_url,
            "{{BotName}}": html.escape(status.name),
            "{{BotId}}": str(status.bot_id),
            "{{Status}}": status.status,
            "{{Latency}}": str(status.latency_ms),
            "{{GuildCount}}": str(status.guild_count),
        }
        for placeholder, value in replacements.items():
            page = page.replace(placeholder, value)
        return web.Response(text=page, content_type="text/html")

    async def handle_api(self, request: web.Request) -> web.Response:
        status = self.status_provider()
        payload = {
            "discordbot": {
                "discordbot_name": status.name,
                "discordbot_id": str(status.bot_id),
                "discordbot_guilds": str(status.guild_count),
                "discordbot_latency": status.latency_ms,
                "discordbot_status": status.status,
            },
            "system": {
                "environment": {
                    "python_version": platform.python_version(),
                    "discordpy_version": discord.__version__,
                    "aiohttp_version": aiohttp.__version__,
                },
                "osplatform": platform.platform(),
                "servertime": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            },
        }
        return web.json_response(payload, dumps=_pretty_dumps)

    async def handle_docs_root(self, request: web.Request) -> web.Response:
        raise web.HTTPFound(f"/docs/{DEFAULT_DOC}")

    async def handle_doc(self, request: web.Request) -> web.Response:
        doc_name = request.match_info["name"].strip("/").lower()
        if not doc_name:
            raise web.HTTPFound(f"/docs/{DEFAULT_DOC}")

        doc_path = self._find_doc(doc_name)
        if doc_path is None:
            return self._not_found()

        markdown_text = doc_path.read_text(encoding="utf-8")
        body = markdown2.markdown(markdown_text, extras=_MARKDOWN_EXTRAS)
        page = DOCS_TEMPLATE.format(
            title=html.escape(doc_path.stem),
            sidebar=self._render_sidebar(doc_name),
            content=body,
        )
        return web.Response(text=page, content_type="text/html")

    async def handle_fallback(self, request: web.Request) -> web.Response:
        if self.index_path.is_file():
            page = self.index_path.read_text(encoding="utf-8")
        else:
            page = "<h1>404</h1>"
        return web.Response(text=page, content_type="text/html")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def list_docs(self) -> list[str]:
        """Names of all available doc pages, sorted."""
        if not self.docs_dir.is_dir():
            return []
        return sorted(p.stem for p in self.docs_dir.glob("*.md") if p.is_file())

    def _find_doc(self, doc_name: str) -> Optional[Path]:
        if not _DOC_NAME.match(doc_name):
            return None
        for name in self.list_docs():
            if name.lower() == doc_name:
                return self.docs_dir / f"{name}.md"
        return None

    def _render_sidebar(self, active: str) -> str:
        links = []
        for name in self.list_docs():
            css_class = "active" if name.lower() == active else ""
            safe = html.escape(name, quote=True)
            links.append(f"<a class='{css_class}' href='/docs/{safe}'>{safe}</a>")
        return "\n        ".join(links)

    @staticmethod
    def _not_found() -> web.Response:
        return web.Response(
            text="<h1>404 - Not Found</h1>",
            status=404,
            content_type="text/html",
        )


def _pretty_dumps(obj) -> str:
    return json.dumps(obj, indent=2)
