"""Tests for configuration loading and the command helpers in main.py."""

from __future__ import annotations

import logging
from pathlib import Path
from types import SimpleNamespace

import aiohttp
import discord
import pytest
import yaml
from aiohttp import test_utils, web
from discord import app_commands
from discord.ext import commands

from main import (
    PREFIX_COMMANDS,
    CommandReply,
    HeraldBot,
    check_guild_permissions,
    get_prefix,
    is_valid_webhook_url,
    load_config,
    post_webhook,
    roll_dice,
    setup_commands,
    setup_logging,
    setup_prefix_commands,
    tag_add_reply,
    tag_list_embed,
    tag_purge_reply,
    tag_remove_reply,
    tag_show_reply,
    truncate,
)
from tags import TagPersistenceError, TagService, TagStore, ZERO_WIDTH_SPACE


def write_config(tmp_path: Path, data) -> str:
    path = tmp_path / "config.yml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return str(path)


@pytest.fixture
def tags(tmp_path: Path) -> TagService:
    return TagService(TagStore.load(tmp_path / "settings.json"))


class TestLoadConfig:
    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="config.yml.example"):
            load_config(str(tmp_path / "nope.yml"))

    def test_missing_token(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, {"discord": {"prefix": "!"}})
        with pytest.raises(ValueError, match="token"):
            load_config(path)

    def test_empty_prefix(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, {"discord": {"token": "t", "prefix": ""}})
        with pytest.raises(ValueError, match="prefix"):
            load_config(path)

    def test_bad_port(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, {"discord": {"token": "t"}, "webserver": {"port": 70000}})
        with pytest.raises(ValueError, match="port"):
            load_config(path)

    def test_non_mapping(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, ["just", "a", "list"])
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)

    def test_valid(self, tmp_path: Path) -> None:
        path = write_config(
            tmp_path,
            {"discord": {"token": "abc", "prefix": "?"}, "webserver": {"enabled": True, "port": 9000}},
        )
        config = load_config(path)
        assert config["discord"]["prefix"] == "?"
        assert config["webserver"]["port"] == 9000


def test_setup_logging_writes_to_file(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "herald.log"
    logger = setup_logging({"logging": {"level": "debug", "file": str(log_file)}})
    try:
        logger.info("hello from the test")
        for handler in logger.handlers:
            handler.flush()
        assert logger.level == logging.DEBUG
        assert "hello from the test" in log_file.read_text(encoding="utf-8")
    finally:
        for name in ("herald", "discord"):
            target = logging.getLogger(name)
            for handler in list(target.handlers):
                target.removeHandler(handler)
                handler.close()


class TestPrefix:
    def make(self, content: str, prefix: str = "!"):
        bot = SimpleNamespace(user=SimpleNamespace(id=99), config={"discord": {"prefix": prefix}})
        return bot, SimpleNamespace(content=content)

    def test_mention_prefixes_always_present(self) -> None:
        bot, message = self.make("hello")
        assert get_prefix(bot, message) == ["<@99> ", "<@!99> "]

    def test_prefix_matches_case_insensitively(self) -> None:
        bot, message = self.make("HB!ping", prefix="hb!")
        assert get_prefix(bot, message)[-1] == "HB!"

    def test_exact_prefix(self) -> None:
        bot, message = self.make("!tag rules")
        assert "!" in get_prefix(bot, message)


class TestWebhookHelpers:
    @pytest.mark.parametrize(
        ("url", "valid"),
        [
            ("https://discord.com/api/webhooks/1/abc", True),
            ("http://localhost:8080/hook", True),
            ("discord.com/api/webhooks/1/abc", False),
            ("ftp://example.com/x", False),
            ("not a url", False),
        ],
    )
    def test_is_valid_webhook_url(self, url: str, valid: bool) -> None:
        assert is_valid_webhook_url(url) is valid

    def test_truncate(self) -> None:
        assert truncate("short") == "short"
        assert truncate("x" * 150) == "x" * 100 + "..."

    @pytest.mark.asyncio
    async def test_post_webhook_success_and_failure(self) -> None:
        received = []

        async def hook(request: web.Request) -> web.Response:
            received.append(await request.json())
            return web.Response(status=204)

        async def broken(request: web.Request) -> web.Response:
            return web.Response(status=400, text="e" * 200)

        app = web.Application()
        app.router.add_post("/hook", hook)
        app.router.add_post("/broken", broken)

        async with test_utils.TestServer(app) as server:
            async with aiohttp.ClientSession() as session:
                ok = await post_webhook(session, str(server.make_url("/hook")), 'say "hi"')
                bad = await post_webhook(session, str(server.make_url("/broken")), "x")

        assert ok.ok is True
        assert received == [{"content": 'say "hi"'}]
        assert bad.ok is False
        assert "**400**" in bad.content
        assert "e" * 100 + "..." in bad.content

    @pytest.mark.asyncio
    async def test_post_webhook_rejects_invalid_url(self) -> None:
        async with aiohttp.ClientSession() as session:
            reply = await post_webhook(session, "nope", "x")
        assert reply == CommandReply("❌ You did not provide a valid webhook url", ok=False)


def test_roll_dice_range() -> None:
    rolls = {roll_dice() for _ in range(500)}
    assert rolls <= set(range(1, 7))
    assert len(rolls) > 1


class TestTagReplies:
    def test_show_found_and_missing(self, tags: TagService) -> None:
        tags.add(42, "rules", "Be nice\\nor else @here", 7)

        found = tag_show_reply(tags, 42, "RULES")
        missing = tag_show_reply(tags, 42, "nope")

        assert found.ok and found.content == f"Be nice\nor else @{ZERO_WIDTH_SPACE}here"
        assert not missing.ok and "`nope` not found" in missing.content

    def test_add_and_duplicate(self, tags: TagService) -> None:
        first = tag_add_reply(tags, 1, "Faq", "x", 7, remove_hint="`/tag remove`")
        second = tag_add_reply(tags, 1, "faq", "y", 7, remove_hint="`/tag remove`")

        assert first == CommandReply("✅ Tag `Faq` added.")
        assert not second.ok and "`/tag remove`" in second.content

    def test_remove(self, tags: TagService) -> None:
        tags.add(1, "old", "x", 7)

        assert tag_remove_reply(tags, 1, "OLD").ok
        assert tag_remove_reply(tags, 1, "old") == CommandReply("❌ Tag not found.", ok=False)

    def test_purge(self, tags: TagService) -> None:
        assert tag_purge_reply(tags, 1, "Guild").ok is False

        tags.add(1, "a", "x", 7)
        reply = tag_purge_reply(tags, 1, "Guild")

        assert reply.ok and "**Guild**" in reply.content
        assert tags.list(1) == []

    def test_unsaved_change_is_reported(
        self,
        tags: TagService,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def failing_save(guilds):
            raise TagPersistenceError("read-only filesystem")

        monkeypatch.setattr(tags.store.persistence, "save", failing_save)

        reply = tag_add_reply(tags, 1, "a", "x", 7, remove_hint="`tagremove`")

        assert reply.ok
        assert "could not be saved" in reply.content

    def test_list_embed(self) -> None:
        assert tag_list_embed("Guild", []) is None

        embed = tag_list_embed("Guild", ["a", "b"])
        assert embed.title == "Tags for Guild (2 tags for this server)"
        assert embed.description == "a, b"


@pytest.fixture
def bot(tmp_path: Path) -> HeraldBot:
    herald = HeraldBot({"discord": {"token": "t", "prefix": "!"}}, TagStore.load(tmp_path / "settings.json"))
    setup_prefix_commands(herald)
    setup_commands(herald)
    return herald


class TestGuildOnlyCommands:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["tag", "taglist", "tagadd", "tagremove", "dataremove"])
    async def test_prefix_tag_commands_reject_dms_first(self, bot: HeraldBot, name: str) -> None:
        ctx = SimpleNamespace(guild=None, author=SimpleNamespace(id=7))

        with pytest.raises(commands.NoPrivateMessage):
            for check in bot.get_command(name).checks:
                await discord.utils.maybe_coroutine(check, ctx)

    @pytest.mark.parametrize(
        ("group", "name"),
        [("tag", "add"), ("tag", "remove"), ("tag", "dataremove"), ("mod", "ban")],
    )
    def test_slash_commands_reject_dms_first(self, bot: HeraldBot, group: str, name: str) -> None:
        command = bot.tree.get_command(group).get_command(name)
        interaction = SimpleNamespace(guild=None, permissions=discord.Permissions.none())

        with pytest.raises(app_commands.NoPrivateMessage):
            command.checks[0](interaction)

    def test_check_guild_permissions(self) -> None:
        guild = SimpleNamespace(id=42)
        without = SimpleNamespace(guild=guild, permissions=discord.Permissions.none())
        with_perm = SimpleNamespace(guild=guild, permissions=discord.Permissions(manage_guild=True))

        with pytest.raises(app_commands.MissingPermissions) as excinfo:
            check_guild_permissions(without, manage_guild=True)
        assert excinfo.value.missing_permissions == ["manage_guild"]
        assert check_guild_permissions(with_perm, manage_guild=True) is True


def test_help_lists_every_prefix_command(bot: HeraldBot) -> None:
    listed = "\n".join(PREFIX_COMMANDS)

    for command in bot.commands:
        assert command.name in listed
        for alias in command.aliases:
            assert f"alias: {alias}" in listed
