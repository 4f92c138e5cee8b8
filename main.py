"""
Herald Discord Bot - Main Entry Point.

A utility Discord bot with info, dice and say commands, a per-server tag
(text snippet) store, and an optional web server that publishes bot status
and renders Markdown documentation.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import random
import sys
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional, Union
from urllib.parse import urlparse

import aiohttp
import discord
import yaml
from discord import app_commands, Interaction
from discord.ext import commands

from tags import (
    TagAlreadyExistsError,
    TagNotFoundError,
    TagService,
    TagStore,
    TagStoreCorruptedError,
    defuse_mentions,
)
from webserver import StatusWebServer, status_from_client

INVITE_URL = (
    "https://discord.com/api/oauth2/authorize?client_id={client_id}"
    "&permissions=0&integration_type=0&scope=bot+applications.commands"
)

PREFIX_COMMANDS = [
    "help",
    "ping",
    "botinfo",
    "serverinfo",
    "helloworld",
    "say",
    "wsay",
    "dice",
    "tag (alias: t)",
    "taglist",
    "tagadd",
    "tagremove",
    "dataremove",
]

NOT_A_GUILD = "This is not a server channel."
NOT_SAVED_WARNING = "\n⚠️ The change could not be saved to disk yet and will be retried."

# ============================================================================
# Configuration Loading
# ============================================================================


def load_config(config_path: str = "config.yml") -> dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Configuration dictionary.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        yaml.YAMLError: If config file is invalid.
        ValueError: If a required setting is missing or has the wrong type.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n"
            "Please create a config.yml file based on config.yml.example"
        )

    with open(path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ValueError(f"{config_path} must contain a mapping at the top level")

    # Validate required fields
    if not config.get("discord", {}).get("token"):
        raise ValueError("Discord token not found in config.yml")

    prefix = config["discord"].get("prefix", "!")
    if not isinstance(prefix, str) or not prefix:
        raise ValueError("discord.prefix must be a non-empty string")

    port = config.get("webserver", {}).get("port", 8080)
    if not isinstance(port, int) or not 0 < port < 65536:
        raise ValueError(f"webserver.port must be a valid TCP port, got {port!r}")

    return config


# ============================================================================
# Logging Setup
# ============================================================================


def setup_logging(config: dict[str, Any]) -> logging.Logger:
    """
    Set up logging based on configuration.

    Args:
        config: Logging configuration dictionary.

    Returns:
        Configured logger instance.
    """
    log_config = config.get("logging", {})
    log_level = getattr(logging, log_config.get("level", "INFO").upper())
    log_file = log_config.get("file", "logs/herald.log")
    log_format = log_config.get(
        "format",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    max_size = log_config.get("max_size_mb", 10) * 1024 * 1024
    backup_count = log_config.get("backup_count", 5)

    # Create logs directory if needed
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(log_format))

    # File handler with rotation
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter(log_format))

    logger = logging.getLogger("herald")
    logger.setLevel(log_level)
    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    # discord.py only configures its own logging through Client.run()
    discord_logger = logging.getLogger("discord")
    discord_logger.setLevel(logging.INFO)
    discord_logger.addHandler(console_handler)
    discord_logger.addHandler(file_handler)

    return logger


# ============================================================================
# Helpers
# ============================================================================


@dataclass
class CommandReply:
    """Text reply shared by the prefix and slash command surfaces."""
    content: str
    ok: bool = True


def get_prefix(bot: commands.Bot, message: discord.Message) -> list[str]:
    """
    Resolve command prefixes for a message.

    The configured prefix matches case-insensitively, and mentioning the bot
    works as a prefix too.
    """
    prefixes = commands.when_mentioned(bot, message)
    prefix = bot.config.get("discord", {}).get("prefix", "!")
    if message.content[: len(prefix)].lower() == prefix.lower():
        # Return the exact casing used so discord.py strips it correctly
        prefixes.append(message.content[: len(prefix)])
    return prefixes


def is_valid_webhook_url(url: str) -> bool:
    """Check that a URL is absolute http(s)."""
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def truncate(text: str, limit: int = 100) -> str:
    return text[:limit] + "..." if len(text) > limit else text


async def post_webhook(
    session: aiohttp.ClientSession,
    webhook_url: str,
    message: str,
) -> CommandReply:
    """
    Send a message through a Discord webhook.

    Args:
        session: HTTP session to post with.
        webhook_url: Target webhook URL.
        message: Message content.

    Returns:
        Reply describing the outcome.
    """
    if not is_valid_webhook_url(webhook_url):
        return CommandReply("❌ You did not provide a valid webhook url", ok=False)

    try:
        async with session.post(webhook_url, json={"content": message}) as response:
            if 200 <= response.status < 300:
                return CommandReply(f"Sent the message to the webhook: `{webhook_url}`")
            details = await response.text()
            return CommandReply(
                f"🛑 An error has occurred. Status code: **{response.status}**.\n"
                f"Details: `{truncate(details)}`",
                ok=False,
            )
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        return CommandReply(
            f"❌ An error has occurred while trying to send the webhook: `{e}`",
            ok=False,
        )


def roll_dice(sides: int = 6) -> int:
    return random.randint(1, sides)


def check_guild_permissions(interaction: Interaction, **perms: bool) -> bool:
    """
    Require a server channel, then the given permissions.

    Raises:
        app_commands.NoPrivateMessage: Outside a guild.
        app_commands.MissingPermissions: If the user lacks any of ``perms``.
    """
    if interaction.guild is None:
        raise app_commands.NoPrivateMessage()
    permissions = interaction.permissions
    missing = [perm for perm, value in perms.items() if getattr(permissions, perm) != value]
    if missing:
        raise app_commands.MissingPermissions(missing)
    return True


def guild_permissions(**perms: bool):
    """Slash command check: guild only, then ``has_permissions``."""

    def predicate(interaction: Interaction) -> bool:
        return check_guild_permissions(interaction, **perms)

    return app_commands.check(predicate)


# ============================================================================
# Tag Replies (shared by prefix and slash commands)
# ============================================================================


def tag_show_reply(tags: TagService, guild_id: int, tag_name: str) -> CommandReply:
    try:
        return CommandReply(tags.show(guild_id, tag_name))
    except TagNotFoundError:
        return CommandReply(f"❌ Tag `{tag_name}` not found.", ok=False)


def tag_add_reply(
    tags: TagService,
    guild_id: int,
    tag_name: str,
    content: str,
    owner_id: int,
    remove_hint: str,
) -> CommandReply:
    try:
        saved = tags.add(guild_id, tag_name, content, owner_id)
    except TagAlreadyExistsError:
        return CommandReply(
            f"❌ Tag `{tag_name}` already exists! Use {remove_hint} first.",
            ok=False,
        )
    return CommandReply(f"✅ Tag `{tag_name}` added." + ("" if saved else NOT_SAVED_WARNING))


def tag_remove_reply(tags: TagService, guild_id: int, tag_name: str) -> CommandReply:
    try:
        saved = tags.remove(guild_id, tag_name)
    except TagNotFoundError:
        return CommandReply("❌ Tag not found.", ok=False)
    return CommandReply(f"✅ Tag `{tag_name}` removed." + ("" if saved else NOT_SAVED_WARNING))


def tag_purge_reply(tags: TagService, guild_id: int, guild_name: str) -> CommandReply:
    with tags.store.lock:
        if not tags.purge(guild_id):
            return CommandReply("No tag data found for this server.", ok=False)
        saved = not tags.store.flush_pending
    reply = f"⚠️ All tag data for **{guild_name}** has been deleted."
    return CommandReply(reply + ("" if saved else NOT_SAVED_WARNING))


def tag_list_embed(guild_name: str, names: list[str]) -> Optional[discord.Embed]:
    """Embed listing a guild's tags, or None when there are none."""
    if not names:
        return None
    return discord.Embed(
        title=f"Tags for {guild_name} ({len(names)} tags for this server)",
        description=", ".join(names),
        color=discord.Color.purple(),
    )


# ============================================================================
# Herald Bot Class
# ============================================================================


class HeraldBot(commands.Bot):
    """
    The Herald Discord bot.

    Owns the tag service, the outbound HTTP session used for webhooks and,
    when enabled, the status/docs web server.
    """

    def __init__(self, config: dict[str, Any], tag_store: TagStore):
        """
        Initialize the Herald bot.

        Args:
            config: Configuration dictionary loaded from config.yml.
            tag_store: Loaded tag store shared by all tag commands.
        """
        intents = discord.Intents.default()
        intents.message_content = True
        intents.guilds = True
        intents.guild_messages = True

        super().__init__(
            command_prefix=get_prefix,
            intents=intents,
            help_command=None,
            case_insensitive=True,
        )

        self.config = config
        self.logger = logging.getLogger("herald.bot")
        self.tags = TagService(tag_store)
        self.http_session: Optional[aiohttp.ClientSession] = None
        self._webserver: Optional[StatusWebServer] = None

    async def setup_hook(self) -> None:
        """Set up the bot before it starts."""
        self.logger.info("Setting up Herald bot...")

        self.http_session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=15)
        )

        web_config = self.config.get("webserver", {})
        if web_config.get("enabled", False):
            self._webserver = StatusWebServer(
                status_provider=lambda: status_from_client(self),
                index_path=web_config.get("index_path", "index.html"),
                docs_dir=web_config.get("docs_dir", "docs"),
            )
            try:
                await self._webserver.start(
                    host=web_config.get("host", "0.0.0.0"),
                    port=web_config.get("port", 8080),
                )
            except OSError as e:
                self.logger.error(f"Failed to start webserver: {e}")
                self._webserver = None
        else:
            self.logger.info("Webserver is disabled in config.")

        # Sync slash commands
        try:
            synced = await self.tree.sync()
            self.logger.info(f"Synced {len(synced)} slash commands")
        except Exception as e:
            self.logger.error(f"Failed to sync commands: {e}")

    async def close(self) -> None:
        """Clean up resources when the bot shuts down."""
        self.logger.info("Shutting down Herald bot...")

        if self.tags.store.flush_pending and not self.tags.store.persist():
            self.logger.error("Unsaved tag changes could not be written before shutdown")

        if self._webserver:
            try:
                await self._webserver.stop()
            except Exception as e:
                self.logger.error(f"Error stopping webserver: {e}")

        if self.http_session:
            await self.http_session.close()

        await super().close()

    async def on_ready(self) -> None:
        """Handle bot ready event."""
        self.logger.info(f"Logged in as {self.user} (ID: {self.user.id})")
        self.logger.info(f"Connected to {len(self.guilds)} guilds")

        prefix = self.config.get("discord", {}).get("prefix", "!")
        await self.change_presence(
            activity=discord.Activity(
                type=discord.ActivityType.listening,
                name=f"{prefix}help",
            )
        )

    async def on_message(self, message: discord.Message) -> None:
        """Handle incoming messages."""
        # Ignore bot messages
        if message.author.bot:
            return
        await self.process_commands(message)

    async def on_command_error(
        self,
        ctx: commands.Context,
        error: commands.CommandError,
    ) -> None:
        """Report prefix command failures back to the channel."""
        if isinstance(error, commands.CommandNotFound):
            return
        if isinstance(error, commands.NoPrivateMessage):
            await ctx.send(NOT_A_GUILD)
            return
        if isinstance(error, commands.MissingPermissions):
            missing = ", ".join(p.replace("_", " ").title() for p in error.missing_permissions)
            await ctx.send(f"❌ You need {missing} permission to use this command.")
            return
        if isinstance(error, commands.UserInputError):
            await ctx.send(f"ERROR: {error}")
            return

        self.logger.error(f"Command error in {ctx.command}: {error}", exc_info=error)
        await ctx.send(f"ERROR: {error}")

    async def send_webhook(self, webhook_url: str, message: str) -> CommandReply:
        """Post ``message`` to a webhook using the bot's HTTP session."""
        if self.http_session is None or self.http_session.closed:
            self.http_session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=15)
            )
        reply = await post_webhook(self.http_session, webhook_url, message)
        if not reply.ok:
            self.logger.warning(f"Webhook send failed: {reply.content}")
        return reply

    def latency_ms(self) -> int:
        return round(self.latency * 1000)

    def build_help_embed(self, author: Union[discord.User, discord.Member]) -> discord.Embed:
        embed = discord.Embed(
            title=f"{self.user.name}",
            description="\n".join(PREFIX_COMMANDS),
            color=discord.Color.from_rgb(0, 150, 255),
            timestamp=discord.utils.utcnow(),
        )
        embed.set_footer(
            text=f"{author.name} | {discord.utils.utcnow():%Y-%m-%d %H:%M} UTC"
        )
        return embed

    def build_bot_info_embed(self) -> discord.Embed:
        embed = discord.Embed(
            title=f"🤖 {self.user.name} Information",
            color=discord.Color.blue(),
        )
        embed.set_thumbnail(url=self.user.display_avatar.url)
        embed.add_field(name="Discord User ID", value=str(self.user.id), inline=True)
        embed.add_field(name="Status", value=str(self.status), inline=True)
        embed.add_field(name="Library", value=f"discord.py {discord.__version__}", inline=True)
        embed.add_field(
            name="Invite the Bot",
            value=INVITE_URL.format(client_id=self.user.id),
            inline=True,
        )
        source_url = self.config.get("discord", {}).get("source_url")
        if source_url:
            embed.add_field(name="Source Code", value=source_url, inline=True)
        return embed

    @staticmethod
    def build_server_info_embed(guild: discord.Guild) -> discord.Embed:
        embed = discord.Embed(
            title="🏛️ Server Information",
            color=discord.Color.blue(),
        )
        if guild.icon:
            embed.set_thumbnail(url=guild.icon.url)
        owner = guild.owner.name if guild.owner else f"<@{guild.owner_id}>"
        embed.add_field(name="Guild name", value=guild.name, inline=True)
        embed.add_field(name="Guild ID", value=str(guild.id), inline=True)
        embed.add_field(name="Member Count", value=str(guild.member_count), inline=True)
        embed.add_field(name="Owner", value=owner, inline=True)
        embed.add_field(name="Locale", value=str(guild.preferred_locale), inline=True)
        embed.set_footer(text=f"Guild creation date: {guild.created_at:%Y-%m-%d %H:%M} UTC")
        return embed


# ============================================================================
# Prefix Commands
# ============================================================================


def setup_prefix_commands(bot: HeraldBot) -> None:
    """
    Set up text-prefix commands for the bot.

    Args:
        bot: The HeraldBot instance.
    """

    @bot.command(name="help")
    async def help_command(ctx: commands.Context) -> None:
        """Help menu."""
        await ctx.send(embed=bot.build_help_embed(ctx.author))

    @bot.command(name="ping")
    async def ping_command(ctx: commands.Context) -> None:
        """Get the latency of the bot."""
        await ctx.send(f"Pong!\nLatency: **{bot.latency_ms()}ms**.")

    @bot.command(name="botinfo")
    async def botinfo_command(ctx: commands.Context) -> None:
        """Get information on the bot."""
        await ctx.send(embed=bot.build_bot_info_embed())

    @bot.command(name="serverinfo")
    @commands.guild_only()
    async def serverinfo_command(ctx: commands.Context) -> None:
        """Display information about the current server."""
        await ctx.send(embed=bot.build_server_info_embed(ctx.guild))

    @bot.command(name="helloworld")
    async def helloworld_command(ctx: commands.Context) -> None:
        await ctx.send("Hello World!")

    @bot.command(name="say")
    async def say_command(ctx: commands.Context, *, message: str) -> None:
        """Make the bot say things."""
        await ctx.send(message, allowed_mentions=discord.AllowedMentions.none())
        try:
            await ctx.message.delete()
        except (discord.Forbidden, discord.NotFound):
            bot.logger.debug(f"Could not delete say invocation in {ctx.channel}")

    @bot.command(name="wsay")
    @commands.has_permissions(manage_webhooks=True)
    async def wsay_command(ctx: commands.Context, webhook_url: str, *, message: str) -> None:
        """Make the bot say things through a webhook."""
        reply = await bot.send_webhook(webhook_url, message)
        await ctx.send(reply.content)

    @bot.command(name="dice")
    async def dice_command(ctx: commands.Context) -> None:
        """Roll a 6 sided dice."""
        await ctx.send(f"🎲 You rolled a: **{roll_dice()}**! 🎲")

    @bot.command(name="tag", aliases=["t"])
    @commands.guild_only()
    async def tag_command(ctx: commands.Context, tag_name: str) -> None:
        """Display the content of a tag."""
        reply = tag_show_reply(bot.tags, ctx.guild.id, tag_name)
        await ctx.send(reply.content)

    @bot.command(name="taglist")
    @commands.guild_only()
    async def taglist_command(ctx: commands.Context) -> None:
        """List all tags of the current server."""
        embed = tag_list_embed(ctx.guild.name, bot.tags.list(ctx.guild.id))
        if embed is None:
            await ctx.send("No tags have been added yet for this server.")
            return
        await ctx.send(embed=embed)

    @bot.command(name="tagadd")
    @commands.guild_only()
    @commands.has_permissions(manage_guild=True)
    async def tagadd_command(ctx: commands.Context, tag_name: str, *, content: str) -> None:
        """Create a new tag."""
        reply = tag_add_reply(
            bot.tags, ctx.guild.id, tag_name, content, ctx.author.id,
            remove_hint="the `tagremove` command",
        )
        await ctx.send(reply.content)

    @bot.command(name="tagremove")
    @commands.guild_only()
    @commands.has_permissions(manage_guild=True)
    async def tagremove_command(ctx: commands.Context, tag_name: str) -> None:
        """Delete a tag."""
        reply = tag_remove_reply(bot.tags, ctx.guild.id, tag_name)
        await ctx.send(reply.content)

    @bot.command(name="dataremove")
    @commands.guild_only()
    @commands.has_permissions(manage_guild=True)
    async def dataremove_command(ctx: commands.Context) -> None:
        """Delete all tag data of the current server."""
        reply = tag_purge_reply(bot.tags, ctx.guild.id, ctx.guild.name)
        await ctx.send(reply.content)


# ============================================================================
# Slash Commands
# ============================================================================


def setup_commands(bot: HeraldBot) -> None:
    """
    Set up slash commands for the bot.

    Args:
        bot: The HeraldBot instance.
    """

    # ========================================================================
    # Utility Commands
    # ========================================================================

    @bot.tree.command(name="ping", description="Get the latency of the bot.")
    async def ping_command(interaction: Interaction) -> None:
        await interaction.response.send_message(
            f"Pong!\nLatency: **{bot.latency_ms()}ms**.",
            ephemeral=True,
        )

    @bot.tree.command(name="say", description="Make me say things.")
    @app_commands.describe(message="The message content.")
    async def say_command(interaction: Interaction, message: str) -> None:
        await interaction.response.send_message(defuse_mentions(message))

    @bot.tree.command(name="wsay", description="Make me say things through a webhook.")
    @app_commands.describe(
        url="The Discord Webhook URL to send the message to.",
        message="The message content.",
    )
    @app_commands.checks.has_permissions(manage_webhooks=True)
    async def wsay_command(interaction: Interaction, url: str, message: str) -> None:
        await interaction.response.defer(ephemeral=True)
        reply = await bot.send_webhook(url, message)
        await interaction.followup.send(reply.content, ephemeral=True)

    @bot.tree.command(name="dice", description="Roll a 6 sided dice.")
    async def dice_command(interaction: Interaction) -> None:
        await interaction.response.send_message(f"🎲 You rolled a: **{roll_dice()}**! 🎲")

    # ========================================================================
    # Tag Commands
    # ========================================================================

    tag_group = app_commands.Group(name="tag", description="Tag management commands.")

    @tag_group.command(name="show", description="Displays the content of a specified tag.")
    @app_commands.describe(name="The name of the tag to display.")
    async def tag_show(interaction: Interaction, name: str) -> None:
        if not interaction.guild:
            await interaction.response.send_message(NOT_A_GUILD, ephemeral=True)
            return
        reply = tag_show_reply(bot.tags, interaction.guild.id, name)
        await interaction.response.send_message(reply.content, ephemeral=not reply.ok)

    @tag_group.command(name="list", description="Lists all available tags for the current server.")
    async def tag_list(interaction: Interaction) -> None:
        if not interaction.guild:
            await interaction.response.send_message(NOT_A_GUILD, ephemeral=True)
            return
        embed = tag_list_embed(interaction.guild.name, bot.tags.list(interaction.guild.id))
        if embed is None:
            await interaction.response.send_message(
                "No tags have been added yet for this server.",
                ephemeral=True,
            )
            return
        await interaction.response.send_message(embed=embed)

    @tag_group.command(name="add", description="Creates a new tag with the specified content.")
    @app_commands.describe(name="The name of the tag", content="The content of the tag.")
    @guild_permissions(manage_guild=True)
    async def tag_add(interaction: Interaction, name: str, content: str) -> None:
        reply = tag_add_reply(
            bot.tags, interaction.guild.id, name, content, interaction.user.id,
            remove_hint="`/tag remove`",
        )
        await interaction.response.send_message(reply.content, ephemeral=not reply.ok)

    @tag_group.command(name="remove", description="Deletes a specified tag.")
    @app_commands.describe(name="Tag name to delete.")
    @guild_permissions(manage_guild=True)
    async def tag_remove(interaction: Interaction, name: str) -> None:
        reply = tag_remove_reply(bot.tags, interaction.guild.id, name)
        await interaction.response.send_message(reply.content, ephemeral=not reply.ok)

    @tag_group.command(name="dataremove", description="Delete your server data")
    @guild_permissions(manage_guild=True)
    async def tag_dataremove(interaction: Interaction) -> None:
        reply = tag_purge_reply(bot.tags, interaction.guild.id, interaction.guild.name)
        await interaction.response.send_message(reply.content, ephemeral=True)

    bot.tree.add_command(tag_group)

    # ========================================================================
    # Info Commands
    # ========================================================================

    info_group = app_commands.Group(name="info", description="Information commands.")

    @info_group.command(name="bot", description="Get information on the bot.")
    async def info_bot(interaction: Interaction) -> None:
        await interaction.response.send_message(embed=bot.build_bot_info_embed())

    @info_group.command(name="server", description="Displays information about the current Discord server.")
    async def info_server(interaction: Interaction) -> None:
        if not interaction.guild:
            await interaction.response.send_message(NOT_A_GUILD, ephemeral=True)
            return
        await interaction.response.send_message(
            embed=bot.build_server_info_embed(interaction.guild)
        )

    @info_group.command(name="vc", description="Get information on a voice channel")
    @app_commands.describe(channel="The voice or stage channel")
    async def info_vc(
        interaction: Interaction,
        channel: Union[discord.VoiceChannel, discord.StageChannel],
    ) -> None:
        embed = discord.Embed(title="Voice Channel Information", color=discord.Color.blue())
        embed.add_field(name="Bitrate", value=f"{channel.bitrate // 1000} kbps", inline=True)
        embed.add_field(name="User Limit", value=str(channel.user_limit or "None"), inline=True)
        embed.add_field(name="Connected", value=str(len(channel.members)), inline=True)
        await interaction.response.send_message(embed=embed)

    bot.tree.add_command(info_group)

    # ========================================================================
    # Moderation Commands
    # ========================================================================

    mod_group = app_commands.Group(name="mod", description="Moderation commands.")

    @mod_group.command(name="timeout", description="Time out a user")
    @app_commands.describe(target="Member to time out", seconds="Duration in seconds")
    @guild_permissions(manage_guild=True)
    async def mod_timeout(
        interaction: Interaction,
        target: discord.Member,
        seconds: app_commands.Range[int, 1, 2_419_200],
    ) -> None:
        await target.timeout(
            datetime.timedelta(seconds=seconds),
            reason=f"Timed out by {interaction.user}",
        )
        await interaction.response.send_message(
            f"{target.mention} has been timed out for {seconds} seconds."
        )

    @mod_group.command(name="ban", description="Ban a user")
    @app_commands.describe(target="Member to ban", reason="Reason for the ban")
    @guild_permissions(manage_guild=True)
    async def mod_ban(
        interaction: Interaction,
        target: discord.Member,
        reason: str = "No reason provided",
    ) -> None:
        await target.ban(reason=reason, delete_message_seconds=0)
        await interaction.response.send_message(f"{target.mention} has been banned for: {reason}")

    @mod_group.command(name="kick", description="Kick a user")
    @app_commands.describe(target="Member to kick", reason="Reason for the kick")
    @guild_permissions(manage_guild=True)
    async def mod_kick(
        interaction: Interaction,
        target: discord.Member,
        reason: str = "No reason provided",
    ) -> None:
        await target.kick(reason=reason)
        await interaction.response.send_message(f"{target.mention} has been kicked for: {reason}")

    bot.tree.add_command(mod_group)

    # Error handler
    @bot.tree.error
    async def on_app_command_error(
        interaction: Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        """Handle slash command errors."""
        if isinstance(error, app_commands.NoPrivateMessage):
            message = NOT_A_GUILD
        elif isinstance(error, app_commands.MissingPermissions):
            missing = ", ".join(p.replace("_", " ").title() for p in error.missing_permissions)
            message = f"❌ You need {missing} permission to use this command."
        elif isinstance(error, app_commands.CommandInvokeError) and isinstance(
            error.original, discord.Forbidden
        ):
            message = "❌ I don't have permission to do that."
        else:
            bot.logger.error(f"Interaction error: {error}", exc_info=error)
            message = f"ERROR: {error}"

        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)


# ============================================================================
# Main Entry Point
# ============================================================================


async def main() -> None:
    """Main entry point for the Herald bot."""
    # Load configuration
    try:
        config = load_config()
    except FileNotFoundError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except yaml.YAMLError as e:
        print(f"Error parsing config.yml: {e}")
        sys.exit(1)
    except ValueError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    # Setup logging
    logger = setup_logging(config)
    logger.info("Starting Herald bot...")

    # Load tags before connecting so a corrupt file never gets overwritten
    try:
        tag_store = TagStore.load(config.get("tags", {}).get("path", "settings.json"))
    except TagStoreCorruptedError as e:
        logger.error(f"{e}. Fix or move the file and restart.")
        sys.exit(1)

    # Create and run bot
    bot = HeraldBot(config, tag_store)
    setup_prefix_commands(bot)
    setup_commands(bot)

    token = config["discord"]["token"]

    try:
        async with bot:
            await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid Discord token. Please check your config.yml")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
