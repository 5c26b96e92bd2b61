"""
Discord gateway client.

Routes dice-bot messages through the message gate, serves the slash
commands and runs the monthly reset loop. Ledger calls run in a worker
thread so SQLite never blocks the event loop.
"""

import asyncio
import logging
from datetime import datetime, time, timezone

import discord
from discord import app_commands
from discord.ext import tasks

from bloodkeeper.config.loader import BotConfig
from bloodkeeper.config.log_setup import configure_logging
from bloodkeeper.core.commands import CommandResponder
from bloodkeeper.core.errors import AuthorizationFailure, ValidationFailure
from bloodkeeper.core.events import Embed, EmbedField, RollEvent
from bloodkeeper.core.gate import MessageGate
from bloodkeeper.core.ledger import BloodLedger
from bloodkeeper.core.scheduler import run_monthly_check
from bloodkeeper.storage.repository import LedgerRepository

from .formatting import (
    build_history_embed,
    build_level_embed,
    format_level_content,
    format_reset_notice,
    format_roll_outcome,
)

logger = logging.getLogger(__name__)

MIDNIGHT_UTC = time(hour=0, minute=0, tzinfo=timezone.utc)


def build_roll_event(message: discord.Message) -> RollEvent:
    """Convert a Discord message into a platform-neutral roll event."""
    return RollEvent(
        author_id=str(message.author.id),
        channel_id=str(message.channel.id),
        text=message.content or "",
        embeds=[
            Embed(
                description=embed.description,
                fields=[EmbedField(name=f.name or "", value=f.value or "") for f in embed.fields],
            )
            for embed in message.embeds
        ],
    )


class BloodkeeperClient(discord.Client):
    """Discord client wiring the ledger to gateway events."""

    def __init__(self, config: BotConfig, ledger: BloodLedger):
        intents = discord.Intents.default()
        intents.message_content = True
        super().__init__(intents=intents)
        self.config = config
        self.ledger = ledger
        self.gate = MessageGate(ledger, config.roll_bot_id, config.channel_id)
        self.responder = CommandResponder(
            ledger,
            history_limit=config.history_limit,
            history_display=config.history_display,
        )
        self.tree = app_commands.CommandTree(self)
        register_commands(self.tree, self.responder)

    async def setup_hook(self) -> None:
        if self.config.guild_id:
            guild = discord.Object(id=int(self.config.guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Registered %d guild commands", len(synced))
        else:
            synced = await self.tree.sync()
            logger.info("Registered %d global commands", len(synced))
        self.monthly_reset.start()

    async def on_ready(self) -> None:
        level = await asyncio.to_thread(self.ledger.get_current_level)
        logger.info("%s is online (id %s)", self.user, self.user.id)
        logger.info("Current blood level: %d/%d", level, self.ledger.cap)

    async def on_message(self, message: discord.Message) -> None:
        if self.user is not None and message.author.id == self.user.id:
            return
        if not self.gate.accepts(message.author.id, message.channel.id):
            return

        outcome = await asyncio.to_thread(self.gate.handle, build_roll_event(message))
        if outcome is None:
            return
        await message.channel.send(
            format_roll_outcome(outcome, self.ledger.cap, self.config.low_level_warning)
        )

    @tasks.loop(time=MIDNIGHT_UTC)
    async def monthly_reset(self) -> None:
        now = datetime.now(timezone.utc)
        was_reset = await asyncio.to_thread(run_monthly_check, self.ledger, now)
        if not was_reset:
            return
        channel = self.get_channel(int(self.config.channel_id))
        if channel is None:
            logger.warning("Blood channel %s not found, reset notice not sent", self.config.channel_id)
            return
        await channel.send(format_reset_notice(self.ledger.cap))

    @monthly_reset.before_loop
    async def before_monthly_reset(self) -> None:
        await self.wait_until_ready()


def register_commands(tree: app_commands.CommandTree, responder: CommandResponder) -> None:
    """Attach the slash commands to a command tree."""

    @tree.command(name="ping", description="Responds with pong!")
    async def ping(interaction: discord.Interaction) -> None:
        await interaction.response.send_message(f"🏓 {responder.ping()}")

    @tree.command(name="bloodlevel", description="Check the current blood level of the city")
    async def bloodlevel(interaction: discord.Interaction) -> None:
        report = await asyncio.to_thread(responder.query_level)
        await interaction.response.send_message(
            content=format_level_content(report),
            embed=build_level_embed(report),
        )

    @tree.command(name="setblood", description="Set the blood level (admin only)")
    @app_commands.describe(amount="Blood level amount")
    async def setblood(interaction: discord.Interaction, amount: int) -> None:
        is_admin = interaction.permissions.administrator
        try:
            stored = await asyncio.to_thread(responder.set_level, amount, is_admin)
        except (AuthorizationFailure, ValidationFailure) as e:
            logger.info("setblood rejected for %s: %s", interaction.user, e)
            await interaction.response.send_message(f"❌ {e}", ephemeral=True)
            return
        await interaction.response.send_message(f"✅ Blood level set to **{stored}**")

    @tree.command(name="bloodhistory", description="View recent blood consumption history")
    async def bloodhistory(interaction: discord.Interaction) -> None:
        entries = await asyncio.to_thread(responder.view_history)
        if not entries:
            await interaction.response.send_message("📊 No blood consumption history yet.")
            return
        await interaction.response.send_message(embed=build_history_embed(entries))

    @tree.error
    async def on_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError) -> None:
        logger.error("Error handling /%s", interaction.command.name if interaction.command else "?", exc_info=error)
        message = "❌ An error occurred while processing your command. Please try again."
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)


def run_bot(config: BotConfig) -> None:
    """Open the ledger, connect to Discord and block until shutdown."""
    config.require_discord()
    configure_logging(config.log_level, config.log_file)

    with LedgerRepository(config.db_path) as repository:
        ledger = BloodLedger(
            repository,
            cap=config.cap,
            roll_bot_id=config.roll_bot_id,
            channel_id=config.channel_id,
        )
        ledger.initialize()
        client = BloodkeeperClient(config, ledger)
        logger.info("Logging into Discord...")
        client.run(config.token, log_handler=None)
