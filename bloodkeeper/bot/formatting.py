"""
Reply formatting for Discord.

Turns ledger results into message text and embeds.
"""

from typing import List

import discord

from bloodkeeper.core.commands import LevelReport, LevelStatus
from bloodkeeper.core.events import RollOutcome
from bloodkeeper.storage.models import HistoryEntry

HISTORY_COLOR = 0x8B0000

STATUS_COLORS = {
    LevelStatus.HEALTHY: 0x00FF00,
    LevelStatus.MODERATE: 0xFFFF00,
    LevelStatus.CRITICAL: 0xFF0000,
}

STATUS_LABELS = {
    LevelStatus.HEALTHY: "✅ Healthy",
    LevelStatus.MODERATE: "⚠️ Moderate",
    LevelStatus.CRITICAL: "🚨 Critical",
}


def format_roll_outcome(outcome: RollOutcome, cap: int, low_level_warning: int) -> str:
    """Announcement posted after a roll consumed blood."""
    lines = [
        f"🩸 **Blood consumed!** {outcome.successes} successes detected.",
        f"**New city blood level**: {outcome.new_level}/{cap}",
    ]
    if outcome.was_reset:
        lines.append(f"✨ **Monthly reset** - Blood level restored to {cap}!")
    if outcome.is_critical(low_level_warning):
        lines.append("🚨 **WARNING**: City blood level is critically low!")
    return "\n".join(lines)


def format_level_content(report: LevelReport) -> str:
    return f"🩸 **Current City Blood Level**: {report.level}/{report.cap} ({report.percentage}%)"


def build_level_embed(report: LevelReport) -> discord.Embed:
    embed = discord.Embed(color=STATUS_COLORS[report.status])
    embed.add_field(name="📊 Status", value=STATUS_LABELS[report.status], inline=True)
    embed.add_field(name="📈 Percentage", value=f"{report.percentage}%", inline=True)
    embed.set_footer(text=f"Blood resets monthly to {report.cap}")
    return embed


def format_history_line(entry: HistoryEntry) -> str:
    when = entry.timestamp.strftime("%b %d, %I:%M %p")
    return f"• {when}: Consumed **{entry.successes}** → Level **{entry.resulting_level}**"


def build_history_embed(entries: List[HistoryEntry]) -> discord.Embed:
    """Embed listing consumption entries. Callers handle the empty case."""
    embed = discord.Embed(
        title="📊 Recent Blood Consumption",
        description="\n".join(format_history_line(entry) for entry in entries),
        color=HISTORY_COLOR,
    )
    embed.set_footer(text=f"Showing last {len(entries)} entries")
    return embed


def format_reset_notice(cap: int) -> str:
    return f"🗓️ **Monthly Reset**: City blood level restored to {cap}!"
