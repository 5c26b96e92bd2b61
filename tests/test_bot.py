"""
Tests for the Discord adapter.

Gateway objects are replaced by SimpleNamespace stand-ins and AsyncMock
senders; no connection to Discord is made.
"""

import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, PropertyMock, patch

import pytest

from bloodkeeper.bot.client import BloodkeeperClient, build_roll_event
from bloodkeeper.bot.formatting import (
    build_history_embed,
    build_level_embed,
    format_level_content,
    format_reset_notice,
    format_roll_outcome,
)
from bloodkeeper.config.loader import BotConfig
from bloodkeeper.core.commands import LevelReport, LevelStatus
from bloodkeeper.core.events import Embed, EmbedField, RollOutcome
from bloodkeeper.storage.models import HistoryEntry

from conftest import BLOOD_CHANNEL_ID, ROLL_BOT_ID


class TestBuildRollEvent:
    """Test conversion of Discord messages to roll events."""

    def test_copies_ids_text_and_embeds(self):
        message = SimpleNamespace(
            author=SimpleNamespace(id=642775025770037279),
            channel=SimpleNamespace(id=1339973204201963633),
            content="Roll result: 3 successes",
            embeds=[SimpleNamespace(
                description="Blood pool roll",
                fields=[SimpleNamespace(name="Result", value="5 successes")],
            )],
        )
        event = build_roll_event(message)
        assert event.author_id == "642775025770037279"
        assert event.channel_id == "1339973204201963633"
        assert event.text == "Roll result: 3 successes"
        assert event.embeds == [
            Embed(description="Blood pool roll", fields=[EmbedField("Result", "5 successes")])
        ]

    def test_missing_content(self):
        message = SimpleNamespace(
            author=SimpleNamespace(id=1),
            channel=SimpleNamespace(id=2),
            content=None,
            embeds=[],
        )
        assert build_roll_event(message).text == ""


class TestFormatting:
    """Test reply text and embeds."""

    def test_roll_outcome_plain(self):
        text = format_roll_outcome(RollOutcome(4, 150, False), 200, 20)
        assert "4 successes detected" in text
        assert "150/200" in text
        assert "Monthly reset" not in text
        assert "WARNING" not in text

    def test_roll_outcome_reset_and_low(self):
        text = format_roll_outcome(RollOutcome(190, 10, True), 200, 20)
        assert "Monthly reset" in text
        assert "critically low" in text

    def test_level_content_and_embed(self):
        report = LevelReport(level=60, cap=200, percentage=30, status=LevelStatus.MODERATE)
        assert format_level_content(report).endswith("60/200 (30%)")

        embed = build_level_embed(report)
        assert embed.color.value == 0xFFFF00
        assert [f.value for f in embed.fields] == ["⚠️ Moderate", "30%"]
        assert embed.footer.text == "Blood resets monthly to 200"

    def test_history_embed(self):
        entries = [
            HistoryEntry(2, 5, 190, "5 successes", datetime(2025, 3, 7, 21, 30, tzinfo=timezone.utc)),
            HistoryEntry(1, 5, 195, None, datetime(2025, 3, 6, 9, 5, tzinfo=timezone.utc)),
        ]
        embed = build_history_embed(entries)
        lines = embed.description.split("\n")
        assert lines[0] == "• Mar 07, 09:30 PM: Consumed **5** → Level **190**"
        assert embed.footer.text == "Showing last 2 entries"

    def test_reset_notice(self):
        assert "restored to 200" in format_reset_notice(200)


def make_message(text, author_id=ROLL_BOT_ID, channel_id=BLOOD_CHANNEL_ID):
    return SimpleNamespace(
        author=SimpleNamespace(id=int(author_id)),
        channel=SimpleNamespace(id=int(channel_id), send=AsyncMock()),
        content=text,
        embeds=[],
    )


def make_interaction(is_admin):
    return SimpleNamespace(
        user="storyteller",
        permissions=SimpleNamespace(administrator=is_admin),
        response=SimpleNamespace(send_message=AsyncMock()),
    )


@pytest.fixture
def ledger_mock():
    ledger = Mock()
    ledger.cap = 200
    return ledger


@pytest.fixture
def client(ledger_mock):
    config = BotConfig(token="token", roll_bot_id=ROLL_BOT_ID, channel_id=BLOOD_CHANNEL_ID)
    return BloodkeeperClient(config, ledger_mock)


class TestOnMessage:
    """Test gateway message handling."""

    def test_roll_reply_sent(self, client, ledger_mock):
        ledger_mock.process_roll_event.return_value = RollOutcome(4, 196, False)
        message = make_message("successes: 4")

        asyncio.run(client.on_message(message))

        event = ledger_mock.process_roll_event.call_args[0][0]
        assert event.text == "successes: 4"
        message.channel.send.assert_awaited_once()
        reply = message.channel.send.call_args[0][0]
        assert "4 successes detected" in reply
        assert "196/200" in reply

    def test_wrong_channel_filtered_before_ledger(self, client, ledger_mock):
        message = make_message("successes: 4", channel_id="1")

        asyncio.run(client.on_message(message))

        ledger_mock.process_roll_event.assert_not_called()
        message.channel.send.assert_not_awaited()

    def test_own_messages_ignored(self, client, ledger_mock):
        message = make_message("successes: 4")
        with patch.object(BloodkeeperClient, "user", new_callable=PropertyMock) as user:
            user.return_value = SimpleNamespace(id=int(ROLL_BOT_ID))
            asyncio.run(client.on_message(message))

        ledger_mock.process_roll_event.assert_not_called()

    def test_no_reply_without_outcome(self, client, ledger_mock):
        ledger_mock.process_roll_event.return_value = None
        message = make_message("Botch")

        asyncio.run(client.on_message(message))

        ledger_mock.process_roll_event.assert_called_once()
        message.channel.send.assert_not_awaited()


class TestSetBloodCommand:
    """Test the /setblood handler."""

    def run_setblood(self, client, interaction, amount):
        command = client.tree.get_command("setblood")
        asyncio.run(command.callback(interaction, amount))

    def test_non_admin_rejected(self, client, ledger_mock):
        interaction = make_interaction(is_admin=False)

        self.run_setblood(client, interaction, 150)

        ledger_mock.set_level.assert_not_called()
        interaction.response.send_message.assert_awaited_once_with(
            "❌ You need administrator permissions to use this command.", ephemeral=True
        )

    def test_out_of_range_rejected(self, client, ledger_mock):
        interaction = make_interaction(is_admin=True)

        self.run_setblood(client, interaction, 201)

        ledger_mock.set_level.assert_not_called()
        interaction.response.send_message.assert_awaited_once_with(
            "❌ Please provide a value between 0 and 200.", ephemeral=True
        )

    def test_admin_sets_level(self, client, ledger_mock):
        ledger_mock.set_level.return_value = 150
        interaction = make_interaction(is_admin=True)

        self.run_setblood(client, interaction, 150)

        ledger_mock.set_level.assert_called_once_with(150)
        interaction.response.send_message.assert_awaited_once_with("✅ Blood level set to **150**")


class TestMonthlyResetLoop:
    """Test one tick of the monthly reset loop."""

    @patch('bloodkeeper.bot.client.run_monthly_check', return_value=True)
    def test_reset_notice_sent(self, mock_check, client, ledger_mock):
        channel = SimpleNamespace(send=AsyncMock())
        client.get_channel = Mock(return_value=channel)

        asyncio.run(client.monthly_reset())

        assert mock_check.call_args[0][0] is ledger_mock
        client.get_channel.assert_called_once_with(int(BLOOD_CHANNEL_ID))
        channel.send.assert_awaited_once_with(format_reset_notice(200))

    @patch('bloodkeeper.bot.client.run_monthly_check', return_value=False)
    def test_no_notice_without_reset(self, mock_check, client):
        client.get_channel = Mock()

        asyncio.run(client.monthly_reset())

        client.get_channel.assert_not_called()

    @patch('bloodkeeper.bot.client.run_monthly_check', return_value=True)
    def test_missing_channel_logged(self, mock_check, client, caplog):
        client.get_channel = Mock(return_value=None)

        asyncio.run(client.monthly_reset())

        assert "reset notice not sent" in caplog.text
