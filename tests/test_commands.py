"""
Tests for the command responder.
"""

from unittest.mock import Mock

import pytest

from bloodkeeper.core.commands import CommandResponder, LevelStatus, level_status
from bloodkeeper.core.errors import AuthorizationFailure, ValidationFailure


class TestQueryLevel:
    """Test the level report."""

    def test_report_values(self, ledger):
        ledger.set_level(134)
        report = CommandResponder(ledger).query_level()
        assert report.level == 134
        assert report.cap == 200
        assert report.percentage == 67
        assert report.status == LevelStatus.HEALTHY

    @pytest.mark.parametrize("level,expected", [
        (200, LevelStatus.HEALTHY),
        (101, LevelStatus.HEALTHY),
        (100, LevelStatus.MODERATE),
        (51, LevelStatus.MODERATE),
        (50, LevelStatus.CRITICAL),
        (0, LevelStatus.CRITICAL),
    ])
    def test_status_bands(self, level, expected):
        assert level_status(level, 200) == expected


class TestSetLevel:
    """Test the admin override path."""

    def setup_method(self):
        self.ledger = Mock()
        self.ledger.cap = 200
        self.ledger.set_level.side_effect = lambda amount: amount
        self.responder = CommandResponder(self.ledger)

    def test_admin_sets_level(self):
        assert self.responder.set_level(120, is_admin=True) == 120
        self.ledger.set_level.assert_called_once_with(120)

    @pytest.mark.parametrize("amount", [0, 200])
    def test_bounds_inclusive(self, amount):
        assert self.responder.set_level(amount, is_admin=True) == amount

    def test_non_admin_rejected(self):
        with pytest.raises(AuthorizationFailure):
            self.responder.set_level(120, is_admin=False)
        self.ledger.set_level.assert_not_called()

    @pytest.mark.parametrize("amount", [-1, 201, 300])
    def test_out_of_range_rejected(self, amount):
        with pytest.raises(ValidationFailure, match="between 0 and 200") as excinfo:
            self.responder.set_level(amount, is_admin=True)
        assert excinfo.value.value == amount
        self.ledger.set_level.assert_not_called()

    def test_authorization_checked_before_range(self):
        with pytest.raises(AuthorizationFailure):
            self.responder.set_level(999, is_admin=False)

    def test_range_follows_ledger_cap(self):
        self.ledger.cap = 100
        assert self.responder.cap == 100
        with pytest.raises(ValidationFailure, match="between 0 and 100"):
            self.responder.set_level(150, is_admin=True)


class TestViewHistory:
    """Test history display trimming."""

    def test_fetches_limit_and_displays_top(self, ledger):
        for i in range(8):
            ledger.record_history(i + 1, 200 - i, None)
        responder = CommandResponder(ledger, history_limit=10, history_display=5)

        entries = responder.view_history()
        assert len(entries) == 5
        assert entries[0].successes == 8

    def test_empty_history(self, ledger):
        assert CommandResponder(ledger).view_history() == []

    def test_ping_touches_nothing(self):
        ledger = Mock()
        assert "Pong" in CommandResponder(ledger).ping()
        assert ledger.method_calls == []
