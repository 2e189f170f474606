"""Tests for configuration."""

from unittest.mock import MagicMock

from blackjack_bot.config import Settings
from blackjack_bot.main import build_blackjack


def test_settings_default_values():
    """Table defaults match the standard game."""
    settings = Settings()

    assert settings.max_players == 6
    assert settings.join_window_seconds == 30
    assert settings.dealer_delay_seconds == 5
    assert settings.reset_delay_seconds == 5
    assert settings.auto_play_seconds == 60
    assert settings.leaderboard_size == 5
    assert settings.database_url.startswith("sqlite+aiosqlite://")


def test_settings_override():
    settings = Settings(bot_token="123:abc", max_players=4, join_window_seconds=10.0)

    assert settings.bot_token == "123:abc"
    assert settings.max_players == 4
    assert settings.join_window_seconds == 10.0


def test_blackjack_tables_use_configured_settings():
    config = Settings(
        max_players=3,
        join_window_seconds=12,
        dealer_delay_seconds=1,
        reset_delay_seconds=2,
        auto_play_seconds=40,
        leaderboard_size=8,
    )

    blackjack = build_blackjack(MagicMock(), config)
    session = blackjack.registry.get_or_create("#c")

    assert session.max_players == 3
    assert session.join_window_seconds == 12
    assert session.dealer_delay_seconds == 1
    assert session.reset_delay_seconds == 2
    assert session.auto_play_seconds == 40
    assert blackjack.leaderboard_size == 8
