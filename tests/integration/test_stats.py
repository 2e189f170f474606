"""Integration tests for player statistics on a real database."""

import pytest
from sqlalchemy import select

from blackjack_bot.database.models import PlayerStats
from blackjack_bot.services.blackjack import Outcome, PlayerResult
from blackjack_bot.services.stats import StatsService, no_games_text


def _result(outcome: Outcome, value: int, blackjack: bool = False, bust: bool = False) -> PlayerResult:
    return PlayerResult(
        username="ignored",
        hand_value=value,
        outcome=outcome,
        is_blackjack=blackjack,
        is_bust=bust,
    )


async def _play(stats: StatsService, channel: str, username: str, *results: PlayerResult):
    for result in results:
        await stats.record_result(channel, username, result)


@pytest.fixture
def stats(test_db) -> StatsService:
    return StatsService(test_db)


@pytest.mark.asyncio
async def test_record_result_aggregates(stats):
    await _play(
        stats, "#a", "alice",
        _result(Outcome.WIN, 20),
        _result(Outcome.WIN, 21, blackjack=True),
        _result(Outcome.LOSS, 25, bust=True),
        _result(Outcome.PUSH, 18),
    )

    record = await stats.get_player_stats("#a", "alice")

    assert record.games_played == 4
    assert (record.wins, record.losses, record.pushes) == (2, 1, 1)
    assert record.blackjacks == 1
    assert record.busts == 1
    assert record.total_hand_value == 59
    assert record.highest_hand == 21
    assert record.hand_distribution == {"20": 1, "21": 1, "18": 1}
    assert record.favorite_hand == 20
    assert record.longest_win_streak == 2
    assert record.current_win_streak == 0
    assert record.current_loss_streak == 1
    assert record.first_game_at is not None
    assert round(record.win_rate, 1) == 66.7
    assert record.blackjack_rate == 25.0
    assert record.bust_rate == 25.0


@pytest.mark.asyncio
async def test_push_keeps_streaks(stats):
    await _play(stats, "#a", "alice", _result(Outcome.WIN, 19), _result(Outcome.PUSH, 19), _result(Outcome.WIN, 20))

    record = await stats.get_player_stats("#a", "alice")

    assert record.current_win_streak == 2
    assert record.longest_win_streak == 2


@pytest.mark.asyncio
async def test_usernames_are_case_insensitive(stats, test_db):
    await stats.record_result("#a", "Alice", _result(Outcome.WIN, 20))
    await stats.record_result("#a", "@alice", _result(Outcome.LOSS, 17))

    async with test_db() as session:
        rows = (await session.execute(select(PlayerStats))).scalars().all()

    assert len(rows) == 1
    assert rows[0].username == "alice"
    assert rows[0].games_played == 2


@pytest.mark.asyncio
async def test_row_created_by_overlapping_round_is_updated(stats, test_db, monkeypatch):
    await stats.record_result("#a", "alice", _result(Outcome.WIN, 20))

    # First lookup misses as if the other round had not committed yet
    find = stats._find
    misses = []

    async def stale_find(session, channel, username):
        if not misses:
            misses.append(username)
            return None
        return await find(session, channel, username)

    monkeypatch.setattr(stats, "_find", stale_find)
    await stats.record_result("#a", "alice", _result(Outcome.LOSS, 18))

    async with test_db() as session:
        rows = (await session.execute(select(PlayerStats))).scalars().all()

    assert misses == ["alice"]
    assert len(rows) == 1
    assert rows[0].games_played == 2
    assert (rows[0].wins, rows[0].losses) == (1, 1)


@pytest.mark.asyncio
async def test_channels_keep_separate_records(stats):
    await stats.record_result("#a", "alice", _result(Outcome.WIN, 20))
    await stats.record_result("#b", "alice", _result(Outcome.LOSS, 17))

    assert (await stats.get_player_stats("#a", "alice")).wins == 1
    assert (await stats.get_player_stats("#b", "alice")).losses == 1


@pytest.mark.asyncio
async def test_format_stats(stats):
    assert await stats.format_stats("#a", "Nobody") == no_games_text("nobody")

    await _play(
        stats, "#a", "alice",
        _result(Outcome.WIN, 20),
        _result(Outcome.WIN, 21, blackjack=True),
        _result(Outcome.LOSS, 25, bust=True),
        _result(Outcome.PUSH, 18),
    )
    text = await stats.format_stats("#a", "@Alice")

    assert text.startswith("alice's Stats: 4 games | 2W-1L-1P (66.7% win rate)")
    assert "1 blackjacks (25.0%)" in text
    assert "1 busts (25.0%)" in text
    assert text.endswith("Best streak: 2 💀 1 loss streak")


@pytest.mark.asyncio
async def test_format_detailed_stats(stats):
    assert await stats.format_detailed_stats("#a", "alice") == no_games_text("alice")

    await _play(stats, "#a", "alice", _result(Outcome.WIN, 20), _result(Outcome.WIN, 20), _result(Outcome.WIN, 19))
    text = await stats.format_detailed_stats("#a", "alice")

    assert text.startswith("📊 alice's Detailed Stats:")
    assert "Record: 3W-0L-0P" in text
    assert "Best Hand: 20 | Favorite Hand: 20" in text
    assert "Win Streak: 3 (Best: 3)" in text
    assert "Playing since: " in text


@pytest.mark.asyncio
async def test_leaderboard_order_and_limit(stats):
    await _play(stats, "#a", "alice", *[_result(Outcome.WIN, 20)] * 2)
    await _play(stats, "#a", "bob", *[_result(Outcome.WIN, 20)] * 3)
    await _play(stats, "#a", "carol", *[_result(Outcome.WIN, 20)] * 2)
    await _play(stats, "#b", "dave", *[_result(Outcome.WIN, 20)] * 10)

    top = await stats.get_leaderboard("#a", "wins", limit=5)
    assert [s.username for s in top] == ["bob", "alice", "carol"]

    text = await stats.format_leaderboard("#a", "wins", limit=2)
    assert text == "🏆 Wins Leaderboard: 1. bob: 3 | 2. alice: 2"


@pytest.mark.asyncio
async def test_leaderboard_categories(stats):
    await _play(stats, "#a", "alice", _result(Outcome.WIN, 20), _result(Outcome.LOSS, 17))
    await _play(stats, "#a", "bob", _result(Outcome.WIN, 21, blackjack=True))

    assert await stats.format_leaderboard("#a", "winrate") == \
        "🏆 Win Rate Leaderboard: 1. bob: 100.0% | 2. alice: 50.0%"
    assert await stats.format_leaderboard("#a", "games") == \
        "🏆 Games Played Leaderboard: 1. alice: 2 | 2. bob: 1"
    assert await stats.format_leaderboard("#a", "blackjacks") == \
        "🏆 Blackjacks Leaderboard: 1. bob: 1 | 2. alice: 0"
    assert await stats.format_leaderboard("#a", "streak") == \
        "🏆 Best Win Streak Leaderboard: 1. alice: 1 | 2. bob: 1"


@pytest.mark.asyncio
async def test_empty_leaderboard(stats):
    assert await stats.format_leaderboard("#a") == "No players with recorded games yet."


@pytest.mark.asyncio
async def test_total_stats(stats):
    assert await stats.get_total_stats() == {"total_channels": 0, "total_players": 0, "total_games": 0}

    await _play(stats, "#a", "alice", _result(Outcome.WIN, 20), _result(Outcome.WIN, 20))
    await _play(stats, "#a", "bob", _result(Outcome.LOSS, 18))
    await _play(stats, "#b", "alice", _result(Outcome.PUSH, 19))

    assert await stats.get_total_stats() == {"total_channels": 2, "total_players": 3, "total_games": 4}
