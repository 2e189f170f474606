"""
Player statistics for blackjack.

Keeps a per-channel record for every player (games, W-L-P, blackjacks,
busts, streaks, hand distribution) and formats it for chat.
"""

import logging
from typing import Callable, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from blackjack_bot.database.models import PlayerStats
from blackjack_bot.services.blackjack import Outcome, PlayerResult
from blackjack_bot.utils import utc_now

logger = logging.getLogger(__name__)

LEADERBOARD_CATEGORIES = ["wins", "winrate", "blackjacks", "games", "streak"]

CATEGORY_NAMES = {
    "wins": "Wins",
    "winrate": "Win Rate",
    "blackjacks": "Blackjacks",
    "games": "Games Played",
    "streak": "Best Win Streak",
}

# Sort key per leaderboard category
CATEGORY_KEYS: Dict[str, Callable[[PlayerStats], float]] = {
    "wins": lambda s: s.wins,
    "winrate": lambda s: s.win_rate,
    "blackjacks": lambda s: s.blackjacks,
    "games": lambda s: s.games_played,
    "streak": lambda s: s.longest_win_streak,
}


def normalize_username(username: str) -> str:
    """Stats are keyed case-insensitively, without a leading @."""
    return username.strip().lstrip("@").lower()


def apply_result(stats: PlayerStats, result: PlayerResult) -> None:
    """
    Fold one game result into a player's record.

    Pushes leave both streaks untouched.
    """
    now = utc_now()
    stats.games_played += 1
    stats.last_game_at = now
    if stats.first_game_at is None:
        stats.first_game_at = now

    if result.hand_value and result.hand_value <= 21:
        stats.total_hand_value += result.hand_value
        stats.highest_hand = max(stats.highest_hand, result.hand_value)
        # Reassign so SQLAlchemy notices the JSON change
        distribution = dict(stats.hand_distribution or {})
        key = str(result.hand_value)
        distribution[key] = distribution.get(key, 0) + 1
        stats.hand_distribution = distribution

    if result.outcome == Outcome.WIN:
        stats.wins += 1
        stats.current_win_streak += 1
        stats.current_loss_streak = 0
        stats.longest_win_streak = max(stats.longest_win_streak, stats.current_win_streak)
    elif result.outcome == Outcome.LOSS:
        stats.losses += 1
        stats.current_loss_streak += 1
        stats.current_win_streak = 0
        stats.longest_loss_streak = max(stats.longest_loss_streak, stats.current_loss_streak)
    else:
        stats.pushes += 1

    if result.is_blackjack:
        stats.blackjacks += 1
    if result.is_bust:
        stats.busts += 1
    if result.is_surrender:
        stats.surrenders += 1


def _new_stats(channel: str, username: str) -> PlayerStats:
    return PlayerStats(
        channel=channel,
        username=username,
        games_played=0,
        wins=0,
        losses=0,
        pushes=0,
        blackjacks=0,
        busts=0,
        surrenders=0,
        total_hand_value=0,
        highest_hand=0,
        current_win_streak=0,
        longest_win_streak=0,
        current_loss_streak=0,
        longest_loss_streak=0,
        hand_distribution={},
    )


def no_games_text(username: str) -> str:
    return f"{username}: No games played yet! Type !deal to start your first game."


class StatsService:
    """Stats aggregator backed by the database."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        """
        Args:
            session_factory: Session maker to use. Defaults to the application
                database initialised by init_db().
        """
        self._session_factory = session_factory

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            from blackjack_bot.database.session import get_session
            return get_session()
        return self._session_factory

    async def _find(self, session: AsyncSession, channel: str, username: str) -> Optional[PlayerStats]:
        res = await session.execute(
            select(PlayerStats).where(
                PlayerStats.channel == channel,
                PlayerStats.username == username,
            )
        )
        return res.scalars().first()

    async def _apply(self, channel: str, username: str, result: PlayerResult) -> None:
        async with self._sessions()() as session:
            stats = await self._find(session, channel, username)
            if stats is None:
                stats = _new_stats(channel, username)
                session.add(stats)
            apply_result(stats, result)
            await session.commit()

    async def record_result(self, channel: str, username: str, result: PlayerResult) -> None:
        """
        Record one finished game for a player.

        Two rounds finishing close together can both try to create a new
        player's row. The loser of that race retries against the stored row.
        """
        username = normalize_username(username)
        try:
            await self._apply(channel, username, result)
        except IntegrityError:
            logger.debug(f"[{channel}] stats row for {username} created concurrently, retrying")
            await self._apply(channel, username, result)
        logger.debug(f"[{channel}] recorded {result.outcome.value} for {username}")

    async def get_player_stats(self, channel: str, username: str) -> Optional[PlayerStats]:
        async with self._sessions()() as session:
            return await self._find(session, channel, normalize_username(username))

    async def format_stats(self, channel: str, username: str) -> str:
        """One-line summary used by !stats."""
        username = normalize_username(username)
        stats = await self.get_player_stats(channel, username)
        if stats is None or stats.games_played == 0:
            return no_games_text(username)

        streak_info = ""
        if stats.current_win_streak > 0:
            streak_info = f" 🔥 {stats.current_win_streak} win streak!"
        elif stats.current_loss_streak > 0:
            streak_info = f" 💀 {stats.current_loss_streak} loss streak"

        return (
            f"{username}'s Stats: {stats.games_played} games | "
            f"{stats.wins}W-{stats.losses}L-{stats.pushes}P ({stats.win_rate:.1f}% win rate) | "
            f"{stats.blackjacks} blackjacks ({stats.blackjack_rate:.1f}%) | "
            f"{stats.busts} busts ({stats.bust_rate:.1f}%) | "
            f"Avg hand: {stats.average_hand_value:.1f} | "
            f"Best streak: {stats.longest_win_streak}{streak_info}"
        )

    async def format_detailed_stats(self, channel: str, username: str) -> str:
        """Longer summary used by !mystats."""
        username = normalize_username(username)
        stats = await self.get_player_stats(channel, username)
        if stats is None or stats.games_played == 0:
            return no_games_text(username)

        lines = [
            f"📊 {username}'s Detailed Stats:",
            f"Games: {stats.games_played} | Record: {stats.wins}W-{stats.losses}L-{stats.pushes}P",
            f"Win Rate: {stats.win_rate:.1f}% | Blackjacks: {stats.blackjacks} ({stats.blackjack_rate:.1f}%)",
            f"Busts: {stats.busts} ({stats.bust_rate:.1f}%) | Avg Hand: {stats.average_hand_value:.1f}",
            f"Best Hand: {stats.highest_hand} | Favorite Hand: {stats.favorite_hand or 'N/A'}",
            f"Win Streak: {stats.current_win_streak} (Best: {stats.longest_win_streak})",
        ]
        if stats.first_game_at:
            lines.append(f"Playing since: {stats.first_game_at:%Y-%m-%d}")

        return " | ".join(lines)

    async def get_leaderboard(self, channel: str, category: str = "wins", limit: int = 5) -> List[PlayerStats]:
        """Top players of a channel for a category, players without games excluded."""
        key = CATEGORY_KEYS.get(category, CATEGORY_KEYS["wins"])
        async with self._sessions()() as session:
            res = await session.execute(
                select(PlayerStats).where(
                    PlayerStats.channel == channel,
                    PlayerStats.games_played > 0,
                )
            )
            players = list(res.scalars().all())

        # Stable sort keeps first-recorded players ahead on ties
        players.sort(key=lambda s: (-key(s), s.id))
        return players[:limit]

    async def format_leaderboard(self, channel: str, category: str = "wins", limit: int = 5) -> str:
        """Leaderboard line used by !leaderboard."""
        players = await self.get_leaderboard(channel, category, limit)
        if not players:
            return "No players with recorded games yet."

        entries = []
        for index, stats in enumerate(players, start=1):
            if category == "winrate":
                value = f"{stats.win_rate:.1f}%"
            elif category == "streak":
                value = stats.longest_win_streak
            elif category == "games":
                value = stats.games_played
            elif category == "blackjacks":
                value = stats.blackjacks
            else:
                value = stats.wins
            entries.append(f"{index}. {stats.username}: {value}")

        category_name = CATEGORY_NAMES.get(category, "Wins")
        return f"🏆 {category_name} Leaderboard: {' | '.join(entries)}"

    async def get_total_stats(self) -> Dict[str, int]:
        """Totals across all channels, for the dashboard."""
        async with self._sessions()() as session:
            res = await session.execute(
                select(
                    func.count(func.distinct(PlayerStats.channel)),
                    func.count(PlayerStats.id),
                    func.coalesce(func.sum(PlayerStats.games_played), 0),
                )
            )
            channels, players, games = res.one()

        return {
            "total_channels": int(channels),
            "total_players": int(players),
            "total_games": int(games),
        }
