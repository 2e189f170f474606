from datetime import datetime
from typing import Optional
from sqlalchemy import Integer, String, DateTime, UniqueConstraint, JSON
from sqlalchemy.orm import Mapped, mapped_column

from .session import Base


class PlayerStats(Base):
    """Lifetime blackjack record of one player in one channel."""
    __tablename__ = "player_stats"
    __table_args__ = (UniqueConstraint("channel", "username", name="uq_player_stats_channel_username"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel: Mapped[str] = mapped_column(String(128), index=True)
    username: Mapped[str] = mapped_column(String(64), index=True)  # lower-cased

    games_played: Mapped[int] = mapped_column(Integer, default=0)
    wins: Mapped[int] = mapped_column(Integer, default=0)
    losses: Mapped[int] = mapped_column(Integer, default=0)
    pushes: Mapped[int] = mapped_column(Integer, default=0)
    blackjacks: Mapped[int] = mapped_column(Integer, default=0)
    busts: Mapped[int] = mapped_column(Integer, default=0)
    surrenders: Mapped[int] = mapped_column(Integer, default=0)

    # Sum of final hand values that did not bust
    total_hand_value: Mapped[int] = mapped_column(Integer, default=0)
    highest_hand: Mapped[int] = mapped_column(Integer, default=0)

    current_win_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_win_streak: Mapped[int] = mapped_column(Integer, default=0)
    current_loss_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_loss_streak: Mapped[int] = mapped_column(Integer, default=0)

    # Final hand value -> count, e.g. {"20": 4, "18": 2}
    hand_distribution: Mapped[dict] = mapped_column(JSON, default=dict)

    first_game_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_game_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    @property
    def win_rate(self) -> float:
        """Wins over decisive games (pushes excluded), in percent."""
        decisive = self.wins + self.losses
        return self.wins / decisive * 100 if decisive > 0 else 0.0

    @property
    def average_hand_value(self) -> float:
        return self.total_hand_value / self.games_played if self.games_played > 0 else 0.0

    @property
    def blackjack_rate(self) -> float:
        return self.blackjacks / self.games_played * 100 if self.games_played > 0 else 0.0

    @property
    def bust_rate(self) -> float:
        return self.busts / self.games_played * 100 if self.games_played > 0 else 0.0

    @property
    def favorite_hand(self) -> Optional[int]:
        """Most common non-bust final hand value (first seen wins ties)."""
        favorite, best_count = None, 0
        for hand, count in (self.hand_distribution or {}).items():
            if count > best_count:
                favorite, best_count = int(hand), count
        return favorite
