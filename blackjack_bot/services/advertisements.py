"""Periodic game advertisements in chat.

Every chat line in a channel is counted. Once enough time has passed since
the last advertisement and enough messages were posted in between, the
next message of the rotation is sent.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_AD_MESSAGES = [
    "🃏 Want to play blackjack? Type !deal to start a game! Up to 6 players can join with !join. Try to get 21 without busting! 🎰",
    "🎲 Ready for some blackjack action? Use !deal to start, !join to play, !hit for cards, !stand to hold. Check your stats with !mystats! 📊",
    "♠️ Blackjack time! Start with !deal, join with !join, play with !hit/!stand. See who's winning with !leaderboard! 🏆",
    "🎯 Test your luck at blackjack! Commands: !deal (start), !join (play), !hit (card), !stand (hold), !stats (view stats) 🃏",
]


@dataclass
class AdConfig:
    enabled: bool = True
    interval_minutes: int = 5
    min_messages_since_last_ad: int = 10
    messages: List[str] = field(default_factory=lambda: list(DEFAULT_AD_MESSAGES))


def _check_setting(key: str, value):
    """Validate one AdConfig field coming from outside, e.g. a JSON body."""
    if key == "enabled":
        if not isinstance(value, bool):
            raise ValueError("enabled must be true or false")
        return value

    if key in ("interval_minutes", "min_messages_since_last_ad"):
        # bool is an int subclass
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{key} must be a number")
        if value < 0:
            raise ValueError(f"{key} must not be negative")
        return value

    if key == "messages":
        if not isinstance(value, list) or not all(isinstance(m, str) for m in value):
            raise ValueError("messages must be a list of strings")
        return list(value)

    raise AttributeError(f"Unknown advertisement setting: {key}")


@dataclass
class AdState:
    """Per-channel advertisement bookkeeping."""
    last_ad_time: float = 0.0
    messages_since_ad: int = 0
    last_ad_index: int = -1


class AdvertisementService:
    """Decides when a channel is due for an advertisement."""

    def __init__(self, config: Optional[AdConfig] = None, clock: Callable[[], float] = time.time):
        self.config = config if config is not None else AdConfig()
        self._clock = clock
        self._state: Dict[str, AdState] = {}

    def track_message(self, channel: str) -> Optional[str]:
        """
        Count a chat line and pick an advertisement if one is due.

        Returns:
            The advertisement text to send, or None.
        """
        if not self.config.enabled or not self.config.messages:
            return None

        state = self._state.setdefault(channel, AdState())
        state.messages_since_ad += 1

        now = self._clock()
        interval = self.config.interval_minutes * 60
        if now - state.last_ad_time < interval:
            return None
        if state.messages_since_ad < self.config.min_messages_since_last_ad:
            return None

        state.last_ad_index = (state.last_ad_index + 1) % len(self.config.messages)
        state.last_ad_time = now
        state.messages_since_ad = 0
        logger.info(f"Advertisement #{state.last_ad_index} due in {channel}")
        return self.config.messages[state.last_ad_index]

    def update_config(self, **changes) -> AdConfig:
        """
        Change advertisement settings at runtime.

        Every value is checked before any is applied, so a rejected update
        leaves the config untouched.

        Raises:
            AttributeError: Unknown setting name.
            ValueError: Value of the wrong type or out of range.
        """
        checked = {key: _check_setting(key, value) for key, value in changes.items()}
        for key, value in checked.items():
            setattr(self.config, key, value)
        logger.info(f"Advertisement config updated: {self.config}")
        return self.config

    def get_stats(self) -> Dict[str, dict]:
        now = self._clock()
        interval = self.config.interval_minutes * 60
        return {
            channel: {
                "messages_since_last_ad": state.messages_since_ad,
                "last_ad_time": state.last_ad_time,
                "time_since_last_ad": now - state.last_ad_time,
                "next_ad_in": max(0.0, interval - (now - state.last_ad_time)),
            }
            for channel, state in self._state.items()
        }
