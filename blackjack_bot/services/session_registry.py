"""Registry of blackjack tables, one per chat channel."""

import logging
from typing import Callable, Dict, List, Optional

from blackjack_bot.services.blackjack import GameSession, SessionSnapshot

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Maps a channel identifier to its GameSession.

    Sessions are created lazily and never replaced: a reset clears the
    session in place, so the registry keeps handing out the same object
    for a channel. Code that outlives a command (timers) must look the
    session up again by channel and check its epoch instead of holding on
    to the object.
    """

    def __init__(self, session_factory: Optional[Callable[[str], GameSession]] = None):
        """
        Args:
            session_factory: Builds a new session for a channel. Defaults to
                GameSession with default table settings.
        """
        self._factory = session_factory if session_factory is not None else GameSession
        self._sessions: Dict[str, GameSession] = {}

    def get(self, channel: str) -> Optional[GameSession]:
        return self._sessions.get(channel)

    def get_or_create(self, channel: str) -> GameSession:
        session = self._sessions.get(channel)
        if session is None:
            session = self._factory(channel)
            self._sessions[channel] = session
            logger.info(f"Created blackjack table for {channel}")
        return session

    def reset(self, channel: str) -> bool:
        """Reset a channel's session in place. Returns False if there is none."""
        session = self._sessions.get(channel)
        if session is None:
            return False
        session.reset()
        return True

    def snapshots(self) -> List[SessionSnapshot]:
        return [session.get_status() for session in self._sessions.values()]

    def close(self) -> None:
        """Cancel every pending timer. Used on shutdown."""
        for session in self._sessions.values():
            session.cancel_join_timer()
            session.cancel_dealer_timer()
        logger.info(f"Closed {len(self._sessions)} blackjack table(s)")

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, channel: str) -> bool:
        return channel in self._sessions
