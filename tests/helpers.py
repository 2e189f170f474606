"""Fakes and builders shared by the test suite."""

from typing import List, Optional

from blackjack_bot.services.blackjack import Card, Deck
from blackjack_bot.services.commands import IncomingMessage
from blackjack_bot.services.outbox import ChatSender
from blackjack_bot.services.stats import normalize_username


def card(rank: str, suit: str = "spades") -> Card:
    return Card(suit, rank)


class StackedDeck(Deck):
    """Deck that deals the given cards in list order, restarting when empty."""

    def __init__(self, cards: List[Card]):
        self._stack = list(cards)
        super().__init__()

    def reset(self) -> None:
        self.cards = list(reversed(self._stack))


class RecordingSender(ChatSender):
    """Collects sent messages instead of delivering them."""

    def __init__(self, fail_texts: Optional[set] = None):
        self.sent = []
        self.fail_texts = fail_texts or set()

    async def send(self, channel: str, text: str) -> None:
        if text in self.fail_texts:
            raise ConnectionError("chat connection lost")
        self.sent.append((channel, text))

    def texts(self, channel: Optional[str] = None) -> List[str]:
        return [text for ch, text in self.sent if channel is None or ch == channel]


class FakeStats:
    """Stats collaborator that remembers what it was told."""

    def __init__(self):
        self.recorded = []

    async def record_result(self, channel, username, result):
        self.recorded.append((channel, username, result))

    async def format_stats(self, channel, username):
        return f"stats for {normalize_username(username)}"

    async def format_detailed_stats(self, channel, username):
        return f"detailed stats for {normalize_username(username)}"

    async def format_leaderboard(self, channel, category="wins", limit=5):
        return f"{category} leaderboard (top {limit})"

    async def get_total_stats(self):
        return {"total_channels": 1, "total_players": len(self.recorded), "total_games": len(self.recorded)}


def chat(channel: str, username: str, text: str, **flags) -> IncomingMessage:
    return IncomingMessage(channel=channel, username=username, text=text, **flags)
