"""
Multiplayer blackjack game engine.

One GameSession runs one shared round per chat channel: players join
while the table is waiting, everybody gets two cards, each player hits or
stands independently and the dealer plays once all players are done.

Dealer rules: hit on 16 or less, stand on any 17 (soft 17 included).
"""

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from blackjack_bot.services.timers import cancel_timer

logger = logging.getLogger(__name__)


class GameState(Enum):
    """Lifecycle state of a table."""
    WAITING = "waiting"
    DEALING = "dealing"
    PLAYING = "playing"
    DEALER_TURN = "dealer_turn"
    FINISHED = "finished"


class PlayerStatus(Enum):
    """Status of a single player within a round."""
    PLAYING = "playing"
    STANDING = "standing"
    BUSTED = "busted"


class Outcome(Enum):
    """Final outcome of a player's hand against the dealer."""
    WIN = "win"
    LOSS = "loss"
    PUSH = "push"


SUITS = ["hearts", "diamonds", "clubs", "spades"]
RANKS = ["A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K"]
SUIT_SYMBOLS = {"hearts": "♥️", "diamonds": "♦️", "clubs": "♣️", "spades": "♠️"}

DECK_SIZE = len(SUITS) * len(RANKS)
BLACKJACK_VALUE = 21


@dataclass(frozen=True)
class Card:
    """A playing card with suit and rank."""
    suit: str  # hearts, diamonds, clubs, spades
    rank: str  # A, 2-10, J, Q, K

    @property
    def value(self) -> int:
        """
        Get the point value of the card.

        Face cards (J, Q, K) = 10
        Number cards = face value
        Ace = 11 (soft value, adjusted in Hand.value)
        """
        if self.rank in ("J", "Q", "K"):
            return 10
        elif self.rank == "A":
            return 11
        else:
            return int(self.rank)

    def __str__(self) -> str:
        return f"{self.rank}{SUIT_SYMBOLS[self.suit]}"


class Deck:
    """
    A 52-card deck dealt from one end.

    The deck rebuilds and reshuffles itself when it runs out, so deal()
    never fails. Cards dealt before the reshuffle are not tracked, which
    means the 52-card accounting only holds between two rebuilds.
    """

    def __init__(self, random_func: Optional[Callable[[], float]] = None):
        """
        Args:
            random_func: Optional random function for testing determinism.
        """
        self._random = random_func or random.random
        self.cards: List[Card] = []
        self.reset()

    def reset(self) -> None:
        """Rebuild a full deck and shuffle it."""
        self.cards = [Card(suit, rank) for suit in SUITS for rank in RANKS]
        self.shuffle()

    def shuffle(self) -> None:
        """Shuffle the deck using Fisher-Yates algorithm."""
        for i in range(len(self.cards) - 1, 0, -1):
            j = int(self._random() * (i + 1))
            self.cards[i], self.cards[j] = self.cards[j], self.cards[i]

    def deal(self) -> Card:
        """Remove and return the top card, reshuffling a fresh deck if empty."""
        if not self.cards:
            logger.debug("Deck exhausted, rebuilding and reshuffling")
            self.reset()
        return self.cards.pop()

    def __len__(self) -> int:
        return len(self.cards)


@dataclass
class Hand:
    """A hand of cards held by a player or the dealer."""
    cards: List[Card] = field(default_factory=list)

    def _resolve(self) -> tuple:
        """Return (total, aces still counted as 11)."""
        total = sum(card.value for card in self.cards)
        aces = sum(1 for card in self.cards if card.rank == "A")

        # Convert aces from 11 to 1 only as far as needed to avoid busting
        while total > BLACKJACK_VALUE and aces > 0:
            total -= 10
            aces -= 1

        return total, aces

    @property
    def value(self) -> int:
        """
        Calculate the total value of the hand.

        Aces are counted as 11 unless that would bust the hand,
        in which case they count as 1.
        """
        return self._resolve()[0]

    @property
    def is_soft(self) -> bool:
        """Check if the hand still counts an ace as 11."""
        return self._resolve()[1] > 0

    @property
    def is_blackjack(self) -> bool:
        """
        Check if the hand is a natural Blackjack.

        A Blackjack is exactly 21 with the first two cards.
        """
        return len(self.cards) == 2 and self.value == BLACKJACK_VALUE

    @property
    def is_busted(self) -> bool:
        """Check if the hand has busted (value > 21)."""
        return self.value > BLACKJACK_VALUE

    @property
    def display_value(self) -> str:
        value = self.value
        return f"{value} (BUST)" if value > BLACKJACK_VALUE else str(value)

    def add_card(self, card: Card) -> None:
        """Add a card to the hand."""
        self.cards.append(card)

    def __str__(self) -> str:
        return " ".join(str(card) for card in self.cards)


@dataclass
class PlayerEntry:
    """A player seated at the table."""
    username: str
    hand: Hand = field(default_factory=Hand)
    status: PlayerStatus = PlayerStatus.PLAYING


@dataclass
class PlayerResult:
    """Outcome of one player's hand, as handed to the stats store."""
    username: str
    hand_value: int
    outcome: Outcome
    is_blackjack: bool
    is_bust: bool
    is_surrender: bool = False
    hand: str = ""


@dataclass
class GameResult:
    """
    Result of a session operation.

    Failures are returned, never raised: `reason` is a short machine
    readable code and `message` is the text shown to the player.
    """
    success: bool
    message: str = ""
    reason: Optional[str] = None
    lines: List[str] = field(default_factory=list)
    player_results: List[PlayerResult] = field(default_factory=list)

    @classmethod
    def fail(cls, reason: str, message: str) -> "GameResult":
        return cls(success=False, message=message, reason=reason)


@dataclass
class SessionSnapshot:
    """Read-only view of a session for status replies and the dashboard."""
    channel: str
    state: GameState
    player_count: int
    players: List[str]
    can_join: bool
    max_players: int
    dealer_up_card: Optional[str] = None

    @property
    def player_list(self) -> str:
        return ", ".join(self.players)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channel": self.channel,
            "state": self.state.value,
            "player_count": self.player_count,
            "players": list(self.players),
            "can_join": self.can_join,
            "max_players": self.max_players,
            "dealer_up_card": self.dealer_up_card,
        }


class GameSession:
    """
    State machine for one channel's blackjack table.

    waiting -> dealing -> playing -> dealer_turn -> finished -> waiting

    The session also holds the two timer handles armed by the dispatcher
    (join window and dealer timer) and an epoch counter that changes on
    every reset, so callbacks armed before a reset can tell they are stale.
    """

    DEALER_STAND_VALUE = 17
    DEFAULT_MAX_PLAYERS = 6

    def __init__(
        self,
        channel: str,
        max_players: int = DEFAULT_MAX_PLAYERS,
        join_window_seconds: float = 30.0,
        dealer_delay_seconds: float = 5.0,
        reset_delay_seconds: float = 5.0,
        auto_play_seconds: float = 60.0,
        random_func: Optional[Callable[[], float]] = None,
    ):
        self.channel = channel
        self.max_players = max_players
        self.join_window_seconds = join_window_seconds
        self.dealer_delay_seconds = dealer_delay_seconds
        self.reset_delay_seconds = reset_delay_seconds
        self.auto_play_seconds = auto_play_seconds

        self.deck = Deck(random_func)
        self.players: Dict[str, PlayerEntry] = {}
        self.dealer_hand = Hand()
        self.state = GameState.WAITING
        self.epoch = 0

        self.join_timer = None
        self.dealer_timer = None

    # --- joining -----------------------------------------------------------

    def can_join(self) -> bool:
        return self.state == GameState.WAITING and len(self.players) < self.max_players

    def add_player(self, username: str) -> GameResult:
        """
        Seat a player at a waiting table.

        Args:
            username: Chat username, kept in the case the transport gave it.

        Returns:
            GameResult; fails with reason "full", "already joined" or
            "not joinable" without touching the table.
        """
        if self.state != GameState.WAITING:
            return GameResult.fail("not joinable", "Cannot join game right now.")

        if username in self.players:
            return GameResult.fail("already joined", "You're already in the game!")

        if len(self.players) >= self.max_players:
            return GameResult.fail(
                "full", f"The table is full ({self.max_players} players max)."
            )

        self.players[username] = PlayerEntry(username=username)
        return GameResult(success=True, message=f"{username} joined the game!")

    # --- dealing -----------------------------------------------------------

    def deal_initial_cards(self) -> GameResult:
        """
        Deal two cards to every player and the dealer.

        Cards go round-robin in join order: each player, then the dealer,
        twice. Players dealt a natural blackjack stand immediately.
        """
        if self.state != GameState.WAITING:
            return GameResult.fail("not waiting", "Cards have already been dealt.")

        if not self.players:
            return GameResult.fail("no players", "No players to deal to.")

        self.state = GameState.DEALING
        self.deck.reset()

        for _ in range(2):
            for player in self.players.values():
                player.hand.add_card(self.deck.deal())
            self.dealer_hand.add_card(self.deck.deal())

        for player in self.players.values():
            if player.hand.is_blackjack:
                player.status = PlayerStatus.STANDING

        self.state = GameState.PLAYING
        logger.info(f"[{self.channel}] dealt to {len(self.players)} player(s)")
        return GameResult(success=True, message="Cards dealt! Players can now !hit or !stand")

    # --- player actions ----------------------------------------------------

    def _active_player(self, username: str):
        """Return (player, None) if the user may act, else (None, failure)."""
        if self.state != GameState.PLAYING:
            return None, GameResult.fail("not your turn window", "No active round to play.")

        player = self.players.get(username)
        if player is None:
            return None, GameResult.fail("not in game", "You're not in this game.")

        if player.status != PlayerStatus.PLAYING:
            return None, GameResult.fail("already finished", "You've already finished your turn.")

        return player, None

    def hit(self, username: str) -> GameResult:
        """Deal one more card to a player; a hand over 21 busts."""
        player, failure = self._active_player(username)
        if failure:
            return failure

        player.hand.add_card(self.deck.deal())

        if player.hand.is_busted:
            player.status = PlayerStatus.BUSTED

        return GameResult(
            success=True,
            message=f"{username}: {player.hand} = {player.hand.display_value}",
        )

    def stand(self, username: str) -> GameResult:
        player, failure = self._active_player(username)
        if failure:
            return failure

        player.status = PlayerStatus.STANDING
        return GameResult(
            success=True,
            message=f"{username} stands with {player.hand} = {player.hand.value}",
        )

    def all_players_finished(self) -> bool:
        return all(p.status != PlayerStatus.PLAYING for p in self.players.values())

    # --- dealer and results ------------------------------------------------

    def play_dealer(self) -> GameResult:
        """
        Play the dealer's hand.

        Dealer draws until reaching 17 or higher, then the round is finished.
        """
        if self.state != GameState.PLAYING:
            return GameResult.fail("dealer not ready", "Cannot play dealer now.")

        self.state = GameState.DEALER_TURN

        while self.dealer_hand.value < self.DEALER_STAND_VALUE:
            self.dealer_hand.add_card(self.deck.deal())

        self.state = GameState.FINISHED
        return GameResult(success=True)

    def get_results(self) -> GameResult:
        """
        Compare every player against the dealer.

        Returns:
            GameResult with display `lines` (dealer first, then players in
            join order) and one PlayerResult per player.
        """
        if self.state != GameState.FINISHED:
            return GameResult.fail("not finished", "Game not finished yet.")

        dealer_value = self.dealer_hand.value
        dealer_busted = self.dealer_hand.is_busted

        lines = [f"Dealer: {self.dealer_hand} = {self.dealer_hand.display_value}"]
        player_results = []

        for username, player in self.players.items():
            player_value = player.hand.value
            is_bust = player.status == PlayerStatus.BUSTED

            if is_bust:
                outcome, label = Outcome.LOSS, "LOSE (Bust)"
            elif dealer_busted:
                outcome, label = Outcome.WIN, "WIN"
            elif player_value > dealer_value:
                outcome, label = Outcome.WIN, "WIN"
            elif player_value == dealer_value:
                outcome, label = Outcome.PUSH, "PUSH"
            else:
                outcome, label = Outcome.LOSS, "LOSE"

            lines.append(f"{username}: {player.hand} = {player_value} - {label}")
            player_results.append(PlayerResult(
                username=username,
                hand_value=player_value,
                outcome=outcome,
                is_blackjack=player.hand.is_blackjack,
                is_bust=is_bust,
                hand=str(player.hand),
            ))

        return GameResult(success=True, lines=lines, player_results=player_results)

    # --- lifecycle ---------------------------------------------------------

    def arm_join_timer(self, timer) -> None:
        cancel_timer(self.join_timer)
        self.join_timer = timer

    def arm_dealer_timer(self, timer) -> None:
        cancel_timer(self.dealer_timer)
        self.dealer_timer = timer

    def cancel_join_timer(self) -> None:
        cancel_timer(self.join_timer)
        self.join_timer = None

    def cancel_dealer_timer(self) -> None:
        cancel_timer(self.dealer_timer)
        self.dealer_timer = None

    def reset(self) -> None:
        """
        Clear the table back to an empty waiting state.

        Cancels both timers and bumps the epoch. Safe to call any number
        of times.
        """
        self.cancel_join_timer()
        self.cancel_dealer_timer()
        self.players.clear()
        self.dealer_hand = Hand()
        self.deck.reset()
        self.state = GameState.WAITING
        self.epoch += 1

    def get_status(self) -> SessionSnapshot:
        up_card = None
        if self.dealer_hand.cards and self.state != GameState.WAITING:
            up_card = str(self.dealer_hand.cards[0])

        return SessionSnapshot(
            channel=self.channel,
            state=self.state,
            player_count=len(self.players),
            players=list(self.players),
            can_join=self.can_join(),
            max_players=self.max_players,
            dealer_up_card=up_card,
        )
