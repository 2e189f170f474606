"""
Chat command dispatcher for multiplayer blackjack.

Turns chat lines into table operations and table results into chat
replies. Every command is handled synchronously from parse to queued
reply, so two commands can never interleave on the event loop. Work that
has to wait (database, delivery) runs in background tasks.

Round flow:
    !deal -> join window (timer) or full table -> cards dealt
    -> players !hit / !stand (auto-play timer as a deadline)
    -> dealer think delay (timer) -> results -> auto-reset (timer)
"""

import asyncio
import logging
from typing import Awaitable, Optional, Set

from blackjack_bot.services.advertisements import AdvertisementService
from blackjack_bot.services.blackjack import GameSession, GameState, PlayerResult
from blackjack_bot.services.commands import Command, IncomingMessage, ParsedCommand, parse_command
from blackjack_bot.services.metrics import track_player_outcome, track_round_finished
from blackjack_bot.services.outbox import ChatOutbox
from blackjack_bot.services.session_registry import SessionRegistry
from blackjack_bot.services.stats import LEADERBOARD_CATEGORIES, StatsService
from blackjack_bot.services.timers import start_timer

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "🃏 Blackjack Commands: !deal (start game), !join (join game), !hit (take card), "
    "!stand (keep current hand), !status (game info), !stats [player] (view stats), "
    "!mystats (your stats), !leaderboard [category] (top players). "
    "Goal: Get as close to 21 as possible without going over!"
)
NO_GAME_TEXT = "No active game. Use !deal to start a new game."
STATS_UNAVAILABLE_TEXT = "Stats are unavailable right now, try again later."


class CommandDispatcher:
    """Routes chat commands to the table of the channel they were typed in."""

    def __init__(
        self,
        outbox: ChatOutbox,
        stats: StatsService,
        registry: Optional[SessionRegistry] = None,
        ads: Optional[AdvertisementService] = None,
        leaderboard_size: int = 5,
    ):
        self.outbox = outbox
        self.stats = stats
        self.registry = registry if registry is not None else SessionRegistry()
        self.ads = ads
        self.leaderboard_size = leaderboard_size
        self._background: Set[asyncio.Task] = set()
        self._paused = False

    # --- connection state --------------------------------------------------

    @property
    def is_paused(self) -> bool:
        return self._paused

    def pause(self) -> None:
        """Stop taking commands, e.g. while the chat connection is down."""
        if not self._paused:
            logger.warning("Dispatcher paused, chat commands are ignored until resumed")
        self._paused = True

    def resume(self) -> None:
        if self._paused:
            logger.info("Dispatcher resumed")
        self._paused = False

    # --- entry point -------------------------------------------------------

    def handle_message(self, message: IncomingMessage) -> Optional[Command]:
        """
        Process one chat line.

        Args:
            message: The chat line with its channel, author and privileges.

        Returns:
            The command that was handled, or None for plain chat, unknown
            commands and anything received while paused.
        """
        if self._paused:
            logger.debug(f"[{message.channel}] paused, ignoring message from {message.username}")
            return None

        if self.ads is not None:
            advertisement = self.ads.track_message(message.channel)
            if advertisement:
                self._say(message.channel, advertisement)

        parsed = parse_command(message.text)
        if parsed is None:
            return None

        logger.info(f"[{message.channel}] {message.username}: !{parsed.command.value} {' '.join(parsed.args)}".rstrip())
        self._route(parsed, message)
        return parsed.command

    def _route(self, parsed: ParsedCommand, message: IncomingMessage) -> None:
        command = parsed.command
        if command == Command.DEAL:
            self._handle_deal(message)
        elif command == Command.JOIN:
            self._handle_join(message)
        elif command == Command.HIT:
            self._handle_hit(message)
        elif command == Command.STAND:
            self._handle_stand(message)
        elif command == Command.STATUS:
            self._handle_status(message)
        elif command == Command.RESET:
            self._handle_reset(message)
        elif command == Command.HELP:
            self._reply(message, HELP_TEXT)
        elif command == Command.STATS:
            self._handle_stats(message, parsed.args)
        elif command == Command.MYSTATS:
            self._handle_mystats(message)
        elif command == Command.LEADERBOARD:
            self._handle_leaderboard(message, parsed.args)
        else:
            logger.error(f"No handler for command {command}")

    # --- table commands ----------------------------------------------------

    def _handle_deal(self, message: IncomingMessage) -> None:
        session = self.registry.get_or_create(message.channel)

        if session.state != GameState.WAITING:
            self._reply(message, "A game is already in progress! Use !join to join or wait for it to finish.")
            return
        if session.players:
            self._reply(message, "A game is already starting! Type !join to play.")
            return

        result = session.add_player(message.username)
        if not result.success:
            self._reply(message, result.message)
            return

        self._say(
            message.channel,
            f"🃏 {message.username} started a new blackjack game! Type !join to play "
            f"(max {session.max_players} players). Game starts in "
            f"{session.join_window_seconds:g} seconds or when ready."
        )

        if len(session.players) >= session.max_players:
            self._start_round(session)
        else:
            self._arm_join_timer(session)

    def _handle_join(self, message: IncomingMessage) -> None:
        session = self.registry.get_or_create(message.channel)

        # Joining an empty table opens it, same as !deal
        if session.state == GameState.WAITING and not session.players:
            self._handle_deal(message)
            return

        result = session.add_player(message.username)
        if not result.success:
            self._reply(message, result.message)
            return

        self._reply(message, f"{result.message} ({len(session.players)}/{session.max_players} players)")

        if len(session.players) >= session.max_players:
            session.cancel_join_timer()
            self._start_round(session)

    def _handle_hit(self, message: IncomingMessage) -> None:
        session = self.registry.get(message.channel)
        if session is None:
            self._reply(message, NO_GAME_TEXT)
            return
        self._after_player_action(session, message, session.hit(message.username))

    def _handle_stand(self, message: IncomingMessage) -> None:
        session = self.registry.get(message.channel)
        if session is None:
            self._reply(message, NO_GAME_TEXT)
            return
        self._after_player_action(session, message, session.stand(message.username))

    def _after_player_action(self, session: GameSession, message: IncomingMessage, result) -> None:
        if not result.success:
            logger.debug(f"[{session.channel}] {message.username} rejected: {result.reason}")
            self._reply(message, result.message)
            return

        self._say(session.channel, result.message)
        if session.all_players_finished():
            self._begin_dealer_turn(session)

    def _handle_status(self, message: IncomingMessage) -> None:
        session = self.registry.get(message.channel)
        if session is None:
            self._reply(message, NO_GAME_TEXT)
            return

        status = session.get_status()
        text = f"Game Status: {status.state.value}"
        if status.player_count > 0:
            text += f" | Players ({status.player_count}): {status.player_list}"
        if status.can_join:
            text += " | Type !join to play!"
        self._reply(message, text)

    def _handle_reset(self, message: IncomingMessage) -> None:
        if not message.is_privileged:
            self._reply(message, "Only moderators can reset the game.")
            return

        if self.registry.reset(message.channel):
            logger.info(f"[{message.channel}] table reset by {message.username}")
            self._reply(message, "Game has been reset.")
        else:
            self._reply(message, "No active game to reset.")

    # --- stats commands ----------------------------------------------------

    def _handle_stats(self, message: IncomingMessage, args) -> None:
        target = args[0] if args else message.username
        self._reply_later(message, self.stats.format_stats(message.channel, target))

    def _handle_mystats(self, message: IncomingMessage) -> None:
        self._reply_later(message, self.stats.format_detailed_stats(message.channel, message.username))

    def _handle_leaderboard(self, message: IncomingMessage, args) -> None:
        category = args[0] if args else "wins"
        if category not in LEADERBOARD_CATEGORIES:
            self._reply(message, f"Valid leaderboard categories: {', '.join(LEADERBOARD_CATEGORIES)}")
            return
        self._reply_later(
            message,
            self.stats.format_leaderboard(message.channel, category, self.leaderboard_size),
        )

    # --- round automation --------------------------------------------------

    def _start_round(self, session: GameSession) -> None:
        result = session.deal_initial_cards()
        if not result.success:
            self._say(session.channel, result.message)
            return

        self._say(session.channel, f"🎰 {result.message}")
        self._say(session.channel, f"Dealer shows: {session.dealer_hand.cards[0]} [?]")
        for username, player in session.players.items():
            line = f"{username}: {player.hand} = {player.hand.value}"
            if player.hand.is_blackjack:
                line += " - BLACKJACK! 🎉"
            self._say(session.channel, line)

        if session.all_players_finished():
            self._begin_dealer_turn(session)
        else:
            self._arm_dealer_timer(session, session.auto_play_seconds, self._on_auto_play_timeout, "autoplay")

    def _begin_dealer_turn(self, session: GameSession) -> None:
        """All players are done: let the dealer play after the think delay."""
        session.cancel_dealer_timer()
        if session.dealer_delay_seconds <= 0:
            self._finish_round(session)
        else:
            self._arm_dealer_timer(session, session.dealer_delay_seconds, self._on_dealer_delay, "dealer")

    def _finish_round(self, session: GameSession) -> None:
        dealer = session.play_dealer()
        if not dealer.success:
            logger.warning(f"[{session.channel}] dealer could not play: {dealer.reason}")
            return

        results = session.get_results()
        if not results.success:
            logger.error(f"[{session.channel}] no results after dealer turn: {results.reason}")
            return

        self._spawn(self._record_round(session.channel, results.player_results))

        self._say(session.channel, "🎲 Game Over! Results:")
        for line in results.lines:
            self._say(session.channel, line)

        self._arm_dealer_timer(session, session.reset_delay_seconds, self._on_reset_timeout, "reset")

    def _arm_join_timer(self, session: GameSession) -> None:
        channel, epoch = session.channel, session.epoch
        session.arm_join_timer(start_timer(
            session.join_window_seconds,
            lambda: self._on_join_timeout(channel, epoch),
            name=f"bj-join:{channel}",
        ))

    def _arm_dealer_timer(self, session: GameSession, delay: float, callback, label: str) -> None:
        channel, epoch = session.channel, session.epoch
        session.arm_dealer_timer(start_timer(
            delay,
            lambda: callback(channel, epoch),
            name=f"bj-{label}:{channel}",
        ))

    def _live_session(self, channel: str, epoch: int) -> Optional[GameSession]:
        """Session a timer was armed for, or None if it was reset since."""
        session = self.registry.get(channel)
        if session is None or session.epoch != epoch:
            logger.debug(f"[{channel}] stale timer for epoch {epoch} ignored")
            return None
        return session

    def _on_join_timeout(self, channel: str, epoch: int) -> None:
        session = self._live_session(channel, epoch)
        if session is None or session.state != GameState.WAITING or not session.players:
            return
        self._start_round(session)

    def _on_auto_play_timeout(self, channel: str, epoch: int) -> None:
        session = self._live_session(channel, epoch)
        if session is None or session.state != GameState.PLAYING:
            return
        self._say(channel, "⏰ Time's up! Dealer is playing...")
        self._finish_round(session)

    def _on_dealer_delay(self, channel: str, epoch: int) -> None:
        session = self._live_session(channel, epoch)
        if session is None or session.state != GameState.PLAYING:
            return
        self._finish_round(session)

    def _on_reset_timeout(self, channel: str, epoch: int) -> None:
        session = self._live_session(channel, epoch)
        if session is None or session.state != GameState.FINISHED:
            return
        session.reset()
        logger.info(f"[{channel}] table ready for a new game")

    # --- background work ---------------------------------------------------

    async def _record_round(self, channel: str, player_results: list[PlayerResult]) -> None:
        for result in player_results:
            try:
                await self.stats.record_result(channel, result.username, result)
            except Exception as e:
                logger.error(f"[{channel}] failed to record stats for {result.username}: {e}")
            await track_player_outcome(result.outcome.value)
        await track_round_finished(len(player_results))

    def _reply_later(self, message: IncomingMessage, text: Awaitable[str]) -> None:
        async def _reply() -> None:
            try:
                reply = await text
            except Exception as e:
                logger.error(f"[{message.channel}] stats lookup failed: {e}")
                reply = STATS_UNAVAILABLE_TEXT
            self._reply(message, reply)

        self._spawn(_reply())

    def _spawn(self, coro: Awaitable) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def wait_idle(self) -> None:
        """Wait for background work and queued replies to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        await self.outbox.drain()

    async def close(self) -> None:
        """Cancel table timers and let pending work finish."""
        self.pause()
        self.registry.close()
        await self.wait_idle()

    # --- output ------------------------------------------------------------

    def _say(self, channel: str, text: str) -> None:
        self.outbox.send(channel, text)

    def _reply(self, message: IncomingMessage, text: str) -> None:
        self._say(message.channel, f"@{message.username} {text}")
