"""Pytest configuration and fixtures."""

from typing import AsyncGenerator, List, Optional

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from blackjack_bot.database.session import Base
from blackjack_bot.database import models  # noqa: F401
from blackjack_bot.services.blackjack import Card, GameSession
from blackjack_bot.services.dispatcher import CommandDispatcher
from blackjack_bot.services.outbox import ChatOutbox
from blackjack_bot.services.session_registry import SessionRegistry
from tests.helpers import FakeStats, RecordingSender, StackedDeck


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def fake_stats() -> FakeStats:
    return FakeStats()


@pytest.fixture
def make_dispatcher(sender, fake_stats):
    """Build a dispatcher with short timers and an optional stacked deck."""

    def _make(
        stack: Optional[List[Card]] = None,
        max_players: int = 6,
        join_window_seconds: float = 0.05,
        dealer_delay_seconds: float = 0.01,
        reset_delay_seconds: float = 0.05,
        auto_play_seconds: float = 0.2,
        stats=None,
        ads=None,
    ) -> CommandDispatcher:
        def session_factory(channel: str) -> GameSession:
            session = GameSession(
                channel,
                max_players=max_players,
                join_window_seconds=join_window_seconds,
                dealer_delay_seconds=dealer_delay_seconds,
                reset_delay_seconds=reset_delay_seconds,
                auto_play_seconds=auto_play_seconds,
            )
            if stack is not None:
                session.deck = StackedDeck(stack)
            return session

        return CommandDispatcher(
            outbox=ChatOutbox(sender),
            stats=stats if stats is not None else fake_stats,
            registry=SessionRegistry(session_factory),
            ads=ads,
        )

    return _make


@pytest.fixture
async def test_db() -> AsyncGenerator:
    """In-memory database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, expire_on_commit=False)

    yield session_maker

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()
