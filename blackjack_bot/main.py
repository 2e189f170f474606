import asyncio
import logging
from functools import partial
from aiogram import Bot, Dispatcher
from aiogram.fsm.storage.memory import MemoryStorage

from blackjack_bot.config import Settings, settings
from blackjack_bot.logger import setup_logging
from blackjack_bot.database.session import init_db, close_db
from blackjack_bot.handlers.chat import router as chat_router, TelegramSender
from blackjack_bot.middleware.logging import MessageLoggerMiddleware
from blackjack_bot.services.advertisements import AdConfig, AdvertisementService
from blackjack_bot.services.blackjack import GameSession
from blackjack_bot.services.dispatcher import CommandDispatcher
from blackjack_bot.services.outbox import ChatOutbox, LoggingSender, MetricsSender
from blackjack_bot.services.session_registry import SessionRegistry
from blackjack_bot.services.stats import StatsService
from blackjack_bot.services.status_server import StatusServer

# Logging is configured in main()
logger = logging.getLogger(__name__)


def build_blackjack(bot: Bot, config: Settings = settings) -> CommandDispatcher:
    """Wire the blackjack dispatcher with its collaborators."""
    sender = MetricsSender(LoggingSender(TelegramSender(bot)))
    registry = SessionRegistry(partial(
        GameSession,
        max_players=config.max_players,
        join_window_seconds=config.join_window_seconds,
        dealer_delay_seconds=config.dealer_delay_seconds,
        reset_delay_seconds=config.reset_delay_seconds,
        auto_play_seconds=config.auto_play_seconds,
    ))
    ads = AdvertisementService(AdConfig(
        enabled=config.ad_enabled,
        interval_minutes=config.ad_interval_minutes,
        min_messages_since_last_ad=config.ad_min_messages,
    ))
    return CommandDispatcher(
        outbox=ChatOutbox(sender),
        stats=StatsService(),
        registry=registry,
        ads=ads,
        leaderboard_size=config.leaderboard_size,
    )


async def on_startup(blackjack: CommandDispatcher):
    """Polling is up: chat commands can be answered."""
    blackjack.resume()


async def on_shutdown(blackjack: CommandDispatcher):
    blackjack.pause()


def build_dp(blackjack: CommandDispatcher) -> Dispatcher:
    """Build the aiogram dispatcher with handlers."""
    dp = Dispatcher(storage=MemoryStorage(), blackjack=blackjack)
    dp.message.middleware(MessageLoggerMiddleware())
    dp.include_routers(chat_router)
    dp.startup.register(on_startup)
    dp.shutdown.register(on_shutdown)
    return dp


async def main():
    """Bot entry point."""
    setup_logging()
    logger.info("=" * 60)
    logger.info("STARTING BLACKJACK BOT")
    logger.info("=" * 60)
    logger.info(
        f"Table: max_players={settings.max_players} | join={settings.join_window_seconds}s | "
        f"dealer_delay={settings.dealer_delay_seconds}s | reset={settings.reset_delay_seconds}s"
    )
    logger.info(f"Log level: {settings.log_level}")

    if not settings.bot_token:
        logger.error("TELEGRAM_BOT_TOKEN is not set!")
        raise RuntimeError("TELEGRAM_BOT_TOKEN is not set")

    logger.info("Initialising database...")
    await init_db()

    bot = Bot(token=settings.bot_token)
    blackjack = build_blackjack(bot)
    blackjack.pause()
    dp = build_dp(blackjack)

    status_server = None
    if settings.status_server_enabled:
        status_server = StatusServer(blackjack, settings.status_server_host, settings.status_server_port)
        await status_server.start()

    try:
        await bot.delete_webhook(drop_pending_updates=True)
        bot_info = await bot.get_me()
        logger.info(f"Bot: @{bot_info.username} (id: {bot_info.id})")
        logger.info("Starting polling...")

        await dp.start_polling(bot)
    except Exception as e:
        logger.error(f"Fatal error: {type(e).__name__}: {e}")
        raise
    finally:
        logger.info("=" * 60)
        logger.info("STOPPING BLACKJACK BOT")
        logger.info("=" * 60)
        await blackjack.close()
        await blackjack.outbox.close()
        if status_server:
            await status_server.stop()
        await bot.session.close()
        await close_db()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user (Ctrl+C)")


if __name__ == "__main__":
    run()
