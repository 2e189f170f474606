import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


@dataclass
class Settings:
    """Application configuration read from environment variables."""

    # Telegram
    bot_token: str = os.getenv("TELEGRAM_BOT_TOKEN", "")

    # Database
    database_url: str = os.getenv(
        "DATABASE_URL", "sqlite+aiosqlite:///./data/blackjack.db"
    )

    # Blackjack table
    max_players: int = int(os.getenv("BJ_MAX_PLAYERS", "6"))
    join_window_seconds: float = float(os.getenv("BJ_JOIN_WINDOW_SECONDS", "30"))
    dealer_delay_seconds: float = float(os.getenv("BJ_DEALER_DELAY_SECONDS", "5"))
    reset_delay_seconds: float = float(os.getenv("BJ_RESET_DELAY_SECONDS", "5"))
    # Time players get to hit/stand before the dealer plays anyway
    auto_play_seconds: float = float(os.getenv("BJ_AUTO_PLAY_SECONDS", "60"))
    leaderboard_size: int = int(os.getenv("BJ_LEADERBOARD_SIZE", "5"))

    # Advertisements
    ad_enabled: bool = os.getenv("AD_ENABLED", "true").lower() != "false"
    ad_interval_minutes: int = int(os.getenv("AD_INTERVAL_MINUTES", "5"))
    ad_min_messages: int = int(os.getenv("AD_MIN_MESSAGES", "10"))

    # Status server (dashboard polling, /metrics, /health)
    status_server_enabled: bool = os.getenv("STATUS_SERVER_ENABLED", "true").lower() == "true"
    status_server_host: str = os.getenv("STATUS_SERVER_HOST", "0.0.0.0")
    status_server_port: int = int(os.getenv("STATUS_SERVER_PORT", "9090"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_dir: str = os.getenv("LOG_DIR", "logs")


settings = Settings()
