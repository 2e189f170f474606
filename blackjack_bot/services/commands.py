"""Chat command parsing.

Commands are `!`-prefixed and case-insensitive; the first whitespace
separated token names the command, the rest are arguments. Anything else
in chat is not a command and is ignored.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

COMMAND_PREFIX = "!"


class Command(Enum):
    """Every command the bot understands."""
    DEAL = "deal"
    JOIN = "join"
    HIT = "hit"
    STAND = "stand"
    STATUS = "status"
    RESET = "reset"
    HELP = "help"
    STATS = "stats"
    MYSTATS = "mystats"
    LEADERBOARD = "leaderboard"


# Alternative spellings typed in chat
ALIASES = {
    "blackjack": Command.HELP,
    "lb": Command.LEADERBOARD,
}


@dataclass
class IncomingMessage:
    """A chat line as delivered by the transport."""
    channel: str
    username: str
    text: str
    is_moderator: bool = False
    is_broadcaster: bool = False

    @property
    def is_privileged(self) -> bool:
        return self.is_moderator or self.is_broadcaster


@dataclass
class ParsedCommand:
    command: Command
    args: List[str] = field(default_factory=list)


def parse_command(text: str) -> Optional[ParsedCommand]:
    """
    Parse a chat line into a command.

    Args:
        text: Raw chat text.

    Returns:
        ParsedCommand, or None for plain chat and unknown commands.
    """
    if not text:
        return None

    message = text.strip().lower()
    if not message.startswith(COMMAND_PREFIX):
        return None

    parts = message[len(COMMAND_PREFIX):].split()
    if not parts:
        return None

    name, args = parts[0], parts[1:]
    command = ALIASES.get(name)
    if command is None:
        try:
            command = Command(name)
        except ValueError:
            return None

    return ParsedCommand(command=command, args=args)
