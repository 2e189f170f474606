"""Telegram chat transport for the blackjack bot.

Every text message in a group is handed to the CommandDispatcher; the
chat id is the channel. Chat administrators count as moderators and the
chat creator as the broadcaster.
"""

import logging
from aiogram import Bot, F, Router
from aiogram.enums import ChatType
from aiogram.exceptions import TelegramAPIError
from aiogram.types import Message

from blackjack_bot.services.commands import Command, IncomingMessage, parse_command
from blackjack_bot.services.dispatcher import CommandDispatcher
from blackjack_bot.services.metrics import track_command_executed
from blackjack_bot.services.outbox import ChatSender

logger = logging.getLogger(__name__)

router = Router()


class TelegramSender(ChatSender):
    """Sends chat lines through the Telegram Bot API."""

    def __init__(self, bot: Bot):
        self.bot = bot

    async def send(self, channel: str, text: str) -> None:
        await self.bot.send_message(chat_id=channel, text=text, parse_mode=None)


def player_name(message: Message) -> str:
    """
    Name a Telegram user is seated and scored under.

    An @username is unique across Telegram. Without one the first name is
    suffixed with the user id, since first names are not.
    """
    user = message.from_user
    if user.username:
        return user.username
    if user.first_name:
        return f"{user.first_name}#{user.id}"
    return str(user.id)


async def get_privileges(message: Message) -> tuple[bool, bool]:
    """Return (is_moderator, is_broadcaster) for the message author."""
    if message.chat.type == ChatType.PRIVATE:
        # Alone with the bot: the user owns the table
        return False, True

    try:
        member = await message.bot.get_chat_member(message.chat.id, message.from_user.id)
    except TelegramAPIError as e:
        logger.warning(f"Could not check privileges of {message.from_user.id} in {message.chat.id}: {e}")
        return False, False

    return member.status == "administrator", member.status == "creator"


@router.message(F.text)
async def on_chat_message(message: Message, blackjack: CommandDispatcher):
    """Hand a chat line to the blackjack dispatcher."""
    if not message.from_user or message.from_user.is_bot:
        return

    is_moderator, is_broadcaster = False, False
    parsed = parse_command(message.text)
    if parsed is not None and parsed.command == Command.RESET:
        is_moderator, is_broadcaster = await get_privileges(message)

    command = blackjack.handle_message(IncomingMessage(
        channel=str(message.chat.id),
        username=player_name(message),
        text=message.text,
        is_moderator=is_moderator,
        is_broadcaster=is_broadcaster,
    ))

    if command is not None:
        await track_command_executed(command.value)
