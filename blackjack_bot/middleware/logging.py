import logging
import time
from typing import Any
from aiogram import BaseMiddleware
from aiogram import types

from blackjack_bot.services.commands import COMMAND_PREFIX

logger = logging.getLogger(__name__)


class MessageLoggerMiddleware(BaseMiddleware):
    async def __call__(self, handler, event: types.Message, data: dict[str, Any]):
        start_time = time.time()

        if isinstance(event, types.Message) and event.chat:
            user_tag = f"@{event.from_user.username}" if event.from_user and event.from_user.username else f"id:{event.from_user.id if event.from_user else 'unknown'}"
            text_preview = (event.text or "")[:50]

            # Chat commands are logged at INFO, everything else at DEBUG
            if event.text and event.text.lstrip().startswith(COMMAND_PREFIX):
                logger.info(
                    f"[CMD IN] chat={event.chat.id} | user={user_tag} | "
                    f"cmd={text_preview}"
                )
            else:
                logger.debug(
                    f"[MSG IN] chat={event.chat.id} | type={event.chat.type} | "
                    f"user={user_tag} | msg_id={event.message_id}"
                )

        try:
            result = await handler(event, data)
            duration = time.time() - start_time

            if duration > 1.0:
                logger.warning(
                    f"[MSG SLOW] chat={event.chat.id if event.chat else 'N/A'} | "
                    f"msg_id={event.message_id if hasattr(event, 'message_id') else 'N/A'} | "
                    f"time={duration:.2f}s"
                )

            return result
        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"[MSG ERROR] chat={event.chat.id if event.chat else 'N/A'} | "
                f"msg_id={event.message_id if hasattr(event, 'message_id') else 'N/A'} | "
                f"time={duration:.2f}s | error={type(e).__name__}: {e}"
            )
            raise
