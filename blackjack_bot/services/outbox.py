"""Outbound chat messages.

The game never waits for a chat message to be delivered. Replies are put
on a per-channel queue and a worker per channel sends them in order.
Delivery errors are logged and the message is dropped.

Senders are composable: transport senders do the actual delivery and
middleware senders wrap another sender to add logging or metrics.
"""

import asyncio
import logging
import time
from typing import Dict, Optional

from blackjack_bot.services.metrics import track_message_sent

logger = logging.getLogger(__name__)


class ChatSender:
    """Delivers one message to a channel. Raises on failure."""

    async def send(self, channel: str, text: str) -> None:
        raise NotImplementedError


class SenderMiddleware(ChatSender):
    """A sender that wraps another sender."""

    def __init__(self, inner: ChatSender):
        self.inner = inner


class LoggingSender(SenderMiddleware):
    async def send(self, channel: str, text: str) -> None:
        logger.debug(f"[MSG OUT] channel={channel} | text={text[:80]}")
        try:
            await self.inner.send(channel, text)
        except Exception as e:
            logger.warning(f"[MSG OUT] failed channel={channel}: {type(e).__name__}: {e}")
            raise


class MetricsSender(SenderMiddleware):
    async def send(self, channel: str, text: str) -> None:
        start_time = time.monotonic()
        success = False
        try:
            await self.inner.send(channel, text)
            success = True
        finally:
            await track_message_sent(success, time.monotonic() - start_time)


class ChatOutbox:
    """Per-channel FIFO of outgoing messages."""

    def __init__(self, sender: ChatSender):
        self._sender = sender
        self._queues: Dict[str, asyncio.Queue] = {}
        self._workers: Dict[str, asyncio.Task] = {}
        self._closed = False

    def send(self, channel: str, text: str) -> None:
        """Queue a message for delivery. Never blocks, never raises."""
        if self._closed:
            logger.warning(f"Outbox closed, dropping message to {channel}")
            return

        queue = self._queues.get(channel)
        if queue is None:
            queue = asyncio.Queue()
            self._queues[channel] = queue
            self._workers[channel] = asyncio.create_task(
                self._worker(channel, queue), name=f"outbox:{channel}"
            )
        queue.put_nowait(text)

    async def _worker(self, channel: str, queue: asyncio.Queue) -> None:
        while True:
            text: Optional[str] = await queue.get()
            if text is None:
                queue.task_done()
                break

            try:
                await self._sender.send(channel, text)
            except Exception as e:
                logger.error(f"Failed to send message to {channel}: {e}")
            finally:
                queue.task_done()

    async def drain(self) -> None:
        """Wait until every queued message has been handled."""
        for queue in list(self._queues.values()):
            await queue.join()

    async def close(self) -> None:
        """Flush pending messages and stop the workers."""
        self._closed = True
        for queue in self._queues.values():
            queue.put_nowait(None)
        for worker in self._workers.values():
            await worker
        self._queues.clear()
        self._workers.clear()
        logger.info("Outbox workers stopped")
