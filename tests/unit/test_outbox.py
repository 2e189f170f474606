"""Tests for the outbound message queue and sender middleware."""

import asyncio

import pytest

from blackjack_bot.services.metrics import metrics
from blackjack_bot.services.outbox import ChatOutbox, ChatSender, LoggingSender, MetricsSender
from tests.helpers import RecordingSender


class SlowSender(RecordingSender):
    """Takes longer for earlier messages, to catch reordering."""

    async def send(self, channel: str, text: str) -> None:
        await asyncio.sleep(0.02 if text.endswith("1") else 0)
        await super().send(channel, text)


@pytest.mark.asyncio
async def test_messages_are_delivered_in_order_per_channel():
    sender = SlowSender()
    outbox = ChatOutbox(sender)

    for i in range(1, 4):
        outbox.send("#a", f"a{i}")
        outbox.send("#b", f"b{i}")
    await outbox.drain()

    assert sender.texts("#a") == ["a1", "a2", "a3"]
    assert sender.texts("#b") == ["b1", "b2", "b3"]
    await outbox.close()


@pytest.mark.asyncio
async def test_failed_message_is_dropped_and_logged(caplog):
    sender = RecordingSender(fail_texts={"boom"})
    outbox = ChatOutbox(sender)

    outbox.send("#a", "first")
    outbox.send("#a", "boom")
    outbox.send("#a", "last")
    await outbox.drain()

    assert sender.texts("#a") == ["first", "last"]
    assert "Failed to send message to #a" in caplog.text
    await outbox.close()


@pytest.mark.asyncio
async def test_closed_outbox_drops_messages():
    sender = RecordingSender()
    outbox = ChatOutbox(sender)
    outbox.send("#a", "before")

    await outbox.close()
    outbox.send("#a", "after")
    await asyncio.sleep(0)

    assert sender.texts() == ["before"]


@pytest.mark.asyncio
async def test_base_sender_is_abstract():
    with pytest.raises(NotImplementedError):
        await ChatSender().send("#a", "text")


@pytest.mark.asyncio
async def test_logging_sender_reraises(caplog):
    sender = LoggingSender(RecordingSender(fail_texts={"boom"}))

    with pytest.raises(ConnectionError):
        await sender.send("#a", "boom")

    assert "[MSG OUT] failed channel=#a" in caplog.text


@pytest.mark.asyncio
async def test_metrics_sender_counts_success_and_failure():
    await metrics.reset()
    inner = RecordingSender(fail_texts={"boom"})
    sender = MetricsSender(LoggingSender(inner))

    await sender.send("#a", "hello")
    with pytest.raises(ConnectionError):
        await sender.send("#a", "boom")

    text = await metrics.get_metrics()
    assert 'bot_messages_sent_total{success="true"} 1' in text
    assert 'bot_messages_sent_total{success="false"} 1' in text
    assert "bot_message_send_duration_seconds_count 2" in text
    assert inner.texts() == ["hello"]
