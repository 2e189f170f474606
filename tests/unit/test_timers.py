"""Tests for one-shot session timers."""

import asyncio

import pytest

from blackjack_bot.services.timers import cancel_timer, start_timer


@pytest.mark.asyncio
async def test_timer_fires_once():
    fired = []
    task = start_timer(0.01, lambda: fired.append(1), name="t")
    await task
    assert fired == [1]


@pytest.mark.asyncio
async def test_cancelled_timer_never_fires():
    fired = []
    task = start_timer(0.05, lambda: fired.append(1), name="t")

    assert cancel_timer(task)
    await asyncio.sleep(0.1)

    assert fired == []
    assert task.cancelled()


@pytest.mark.asyncio
async def test_cancel_finished_or_missing_timer_is_noop():
    task = start_timer(0, lambda: None, name="t")
    await task

    assert not cancel_timer(task)
    assert not cancel_timer(None)


@pytest.mark.asyncio
async def test_callback_errors_are_logged_not_raised(caplog):
    def boom():
        raise RuntimeError("boom")

    task = start_timer(0, boom, name="broken")
    await task

    assert not task.cancelled()
    assert task.exception() is None
    assert "Timer broken failed" in caplog.text


@pytest.mark.asyncio
async def test_timer_cannot_cancel_itself():
    results = []
    holder = {}

    def callback():
        results.append(cancel_timer(holder["task"]))

    holder["task"] = start_timer(0, callback, name="self")
    await holder["task"]

    assert results == [False]
    assert not holder["task"].cancelled()
