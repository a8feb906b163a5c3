"""
Unit tests for change notifier.
Tests subscription management, publishing and failing handlers.
"""

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock
from squadhub.services.change_notifier import (
    ChangeNotifier,
    get_change_notifier,
    queue_topic,
)


@pytest_asyncio.fixture
async def notifier():
    """Create a fresh notifier for each test."""
    return ChangeNotifier()


def test_queue_topic():
    """Test the topic name for a game mode's queue rows."""
    assert queue_topic("competitive") == "queue_entries:game_mode=competitive"


@pytest.mark.asyncio
async def test_subscribe(notifier):
    """Test subscribing a handler."""
    handler = AsyncMock()

    await notifier.subscribe("queue_entries:game_mode=casual", handler)

    assert await notifier.get_subscriber_count("queue_entries:game_mode=casual") == 1


@pytest.mark.asyncio
async def test_publish_calls_handlers(notifier):
    """Test that every handler on the topic runs once."""
    handler1 = AsyncMock()
    handler2 = AsyncMock()
    await notifier.subscribe("t", handler1)
    await notifier.subscribe("t", handler2)

    delivered = await notifier.publish("t")

    assert delivered == 2
    handler1.assert_awaited_once_with()
    handler2.assert_awaited_once_with()


@pytest.mark.asyncio
async def test_publish_other_topic(notifier):
    """Test that handlers only see their own topic."""
    handler = AsyncMock()
    await notifier.subscribe("a", handler)

    delivered = await notifier.publish("b")

    assert delivered == 0
    handler.assert_not_awaited()


@pytest.mark.asyncio
async def test_unsubscribe_closure(notifier):
    """Test that the returned closure removes the subscription."""
    handler = AsyncMock()
    unsubscribe = await notifier.subscribe("t", handler)

    await unsubscribe()
    delivered = await notifier.publish("t")

    assert delivered == 0
    assert await notifier.get_subscriber_count("t") == 0
    assert "t" not in notifier.subscribers


@pytest.mark.asyncio
async def test_unsubscribe_unknown_handler(notifier):
    """Test that removing an unknown handler is ignored."""
    await notifier.unsubscribe("missing", AsyncMock())

    assert await notifier.get_subscriber_count("missing") == 0


@pytest.mark.asyncio
async def test_failing_handler_is_dropped(notifier):
    """Test that a handler that raises is removed and others still run."""
    good = AsyncMock()
    bad = AsyncMock(side_effect=RuntimeError("socket closed"))
    await notifier.subscribe("t", good)
    await notifier.subscribe("t", bad)

    delivered = await notifier.publish("t")

    assert delivered == 1
    assert await notifier.get_subscriber_count("t") == 1

    await notifier.publish("t")
    assert good.await_count == 2
    assert bad.await_count == 1


@pytest.mark.asyncio
async def test_handler_can_unsubscribe_itself(notifier):
    """Test that a handler may unsubscribe while being published to."""
    calls = []
    unsubscribe = None

    async def once():
        calls.append(1)
        await unsubscribe()

    unsubscribe = await notifier.subscribe("t", once)

    await notifier.publish("t")
    await notifier.publish("t")

    assert calls == [1]


def test_get_change_notifier_singleton():
    """Test that the global notifier is a singleton."""
    assert get_change_notifier() is get_change_notifier()
