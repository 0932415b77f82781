"""Tests for notification channels and the dispatcher."""

import uuid

import pytest

from trust_safety.modules.notification.channels import (
    CallbackChannel,
    ChannelDeliveryResult,
    InMemoryChannel,
    NotificationChannelBase,
)
from trust_safety.modules.notification.models import (
    ModeratorNoticeEvent,
    QueueAlertEvent,
    UserNoticeEvent,
)
from trust_safety.modules.notification.service import NotificationDispatcher


class ExplodingChannel(NotificationChannelBase):
    """Channel whose deliver raises instead of returning a result."""

    channel_name = "exploding"

    async def deliver(self, event):
        raise RuntimeError("socket closed")


def create_alert() -> QueueAlertEvent:
    return QueueAlertEvent(
        item_id=uuid.uuid4(),
        content_id=uuid.uuid4(),
        priority="critical",
        flags=["hate_speech"],
    )


class TestChannels:
    """Tests for channel implementations."""

    @pytest.mark.asyncio
    async def test_in_memory_channel_records_events(self):
        channel = InMemoryChannel()
        alert = create_alert()
        notice = ModeratorNoticeEvent(kind="appeal_submitted", subject_id=uuid.uuid4(), message="m")

        result = await channel.deliver(alert)
        await channel.deliver(notice)

        assert result.success
        assert result.channel == "in_memory"
        assert result.event_type == "queue_alert"
        assert channel.events == [alert, notice]
        assert channel.events_of_type("moderator_notice") == [notice]

    @pytest.mark.asyncio
    async def test_callback_channel_accepts_sync_and_async_callbacks(self):
        received = []

        async def async_callback(event):
            received.append(("async", event.event_type))

        sync_channel = CallbackChannel(lambda event: received.append(("sync", event.event_type)))
        async_channel = CallbackChannel(async_callback, channel_name="webhook")

        await sync_channel.deliver(create_alert())
        result = await async_channel.deliver(create_alert())

        assert received == [("sync", "queue_alert"), ("async", "queue_alert")]
        assert result.channel == "webhook"

    @pytest.mark.asyncio
    async def test_callback_failure_becomes_failed_result(self):
        def failing(event):
            raise ValueError("bad payload")

        result = await CallbackChannel(failing).deliver(create_alert())

        assert isinstance(result, ChannelDeliveryResult)
        assert not result.success
        assert result.error == "bad payload"


class TestDispatcher:
    """Tests for NotificationDispatcher."""

    @pytest.mark.asyncio
    async def test_publish_reaches_every_channel(self):
        first, second = InMemoryChannel(), InMemoryChannel()
        dispatcher = NotificationDispatcher([first, second])
        event = UserNoticeEvent(user_id=uuid.uuid4(), kind="penalty", outcome="warning")

        results = await dispatcher.publish(event)

        assert [r.success for r in results] == [True, True]
        assert first.events == [event]
        assert second.events == [event]

    @pytest.mark.asyncio
    async def test_raising_channel_does_not_stop_others(self):
        healthy = InMemoryChannel()
        dispatcher = NotificationDispatcher([ExplodingChannel(), healthy])

        results = await dispatcher.publish(create_alert())

        assert not results[0].success
        assert results[0].error == "socket closed"
        assert results[0].channel == "exploding"
        assert results[0].event_type == "queue_alert"
        assert results[1].success
        assert len(healthy.events) == 1

    @pytest.mark.asyncio
    async def test_failure_result_built_for_channel_without_helpers(self):
        class BareChannel:
            channel_name = "bare"

            async def deliver(self, event):
                raise ConnectionError("webhook unreachable")

        dispatcher = NotificationDispatcher([BareChannel()])

        results = await dispatcher.publish(create_alert())

        assert results == [
            ChannelDeliveryResult(
                success=False,
                channel="bare",
                event_type="queue_alert",
                error="webhook unreachable",
            )
        ]

    @pytest.mark.asyncio
    async def test_subscribe_and_unsubscribe(self):
        dispatcher = NotificationDispatcher()
        channel = InMemoryChannel()

        dispatcher.subscribe(channel)
        await dispatcher.publish(create_alert())
        assert dispatcher.unsubscribe(channel)
        assert not dispatcher.unsubscribe(channel)
        await dispatcher.publish(create_alert())

        assert len(channel.events) == 1

    @pytest.mark.asyncio
    async def test_publish_without_channels(self):
        assert await NotificationDispatcher().publish(create_alert()) == []
