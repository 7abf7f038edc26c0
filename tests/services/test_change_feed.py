import asyncio
import json

import pytest
from redis.exceptions import RedisError

from app.core.exceptions import ValidationFailedError
from app.schemas.realtime import ChangeEvent, ChangeType
from app.services import change_feed
from app.services.change_feed import RowFilter


class FakePubSub:
    def __init__(self, messages):
        self.messages = messages
        self.subscribed = []
        self.unsubscribed = []
        self.closed = False

    async def subscribe(self, channel):
        self.subscribed.append(channel)

    async def unsubscribe(self, channel):
        self.unsubscribed.append(channel)

    async def aclose(self):
        self.closed = True

    async def listen(self):
        for message in self.messages:
            yield message


class FakeRedis:
    def __init__(self, messages):
        self.pubsubs = []
        self.messages = messages

    def pubsub(self):
        pubsub = FakePubSub(self.messages)
        self.pubsubs.append(pubsub)
        return pubsub


def _message(table, change_type, new=None, old=None):
    event = ChangeEvent(table=table, type=change_type, new=new, old=old)
    return {"type": "message", "data": event.model_dump_json()}


def test_row_filter_parse():
    assert RowFilter.parse("event_code=eq.ABC123") == RowFilter("event_code", "ABC123")
    assert RowFilter.parse(None) is None


@pytest.mark.parametrize("expression", ["event_code", "event_code=ABC", "event_code=gt.5", "=eq.x"])
def test_row_filter_rejects_unsupported(expression):
    with pytest.raises(ValidationFailedError):
        RowFilter.parse(expression)


def test_row_filter_matches_booleans_and_falls_back_to_old():
    row_filter = RowFilter.parse("is_active=eq.false")
    assert row_filter.matches(
        ChangeEvent(table="events", type=ChangeType.UPDATE, new={"is_active": False})
    )
    assert row_filter.matches(
        ChangeEvent(table="events", type=ChangeType.DELETE, old={"is_active": False})
    )
    assert not row_filter.matches(
        ChangeEvent(table="events", type=ChangeType.UPDATE, new={"is_active": True})
    )


def test_parse_event_type():
    assert change_feed.parse_event_type("*") is None
    assert change_feed.parse_event_type("update") == ChangeType.UPDATE
    with pytest.raises(ValidationFailedError):
        change_feed.parse_event_type("TRUNCATE")


def test_publish_change_uses_table_channel(published):
    assert change_feed.publish_change("events", ChangeType.INSERT, new={"id": "evt_1"})

    channel, payload = published.publish.call_args.args
    assert channel == "realtime:events"
    assert json.loads(payload)["new"] == {"id": "evt_1"}


def test_publish_failure_is_reported_not_raised(published):
    published.publish.side_effect = ConnectionError("redis down")
    assert change_feed.publish_change("events", ChangeType.INSERT, new={}) is False


@pytest.mark.asyncio
async def test_subscribe_filters_and_cleans_up():
    client = FakeRedis(
        [
            {"type": "subscribe", "data": 1},
            _message("speaking_requests", ChangeType.INSERT, new={"event_id": "evt_1", "id": "a"}),
            _message("speaking_requests", ChangeType.INSERT, new={"event_id": "evt_2", "id": "b"}),
            {"type": "message", "data": "not json"},
            _message("speaking_requests", ChangeType.UPDATE, new={"event_id": "evt_1", "id": "c"}),
        ]
    )

    received = [
        change.new["id"]
        async for change in change_feed.subscribe(
            "speaking_requests",
            RowFilter("event_id", "evt_1"),
            ChangeType.INSERT,
            client=client,
        )
    ]

    assert received == ["a"]
    pubsub = client.pubsubs[0]
    assert pubsub.subscribed == ["realtime:speaking_requests"]
    assert pubsub.unsubscribed == ["realtime:speaking_requests"]
    assert pubsub.closed


@pytest.mark.asyncio
async def test_subscribe_refuses_unknown_table():
    with pytest.raises(ValidationFailedError):
        async for _ in change_feed.subscribe("moderators", client=FakeRedis([])):
            pass


@pytest.mark.asyncio
async def test_subscribe_many_merges_tables():
    client = FakeRedis(
        [
            _message("events", ChangeType.UPDATE, new={"id": "evt_1"}),
            _message("speaking_requests", ChangeType.INSERT, new={"id": "req_1", "event_id": "evt_1"}),
        ]
    )

    received = [
        (change.table, change.new["id"])
        async for change in change_feed.subscribe_many(
            ("events", RowFilter("id", "evt_1"), None),
            ("speaking_requests", RowFilter("event_id", "evt_1"), None),
            client=client,
        )
    ]

    assert sorted(received) == [("events", "evt_1"), ("speaking_requests", "req_1")]


class BrokenPubSub(FakePubSub):
    async def listen(self):
        raise RedisError("connection lost")
        yield


class OpenPubSub(FakePubSub):
    """Delivers its messages, then stays subscribed."""

    async def listen(self):
        for message in self.messages:
            yield message
        await asyncio.Event().wait()


class ScriptedRedis:
    def __init__(self, *pubsubs):
        self.pubsubs = list(pubsubs)

    def pubsub(self):
        return self.pubsubs.pop(0)


@pytest.mark.asyncio
async def test_subscribe_many_raises_when_one_subscription_fails_while_another_delivers():
    open_pubsub = OpenPubSub(
        [_message("speaking_requests", ChangeType.INSERT, new={"id": "req_1", "event_id": "evt_1"})]
    )
    client = ScriptedRedis(BrokenPubSub([]), open_pubsub)

    async def consume():
        async for _ in change_feed.subscribe_many(
            ("events", RowFilter("id", "evt_1"), None),
            ("speaking_requests", RowFilter("event_id", "evt_1"), None),
            client=client,
        ):
            pass

    with pytest.raises(RedisError):
        await asyncio.wait_for(consume(), timeout=2)
    assert open_pubsub.unsubscribed == ["realtime:speaking_requests"]


def _change(row_id):
    return ChangeEvent(table="speaking_requests", type=ChangeType.UPDATE, new={"id": row_id})


@pytest.mark.asyncio
async def test_batched_groups_a_burst_of_changes():
    async def burst():
        for row_id in ("a", "b", "c"):
            yield _change(row_id)

    batches = [
        [change.new["id"] for change in batch]
        async for batch in change_feed.batched(burst(), window=0.05)
    ]

    assert batches == [["a", "b", "c"]]


@pytest.mark.asyncio
async def test_batched_splits_changes_further_apart_than_the_window():
    async def spaced():
        yield _change("a")
        yield _change("b")
        await asyncio.sleep(0.2)
        yield _change("c")

    batches = [
        [change.new["id"] for change in batch]
        async for batch in change_feed.batched(spaced(), window=0.05)
    ]

    assert batches == [["a", "b"], ["c"]]


@pytest.mark.asyncio
async def test_batched_closes_the_underlying_feed():
    closed = []

    async def endless():
        try:
            while True:
                yield _change("a")
                await asyncio.sleep(1)
        finally:
            closed.append(True)

    batches = change_feed.batched(endless(), window=0.01)
    assert len(await batches.__anext__()) == 1
    await batches.aclose()

    assert closed == [True]
