# app/services/change_feed.py
"""
Row-level change feed over Redis pub/sub.

Every committed insert/update on a watched table is published as a
ChangeEvent on the channel ``realtime:<table>``. Subscribers pick a table,
optionally narrow it with a ``column=eq.value`` row filter and an event type,
and receive matching events as they arrive. Delivery is fire-and-forget:
a subscriber that is not connected when a change is published never sees it,
which is why clients reload their full state on (re)connect.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from pydantic import ValidationError

from app.core.exceptions import ValidationFailedError
from app.db.redis import redis_client, get_async_redis_client
from app.schemas.realtime import ChangeEvent, ChangeType

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "realtime"

# Tables clients may subscribe to
WATCHED_TABLES = {"events", "speaking_requests"}

# Changes closer together than this are delivered to snapshot sockets as one batch
BATCH_WINDOW_SECONDS = 0.05


def channel_for(table: str) -> str:
    return f"{CHANNEL_PREFIX}:{table}"


def row_to_dict(obj) -> Dict[str, Any]:
    """Column values of an ORM row, keyed by column name."""
    return {c.name: getattr(obj, c.name) for c in obj.__table__.columns}


def _normalise(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if value is None:
        return "null"
    return str(value)


@dataclass(frozen=True)
class RowFilter:
    """An equality filter on one column, written as ``column=eq.value``."""

    column: str
    value: str

    @classmethod
    def parse(cls, expression: Optional[str]) -> Optional["RowFilter"]:
        if not expression:
            return None
        column, sep, rest = expression.partition("=")
        op, dot, value = rest.partition(".")
        if not sep or not dot or not column or op != "eq":
            raise ValidationFailedError(
                f"Unsupported filter '{expression}', expected column=eq.value"
            )
        return cls(column=column, value=value)

    def matches(self, event: ChangeEvent) -> bool:
        row = event.new if event.new is not None else event.old
        if not row or self.column not in row:
            return False
        return _normalise(row[self.column]) == self.value


def parse_event_type(event_type: Optional[str]) -> Optional[ChangeType]:
    """``*`` or empty means every type."""
    if not event_type or event_type == "*":
        return None
    try:
        return ChangeType(event_type.upper())
    except ValueError:
        raise ValidationFailedError(f"Unknown event type '{event_type}'")


def event_matches(
    event: ChangeEvent,
    row_filter: Optional[RowFilter] = None,
    event_type: Optional[ChangeType] = None,
) -> bool:
    if event_type is not None and event.type != event_type:
        return False
    if row_filter is not None and not row_filter.matches(event):
        return False
    return True


def publish_change(
    table: str,
    change_type: ChangeType,
    new: Optional[Dict[str, Any]] = None,
    old: Optional[Dict[str, Any]] = None,
) -> bool:
    """
    Publish a committed row change. The write already happened, so a publish
    failure is logged and reported, never raised.
    """
    event = ChangeEvent(table=table, type=change_type, new=new, old=old)
    try:
        redis_client.publish(channel_for(table), event.model_dump_json())
        return True
    except Exception as e:
        logger.error(f"Failed to publish {change_type.value} on {table}: {e}", exc_info=True)
        return False


async def subscribe(
    table: str,
    row_filter: Optional[RowFilter] = None,
    event_type: Optional[ChangeType] = None,
    client=None,
) -> AsyncIterator[ChangeEvent]:
    """
    Yield matching change events for ``table`` until the consumer stops.

    Closing the generator (or cancelling the task iterating it) unsubscribes
    and closes the Redis connection.
    """
    if table not in WATCHED_TABLES:
        raise ValidationFailedError(f"Table '{table}' has no change feed")

    owns_client = client is None
    if owns_client:
        client = get_async_redis_client()
    pubsub = client.pubsub()
    channel = channel_for(table)
    await pubsub.subscribe(channel)
    logger.debug(f"Subscribed to {channel} filter={row_filter} type={event_type}")

    try:
        async for message in pubsub.listen():
            if message.get("type") != "message":
                continue
            try:
                event = ChangeEvent.model_validate_json(message["data"])
            except (ValidationError, json.JSONDecodeError) as e:
                logger.warning(f"Dropping malformed message on {channel}: {e}")
                continue
            if event_matches(event, row_filter, event_type):
                yield event
    finally:
        await pubsub.unsubscribe(channel)
        await pubsub.aclose()
        if owns_client:
            await client.aclose()
        logger.debug(f"Unsubscribed from {channel}")


async def subscribe_many(
    *subscriptions: Tuple[str, Optional[RowFilter], Optional[ChangeType]],
    client=None,
) -> AsyncIterator[ChangeEvent]:
    """
    Merge several table subscriptions into one stream, in arrival order.
    Each entry is ``(table, row_filter, event_type)``.
    """
    queue: asyncio.Queue = asyncio.Queue()

    async def pump(table, row_filter, event_type):
        async for change in subscribe(table, row_filter, event_type, client=client):
            await queue.put(change)

    tasks = [asyncio.create_task(pump(*subscription)) for subscription in subscriptions]
    try:
        while True:
            running = [task for task in tasks if not task.done()]
            if not running and queue.empty():
                for task in tasks:
                    task.result()
                return
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait(
                {getter, *running}, return_when=asyncio.FIRST_COMPLETED
            )
            if getter not in done:
                getter.cancel()
                await asyncio.gather(getter, return_exceptions=True)
            # a failed subscription ends the merged stream
            for task in done - {getter}:
                task.result()
            if not getter.cancelled():
                yield getter.result()
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def batched(
    changes: AsyncIterator[ChangeEvent], window: float = BATCH_WINDOW_SECONDS
) -> AsyncIterator[List[ChangeEvent]]:
    """
    Group changes that arrive within ``window`` seconds of each other, so a
    multi-row write such as a reorder costs consumers one reload.
    """
    pending = None
    try:
        while True:
            if pending is None:
                pending = asyncio.ensure_future(changes.__anext__())
            try:
                batch = [await pending]
            except StopAsyncIteration:
                pending = None
                return
            while True:
                pending = asyncio.ensure_future(changes.__anext__())
                done, _ = await asyncio.wait({pending}, timeout=window)
                if not done:
                    # still in flight; awaited as the start of the next batch
                    break
                try:
                    batch.append(pending.result())
                except StopAsyncIteration:
                    pending = None
                    yield batch
                    return
            yield batch
    finally:
        if pending is not None:
            pending.cancel()
            await asyncio.gather(pending, return_exceptions=True)
        await changes.aclose()
