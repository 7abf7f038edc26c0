# app/api/v1/endpoints/realtime.py
"""
WebSocket access to the change feed.

``/realtime/{table}`` is the raw feed: every matching ChangeEvent is sent as
JSON. The session and queue sockets reuse ``forward_changes`` to turn the
same feed into view snapshots.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from redis.exceptions import RedisError

from app.core.exceptions import ValidationFailedError
from app.schemas.realtime import ChangeEvent
from app.services import change_feed

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


async def _receive_until_disconnect(websocket: WebSocket) -> None:
    try:
        while True:
            # clients may send keep-alives; nothing else is expected
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass


async def forward_changes(
    websocket: WebSocket,
    changes: AsyncIterator[Any],
    handle: Callable[[Any], Awaitable[bool]],
) -> bool:
    """
    Passes each item of the feed (a change, or a batch of them) to
    ``handle`` until the client disconnects, the feed ends or ``handle``
    returns False. The feed is closed on the way out, which unsubscribes it.

    Returns True when the client went away.
    """
    receiver = asyncio.create_task(_receive_until_disconnect(websocket))
    try:
        while True:
            getter = asyncio.ensure_future(changes.__anext__())
            done, _ = await asyncio.wait(
                {getter, receiver}, return_when=asyncio.FIRST_COMPLETED
            )
            if getter not in done:
                getter.cancel()
                await asyncio.gather(getter, return_exceptions=True)
                return True
            try:
                change = getter.result()
            except StopAsyncIteration:
                return False
            if not await handle(change):
                return False
    finally:
        receiver.cancel()
        await asyncio.gather(receiver, return_exceptions=True)
        await changes.aclose()


async def close_quietly(websocket: WebSocket, code: int = status.WS_1000_NORMAL_CLOSURE):
    try:
        await websocket.close(code=code)
    except RuntimeError:
        # already closed by the client
        pass


@router.websocket("/realtime/{table}")
async def realtime_feed(
    websocket: WebSocket,
    table: str,
    filter: Optional[str] = None,
    event: Optional[str] = None,
):
    """
    Subscribe to committed changes on ``table``. ``filter`` takes the form
    ``column=eq.value``; ``event`` is INSERT, UPDATE, DELETE or ``*``.
    """
    if table not in change_feed.WATCHED_TABLES:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    try:
        row_filter = change_feed.RowFilter.parse(filter)
        event_type = change_feed.parse_event_type(event)
    except ValidationFailedError as e:
        logger.info(f"Refusing realtime subscription on {table}: {e}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()

    async def send(change: ChangeEvent) -> bool:
        await websocket.send_text(change.model_dump_json())
        return True

    try:
        gone = await forward_changes(
            websocket, change_feed.subscribe(table, row_filter, event_type), send
        )
    except RedisError as e:
        logger.error(f"Change feed for {table} failed: {e}")
        await close_quietly(websocket, status.WS_1011_INTERNAL_ERROR)
        return
    if not gone:
        await close_quietly(websocket)
