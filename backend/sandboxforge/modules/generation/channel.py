"""
Event channel: StreamEvents -> Server-Sent Events.

Every event is written as one `data: <json>\\n\\n` unit, in the order the
orchestrator produced it. The last unit is always `data: [DONE]`, including
for an empty sequence and after a cancellation, unless the transport itself
went away. Losing the client cancels the session.
"""

import asyncio
import json
from typing import AsyncIterator, Awaitable, Callable, Optional

from sandboxforge.core.config import settings
from sandboxforge.core.logging_config import logger
from sandboxforge.modules.generation.cancellation import CancellationToken
from sandboxforge.modules.generation.events import Error, StreamEvent

DONE_MARKER = "data: [DONE]\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def encode_event(event: StreamEvent) -> str:
    return f"data: {json.dumps(event.to_dict())}\n\n"


class EventChannel:
    """Forwards one session's events to one client connection"""

    def __init__(
        self,
        events: AsyncIterator[StreamEvent],
        token: CancellationToken,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
        poll_interval: Optional[float] = None,
    ):
        self.events = events
        self.token = token
        self.is_disconnected = is_disconnected
        self.poll_interval = settings.SSE_DISCONNECT_POLL_SECONDS if poll_interval is None else poll_interval
        self.sent = 0

    async def stream(self) -> AsyncIterator[str]:
        watcher = None
        if self.is_disconnected is not None:
            watcher = asyncio.create_task(self._watch_disconnect())

        try:
            try:
                async for event in self.events:
                    yield encode_event(event)
                    self.sent += 1
            except Exception as e:
                logger.log_error_with_context(e, context="event channel")
                yield encode_event(Error(text="Internal error while streaming", fatal=True))
            yield DONE_MARKER
        except BaseException:
            # GeneratorExit when the transport closed, CancelledError on disconnect
            self.token.cancel("disconnected")
            raise
        finally:
            if watcher is not None:
                watcher.cancel()
            aclose = getattr(self.events, "aclose", None)
            if aclose is not None:
                await aclose()
            logger.debug(f"[SSE] Channel closed after {self.sent} events")

    async def _watch_disconnect(self) -> None:
        while not self.token.cancelled:
            if await self.is_disconnected():
                logger.info("[SSE] Client disconnected, cancelling session")
                self.token.cancel("disconnected")
                return
            await asyncio.sleep(self.poll_interval)
