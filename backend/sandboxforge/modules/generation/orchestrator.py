"""
Generation Session Orchestrator

Drives one worker for one generation session and turns its output into the
ordered StreamEvent sequence sent to the client:

    invocation -> worker.start -> [stdout frames | stderr diagnostics] -> exit

Two reader tasks (stdout, stderr) feed one queue, so each stream keeps its own
order while the two may interleave. Every fatal condition becomes exactly one
fatal Error event; cancellation stops the sequence without a final event.
The end-of-stream marker belongs to the channel, not to this module.
"""

import asyncio
import time
from typing import Any, AsyncIterator, Awaitable, Optional

import anyio

from sandboxforge.core.config import Settings, settings as default_settings
from sandboxforge.core.exceptions import (
    ConfigurationError,
    PreviewUnavailableError,
    WorkerError,
    WorkerExitError,
)
from sandboxforge.core.logging_config import logger, set_sandbox_id, set_session_id
from sandboxforge.modules.generation.cancellation import CancellationToken
from sandboxforge.modules.generation.events import (
    AgentMessage,
    Complete,
    Error,
    Progress,
    StreamEvent,
    ToolInvocation,
)
from sandboxforge.modules.generation.extraction import (
    ExtractedFacts,
    extract_facts,
    is_error_significant,
    is_internal_line,
)
from sandboxforge.modules.generation.frames import Frame, FrameKind, LineBuffer, StreamFrameParser
from sandboxforge.modules.generation.invocation import InvocationBuilder, WorkerInvocation, invocation_builder
from sandboxforge.modules.generation.session import GenerationSession, SessionStatus
from sandboxforge.modules.workers.base import WorkerProcess
from sandboxforge.modules.workers.factory import WorkerFactory, worker_factory as shared_worker_factory

# Queue markers
_READER_DONE = object()
_CANCELLED = object()


class _ReaderFailure:
    """An output reader died; the orchestrator turns it into a fatal error"""

    def __init__(self, error: Exception):
        self.error = error


def _discard_outcome(task: asyncio.Future) -> None:
    """Mark a losing task's exception as retrieved, now or once it settles"""
    def retrieve(done: asyncio.Future) -> None:
        if not done.cancelled():
            done.exception()

    if task.done():
        retrieve(task)
    else:
        task.add_done_callback(retrieve)


class SessionOrchestrator:
    """
    Runs generation sessions.

    Example:
        orchestrator = SessionOrchestrator()
        session = GenerationSession(prompt="build a todo app")
        async for event in orchestrator.run(session, token=token):
            print(event.to_dict())
    """

    def __init__(
        self,
        worker_factory: Optional[WorkerFactory] = None,
        builder: Optional[InvocationBuilder] = None,
        config: Optional[Settings] = None,
    ):
        self.config = config or default_settings
        self.builder = builder or InvocationBuilder(self.config)
        self.worker_factory = worker_factory or WorkerFactory(self.config)

    async def run(
        self,
        session: GenerationSession,
        invocation: Optional[WorkerInvocation] = None,
        token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Stream the events of one session. Supports a single consumption pass.

        Never raises for worker or configuration failures; those end the
        sequence with one fatal Error. asyncio.CancelledError is propagated
        after the worker has been stopped.
        """
        token = token or CancellationToken()
        set_session_id(session.session_id)
        started = time.monotonic()
        worker: Optional[WorkerProcess] = None
        readers = []
        timer = None

        if self.config.GENERATION_TIMEOUT_SECONDS > 0:
            timer = token.cancel_after(self.config.GENERATION_TIMEOUT_SECONDS)

        logger.log_session_event(
            session.session_id, "started",
            backend=session.backend.value, follow_up=session.is_follow_up,
        )

        try:
            try:
                if invocation is None:
                    invocation = self.builder.for_session(session)
                worker = self.worker_factory(invocation)
                await worker.start()
            except (ConfigurationError, WorkerError) as e:
                failure = self._fail(session, e)
                if failure is not None:
                    yield failure
                return

            if token.cancelled:
                await self._stop(session, worker, token)
                return

            session.mark_running()
            queue: asyncio.Queue = asyncio.Queue()
            readers = [
                asyncio.create_task(self._pump_stdout(worker, session, queue)),
                asyncio.create_task(self._pump_stderr(worker, queue)),
            ]

            open_readers = len(readers)
            while open_readers:
                item = await self._until_cancelled(queue.get(), token)
                if item is _CANCELLED:
                    await self._stop(session, worker, token)
                    return
                if item is _READER_DONE:
                    open_readers -= 1
                    continue
                if isinstance(item, _ReaderFailure):
                    raise item.error
                yield item

            exit_code = await self._until_cancelled(worker.wait(), token)
            if exit_code is _CANCELLED:
                await self._stop(session, worker, token)
                return

            outcome = self._conclude(session, exit_code)
            if outcome is not None:
                yield outcome

        except asyncio.CancelledError:
            if session.finish(SessionStatus.CANCELLED):
                logger.log_session_event(session.session_id, "abandoned", reason="task cancelled")
            raise
        except Exception as e:
            logger.log_error_with_context(e, context="generation session")
            if session.finish(SessionStatus.FAILED):
                yield Error(text=f"Generation failed: {e}", fatal=True)
        finally:
            if timer is not None:
                timer.cancel()
            for reader in readers:
                reader.cancel()
            # On disconnect the response scope is cancelled at every await
            with anyio.CancelScope(shield=True):
                if worker is not None:
                    await worker.kill()
                if readers:
                    await asyncio.gather(*readers, return_exceptions=True)
            # Consumer stopped iterating before a terminal outcome
            if session.finish(SessionStatus.CANCELLED):
                logger.log_session_event(session.session_id, "abandoned")
            logger.log_performance(
                "generation session",
                (time.monotonic() - started) * 1000,
                threshold_ms=600_000,
                status=session.status.value,
            )

    # ------------------------------------------------------------------
    # Terminal outcomes
    # ------------------------------------------------------------------

    def _conclude(self, session: GenerationSession, exit_code: int) -> Optional[StreamEvent]:
        """Exit 0 with a preview URL completes; anything else fails"""
        if exit_code != 0:
            return self._fail(session, WorkerExitError(exit_code))
        if not session.preview_url:
            return self._fail(session, PreviewUnavailableError())

        if not session.finish(SessionStatus.COMPLETED):
            return None
        logger.log_session_event(
            session.session_id, "completed",
            preview_url=session.preview_url, discovered_sandbox=session.sandbox_id,
        )
        return Complete(sandbox_id=session.sandbox_id, preview_url=session.preview_url)

    def _fail(self, session: GenerationSession, error: Exception) -> Optional[Error]:
        if not session.finish(SessionStatus.FAILED):
            return None
        message = getattr(error, "message", str(error))
        logger.log_session_event(
            session.session_id, "failed",
            error_code=getattr(error, "code", None), error_message=message,
        )
        return Error(text=message, fatal=True)

    async def _stop(self, session: GenerationSession, worker: WorkerProcess, token: CancellationToken) -> None:
        await worker.kill()
        if session.finish(SessionStatus.CANCELLED):
            logger.log_session_event(session.session_id, "cancelled", reason=token.reason)

    @staticmethod
    async def _until_cancelled(awaitable: Awaitable[Any], token: CancellationToken) -> Any:
        """Await `awaitable` unless the token fires first; returns _CANCELLED then"""
        task = asyncio.ensure_future(awaitable)
        stop = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({task, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()
            if not task.done():
                task.cancel()
        if token.cancelled:
            _discard_outcome(task)
            return _CANCELLED
        return task.result()

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    async def _pump_stdout(self, worker: WorkerProcess, session: GenerationSession, queue: asyncio.Queue) -> None:
        parser = StreamFrameParser()
        try:
            async for frame in parser.iter_frames(worker.stdout()):
                event = self._event_for(frame, session)
                if event is not None:
                    queue.put_nowait(event)
        except Exception as e:
            queue.put_nowait(_ReaderFailure(e))
        finally:
            queue.put_nowait(_READER_DONE)

    async def _pump_stderr(self, worker: WorkerProcess, queue: asyncio.Queue) -> None:
        lines = LineBuffer()
        try:
            async for chunk in worker.stderr():
                self._relay_diagnostics(lines.feed(chunk), queue)
            self._relay_diagnostics(lines.flush(), queue)
        except Exception as e:
            queue.put_nowait(_ReaderFailure(e))
        finally:
            queue.put_nowait(_READER_DONE)

    def _event_for(self, frame: Frame, session: GenerationSession) -> Optional[StreamEvent]:
        if frame.kind == FrameKind.MESSAGE:
            content = frame.payload.get("content")
            return AgentMessage(text=str(content)) if content else None

        if frame.kind == FrameKind.TOOL_USE:
            tool_input = frame.payload.get("input")
            return ToolInvocation(
                name=str(frame.payload.get("name", "")),
                input=tool_input if isinstance(tool_input, dict) else {},
            )

        if frame.kind == FrameKind.TOOL_RESULT:
            # Consumed, never forwarded
            return None

        if is_internal_line(frame.text):
            return None

        self._record_facts(session, extract_facts(frame.text))
        return Progress(text=frame.text)

    def _record_facts(self, session: GenerationSession, facts: ExtractedFacts) -> None:
        if not facts:
            return
        if facts.sandbox_id and session.record_sandbox_id(facts.sandbox_id):
            set_sandbox_id(facts.sandbox_id)
            logger.log_session_event(session.session_id, "sandbox discovered", discovered_sandbox=facts.sandbox_id)
        if facts.preview_url and session.record_preview_url(facts.preview_url):
            logger.log_session_event(session.session_id, "preview discovered", preview_url=facts.preview_url)

    @staticmethod
    def _relay_diagnostics(lines, queue: asyncio.Queue) -> None:
        for line in lines:
            text = line.strip()
            if not text:
                continue
            if is_error_significant(text):
                queue.put_nowait(Error(text=text))
            else:
                logger.info(f"[Worker stderr] {text}", extra={"event_type": "worker_stderr"})


orchestrator = SessionOrchestrator(worker_factory=shared_worker_factory, builder=invocation_builder)
