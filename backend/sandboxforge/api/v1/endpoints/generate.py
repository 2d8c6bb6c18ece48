"""
Generation endpoints.

POST /generate streams a session as Server-Sent Events. Configuration problems
(unknown backend, missing credential, follow-up without a sandbox) are rejected
with a plain error response before the stream starts.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from sandboxforge.core.exceptions import ConfigurationError, SessionNotFoundError
from sandboxforge.core.logging_config import logger
from sandboxforge.modules.generation.cancellation import CancellationController, cancellation_controller
from sandboxforge.modules.generation.channel import SSE_HEADERS, EventChannel
from sandboxforge.modules.generation.orchestrator import SessionOrchestrator, orchestrator
from sandboxforge.modules.generation.session import AgentBackend, GenerationSession
from sandboxforge.schemas.generation import CancelResponse, GenerateRequest, SessionResponse

router = APIRouter(prefix="/generate", tags=["Generation"])


def get_orchestrator() -> SessionOrchestrator:
    return orchestrator


def get_cancellation_controller() -> CancellationController:
    return cancellation_controller


@router.post("")
async def generate(
    body: GenerateRequest,
    request: Request,
    runner: SessionOrchestrator = Depends(get_orchestrator),
    controller: CancellationController = Depends(get_cancellation_controller),
):
    """
    Start a generation (or follow-up) and stream its events.

    Response: text/event-stream of `data: <json>` units, ending with
    `data: [DONE]`. The session id is returned in the X-Session-ID header.
    """
    try:
        session = GenerationSession(
            prompt=body.prompt,
            backend=AgentBackend.parse(body.model),
            sandbox_id=body.sandbox_id,
            is_follow_up=body.is_follow_up,
        )
        invocation = runner.builder.for_session(session)
        runner.worker_factory.validate()
    except ConfigurationError as e:
        logger.warning(
            f"[Generate] Rejected request: {e.message}",
            extra={"event_type": "generation_rejected", "error_code": e.code},
        )
        raise HTTPException(status_code=e.status_code, detail=e.message)

    token = controller.register(session)
    channel = EventChannel(
        runner.run(session, invocation=invocation, token=token),
        token,
        is_disconnected=request.is_disconnected,
    )

    async def event_stream():
        stream = channel.stream()
        try:
            async for unit in stream:
                yield unit
        finally:
            await stream.aclose()
            controller.release(session)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={**SSE_HEADERS, "X-Session-ID": session.session_id},
    )


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    controller: CancellationController = Depends(get_cancellation_controller),
):
    """Live snapshot of a session whose stream is still open"""
    session = controller.get(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    return session.snapshot()


@router.post("/{session_id}/cancel", response_model=CancelResponse)
async def cancel_session(
    session_id: str,
    controller: CancellationController = Depends(get_cancellation_controller),
):
    """
    Stop a running session. The stream ends without a final event; a
    session that already finished keeps its outcome (cancelled=false).
    """
    if controller.get(session_id) is None:
        raise SessionNotFoundError(session_id)
    return {"sessionId": session_id, "cancelled": controller.cancel(session_id, reason="client")}
