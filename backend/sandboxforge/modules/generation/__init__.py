"""
Generation Module - turns worker output into a live event stream

Key Components:
- StreamFrameParser: line reassembly + sentinel tag decoding
- extraction: sandbox id / preview URL announcements, noise filters
- StreamEvent variants and their wire dicts
- GenerationSession: per-request state with first-write-wins facts
- InvocationBuilder: mode script + argv + credentials per request
- SessionOrchestrator (orchestrator.py): drives the worker, emits events
- CancellationController: cooperative stop of running sessions
- EventChannel (channel.py): Server-Sent Events encoding

The orchestrator imports the worker transports, which in turn import
`invocation`; import it from its own module to keep this package light.
"""

from .frames import Frame, FrameKind, StreamFrameParser, parse_stream
from .events import (
    AgentMessage,
    Complete,
    Error,
    Progress,
    StreamEvent,
    StreamEventType,
    ToolInvocation,
    ToolResult,
)
from .session import AgentBackend, GenerationSession, SessionStatus

__all__ = [
    "Frame",
    "FrameKind",
    "StreamFrameParser",
    "parse_stream",
    "AgentMessage",
    "Complete",
    "Error",
    "Progress",
    "StreamEvent",
    "StreamEventType",
    "ToolInvocation",
    "ToolResult",
    "AgentBackend",
    "GenerationSession",
    "SessionStatus",
]
