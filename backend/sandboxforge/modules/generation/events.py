"""
Client-facing stream events.

Each event serializes to a JSON object whose `type` names its variant. The
orchestrator only ever builds events through these classes; raw worker tags
never reach the client.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Optional


class StreamEventType(str, Enum):
    """Discriminator values written to the client"""
    AGENT_MESSAGE = "agent_message"
    TOOL_INVOCATION = "tool_invocation"
    TOOL_RESULT = "tool_result"
    PROGRESS = "progress"
    ERROR = "error"
    COMPLETE = "complete"


@dataclass(frozen=True)
class StreamEvent:
    """Base class for all stream events"""
    type: ClassVar[StreamEventType]

    @property
    def is_terminal(self) -> bool:
        """True if nothing may follow this event"""
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value}


@dataclass(frozen=True)
class AgentMessage(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.AGENT_MESSAGE
    text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "text": self.text}


@dataclass(frozen=True)
class ToolInvocation(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.TOOL_INVOCATION
    name: str = ""
    input: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "name": self.name, "input": self.input}


@dataclass(frozen=True)
class ToolResult(StreamEvent):
    """Decoded but suppressed by the orchestrator"""
    type: ClassVar[StreamEventType] = StreamEventType.TOOL_RESULT
    name: str = ""
    result: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "name": self.name, "result": self.result}


@dataclass(frozen=True)
class Progress(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.PROGRESS
    text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "text": self.text}


@dataclass(frozen=True)
class Error(StreamEvent):
    """
    An error report. Fatal errors end the session; non-fatal ones relay
    error-significant worker diagnostics and the stream continues.
    """
    type: ClassVar[StreamEventType] = StreamEventType.ERROR
    text: str = ""
    fatal: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.fatal

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "text": self.text, "fatal": self.fatal}


@dataclass(frozen=True)
class Complete(StreamEvent):
    type: ClassVar[StreamEventType] = StreamEventType.COMPLETE
    sandbox_id: Optional[str] = None
    preview_url: str = ""

    @property
    def is_terminal(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "sandboxId": self.sandbox_id,
            "previewUrl": self.preview_url,
        }
