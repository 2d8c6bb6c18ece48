"""
Generation session state.

A session lives for exactly one streaming request. Its sandbox id and preview
URL are first-write-wins; its status moves Pending -> Running -> terminal and
the first terminal transition wins, which is how cancellation and natural
completion are arbitrated.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sandboxforge.core.exceptions import UnsupportedBackendError


class AgentBackend(str, Enum):
    """AI code-generation backend driving the worker"""
    PRIMARY = "primary-agent"
    SECONDARY = "secondary-agent"
    THIRD_PARTY = "third-party-agent"

    @classmethod
    def parse(cls, value: Optional[str]) -> "AgentBackend":
        """Accept canonical values and the model names clients send"""
        if value is None or value == "":
            return cls.PRIMARY
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized in BACKEND_ALIASES:
            return BACKEND_ALIASES[normalized]
        try:
            return cls(normalized)
        except ValueError:
            raise UnsupportedBackendError(str(value))


BACKEND_ALIASES: Dict[str, AgentBackend] = {
    "claude": AgentBackend.PRIMARY,
    "chatgpt": AgentBackend.SECONDARY,
    "lovable": AgentBackend.THIRD_PARTY,
}


class SessionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED, SessionStatus.CANCELLED)


@dataclass
class GenerationSession:
    """One generation conversation, owned by the request that drives it"""
    prompt: str
    backend: AgentBackend = AgentBackend.PRIMARY
    sandbox_id: Optional[str] = None
    is_follow_up: bool = False
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    preview_url: Optional[str] = None
    status: SessionStatus = SessionStatus.PENDING
    created_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    def record_sandbox_id(self, sandbox_id: str) -> bool:
        """Set the sandbox id unless one is already known"""
        if self.sandbox_id or not sandbox_id:
            return False
        self.sandbox_id = sandbox_id
        return True

    def record_preview_url(self, preview_url: str) -> bool:
        """Set the preview URL unless one is already known"""
        if self.preview_url or not preview_url:
            return False
        self.preview_url = preview_url
        return True

    def mark_running(self) -> bool:
        if self.status != SessionStatus.PENDING:
            return False
        self.status = SessionStatus.RUNNING
        return True

    def finish(self, status: SessionStatus) -> bool:
        """
        Move to a terminal status.

        Returns False if the session already reached one, in which case the
        caller lost the race and must not act on its outcome.
        """
        if not status.is_terminal:
            raise ValueError(f"{status.value} is not a terminal status")
        if self.status.is_terminal:
            return False
        self.status = status
        self.finished_at = datetime.utcnow()
        return True

    @property
    def is_finished(self) -> bool:
        return self.status.is_terminal

    def snapshot(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "backend": self.backend.value,
            "isFollowUp": self.is_follow_up,
            "sandboxId": self.sandbox_id,
            "previewUrl": self.preview_url,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
        }
