"""
Cooperative cancellation for generation sessions.

A CancellationToken is a one-shot signal the orchestrator selects on at every
suspension point. The CancellationController keeps the tokens of sessions
whose stream is currently open, so a stop can be requested out of band (the
cancel endpoint, a client disconnect, a timeout).
"""

import asyncio
from typing import Dict, List, Optional, Tuple, Union

from sandboxforge.core.logging_config import logger
from sandboxforge.modules.generation.session import GenerationSession


class CancellationToken:
    """One-shot stop signal; the first reason given is kept"""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> bool:
        """Signal the stop. Returns False if the token was already cancelled."""
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        return True

    async def wait(self) -> None:
        await self._event.wait()

    def cancel_after(self, seconds: float, reason: str = "timeout") -> asyncio.TimerHandle:
        """Schedule cancellation on the running loop; cancel the handle to disarm"""
        loop = asyncio.get_running_loop()
        return loop.call_later(seconds, self.cancel, reason)


class CancellationController:
    """
    Registry of in-flight sessions and their cancellation tokens.

    Sessions are registered when their stream opens and released when it
    closes; nothing is kept after that.
    """

    def __init__(self):
        self._sessions: Dict[str, Tuple[GenerationSession, CancellationToken]] = {}

    def register(self, session: GenerationSession) -> CancellationToken:
        token = CancellationToken()
        self._sessions[session.session_id] = (session, token)
        return token

    def get(self, session_id: str) -> Optional[GenerationSession]:
        entry = self._sessions.get(session_id)
        return entry[0] if entry else None

    def token_for(self, session_id: str) -> Optional[CancellationToken]:
        entry = self._sessions.get(session_id)
        return entry[1] if entry else None

    def cancel(self, session: Union[GenerationSession, str], reason: str = "client") -> bool:
        """
        Request a stop for a running session.

        Returns False when the session is unknown, already finished, or
        already cancelled. A session that finished first keeps its outcome.
        """
        session_id = session if isinstance(session, str) else session.session_id
        entry = self._sessions.get(session_id)
        if entry is None:
            return False

        registered, token = entry
        if registered.is_finished:
            return False
        if not token.cancel(reason):
            return False

        logger.log_session_event(session_id, "cancel requested", reason=reason)
        return True

    def release(self, session: Union[GenerationSession, str]) -> None:
        session_id = session if isinstance(session, str) else session.session_id
        self._sessions.pop(session_id, None)

    def active(self) -> List[str]:
        return list(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)


cancellation_controller = CancellationController()
