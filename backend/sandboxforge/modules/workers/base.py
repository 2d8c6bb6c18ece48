"""
Worker process abstraction.

A worker is an external process (local or inside a remote sandbox) that
performs the actual generation and reports progress as text on stdout, with
diagnostics on stderr.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional


class WorkerProcess(ABC):
    """Lifecycle and output streams of one spawned worker"""

    @abstractmethod
    async def start(self) -> None:
        """Spawn the worker. Raises WorkerSpawnError if it cannot start."""

    @abstractmethod
    def stdout(self) -> AsyncIterator[bytes]:
        """Raw stdout chunks until EOF"""

    @abstractmethod
    def stderr(self) -> AsyncIterator[bytes]:
        """Raw diagnostic chunks until EOF"""

    @abstractmethod
    async def wait(self) -> int:
        """Wait for exit and return the exit code"""

    @abstractmethod
    async def kill(self) -> None:
        """Stop the worker and release its resources; safe to call repeatedly"""

    @property
    @abstractmethod
    def returncode(self) -> Optional[int]:
        """Exit code, or None while running / before start"""

    @property
    def ident(self) -> Optional[str]:
        """Identifier for logs (pid, remote execution id)"""
        return None

    @property
    def is_running(self) -> bool:
        return self.returncode is None

    async def __aenter__(self) -> "WorkerProcess":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self.is_running:
            await self.kill()
