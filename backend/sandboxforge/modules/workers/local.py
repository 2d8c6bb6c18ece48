"""
Local subprocess worker.

Spawns the mode script as its own process group so that stopping it also
stops whatever the launcher (npx, tsx, node) started underneath.
"""

import asyncio
import os
import signal
from typing import AsyncIterator, Optional

from sandboxforge.core.config import settings
from sandboxforge.core.exceptions import WorkerSpawnError
from sandboxforge.core.logging_config import logger
from sandboxforge.modules.generation.invocation import WorkerInvocation
from sandboxforge.modules.workers.base import WorkerProcess


class LocalWorkerProcess(WorkerProcess):
    """Worker running as a child process of this server"""

    def __init__(
        self,
        invocation: WorkerInvocation,
        chunk_size: Optional[int] = None,
        kill_grace_seconds: Optional[float] = None,
        cwd: Optional[str] = None,
    ):
        self.invocation = invocation
        self.chunk_size = chunk_size or settings.WORKER_READ_CHUNK_SIZE
        self.kill_grace_seconds = (
            settings.WORKER_KILL_GRACE_SECONDS if kill_grace_seconds is None else kill_grace_seconds
        )
        self.cwd = cwd
        self._process: Optional[asyncio.subprocess.Process] = None

    @property
    def returncode(self) -> Optional[int]:
        if self._process is None:
            return None
        return self._process.returncode

    @property
    def ident(self) -> Optional[str]:
        return str(self._process.pid) if self._process else None

    async def start(self) -> None:
        if self._process is not None:
            raise RuntimeError("Worker already started")
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.invocation.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=dict(self.invocation.env),
                cwd=self.cwd,
                start_new_session=True,
            )
        except OSError as e:
            raise WorkerSpawnError(f"Failed to start worker: {e}", command=self.invocation.argv[0]) from e

        logger.log_worker_event("spawned", pid=self._process.pid, **self.invocation.redacted())

    def stdout(self) -> AsyncIterator[bytes]:
        return self._read(self._require_started().stdout)

    def stderr(self) -> AsyncIterator[bytes]:
        return self._read(self._require_started().stderr)

    async def wait(self) -> int:
        code = await self._require_started().wait()
        logger.log_worker_event("exited", pid=self._process.pid, exit_code=code)
        return code

    async def kill(self) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return

        self._signal_group(process, signal.SIGTERM)
        try:
            await asyncio.wait_for(process.wait(), timeout=self.kill_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"[Worker] pid {process.pid} ignored SIGTERM, sending SIGKILL")
            self._signal_group(process, signal.SIGKILL)
            await process.wait()

        logger.log_worker_event("killed", pid=process.pid, exit_code=process.returncode)

    async def _read(self, stream: Optional[asyncio.StreamReader]) -> AsyncIterator[bytes]:
        if stream is None:
            return
        while True:
            chunk = await stream.read(self.chunk_size)
            if not chunk:
                break
            yield chunk

    def _require_started(self) -> asyncio.subprocess.Process:
        if self._process is None:
            raise RuntimeError("Worker not started")
        return self._process

    @staticmethod
    def _signal_group(process: asyncio.subprocess.Process, sig: int) -> None:
        try:
            os.killpg(os.getpgid(process.pid), sig)
        except ProcessLookupError:
            pass
        except PermissionError:
            # Group already reaped or owned elsewhere; signal the child itself
            try:
                process.send_signal(sig)
            except ProcessLookupError:
                pass
