"""
Remote sandbox worker.

Runs the worker command inside a sandbox through the platform's exec
capability. The platform client itself is supplied by the deployment; this
module only depends on the `SandboxPlatform` surface below.

The platform reports output through a callback, which is bridged onto an
asyncio queue so the orchestrator can pull chunks like it does from a local
pipe. Remote exec has a single combined output stream, so `stderr()` is empty.
"""

import asyncio
from typing import Any, AsyncIterator, Callable, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from sandboxforge.core.exceptions import SandboxNotFoundError, WorkerSpawnError
from sandboxforge.core.logging_config import logger
from sandboxforge.modules.generation.invocation import WorkerInvocation
from sandboxforge.modules.workers.base import WorkerProcess

OutputCallback = Callable[[str], None]

_EOF = object()


@runtime_checkable
class SandboxPlatform(Protocol):
    """Capabilities consumed from the remote sandbox platform"""

    async def create(self, config: Dict[str, Any]) -> Any:
        ...

    async def list(self) -> List[Any]:
        ...

    async def execute(
        self,
        sandbox: Any,
        command: str,
        env: Mapping[str, str],
        on_output: OutputCallback,
    ) -> int:
        ...

    async def get_preview_link(self, sandbox: Any, port: int) -> str:
        ...

    async def delete(self, sandbox_id: str) -> None:
        ...


def sandbox_identifier(sandbox: Any) -> Optional[str]:
    """Platform clients expose the id as an attribute or a mapping key"""
    if isinstance(sandbox, Mapping):
        return sandbox.get("id")
    return getattr(sandbox, "id", None)


async def find_sandbox(platform: SandboxPlatform, sandbox_id: str) -> Any:
    for sandbox in await platform.list():
        if sandbox_identifier(sandbox) == sandbox_id:
            return sandbox
    raise SandboxNotFoundError(sandbox_id)


class SandboxWorkerProcess(WorkerProcess):
    """Worker executing inside an existing remote sandbox"""

    def __init__(
        self,
        platform: SandboxPlatform,
        sandbox_id: str,
        invocation: WorkerInvocation,
        env_keys: Optional[List[str]] = None,
    ):
        self.platform = platform
        self.sandbox_id = sandbox_id
        self.invocation = invocation
        # Only credentials travel to the remote side, not this server's environment
        keys = env_keys if env_keys is not None else [
            k for k in invocation.env if k.endswith("_API_KEY")
        ]
        self.env = {k: invocation.env[k] for k in keys if k in invocation.env}
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._returncode: Optional[int] = None

    @property
    def returncode(self) -> Optional[int]:
        return self._returncode

    @property
    def ident(self) -> Optional[str]:
        return f"{self.sandbox_id}:{self.invocation.mode.value}"

    async def start(self) -> None:
        if self._task is not None:
            raise RuntimeError("Worker already started")
        try:
            sandbox = await find_sandbox(self.platform, self.sandbox_id)
        except SandboxNotFoundError:
            raise
        except Exception as e:
            raise WorkerSpawnError(f"Failed to reach sandbox platform: {e}") from e

        self._task = asyncio.create_task(self._execute(sandbox))
        logger.log_worker_event("remote exec started", pid=self.ident, **self.invocation.redacted())

    async def _execute(self, sandbox: Any) -> int:
        loop = asyncio.get_running_loop()

        def on_output(chunk: str) -> None:
            # Platform SDKs may call back from their own threads
            loop.call_soon_threadsafe(self._queue.put_nowait, chunk)

        try:
            return await self.platform.execute(sandbox, self.invocation.command_line, self.env, on_output)
        finally:
            loop.call_soon_threadsafe(self._queue.put_nowait, _EOF)

    async def stdout(self) -> AsyncIterator[bytes]:
        while True:
            item = await self._queue.get()
            if item is _EOF:
                break
            yield item.encode("utf-8") if isinstance(item, str) else item

    async def stderr(self) -> AsyncIterator[bytes]:
        return
        yield b""

    async def wait(self) -> int:
        if self._task is None:
            raise RuntimeError("Worker not started")
        await asyncio.wait({self._task})
        if self._task.cancelled():
            # Stopped through kill()
            code = -1
        elif self._task.exception() is not None:
            logger.error(f"[Worker] Remote exec in {self.sandbox_id} failed: {self._task.exception()}")
            code = 1
        else:
            code = self._task.result()
        if self._returncode is None:
            self._returncode = code
        logger.log_worker_event("remote exec exited", pid=self.ident, exit_code=self._returncode)
        return self._returncode

    async def kill(self) -> None:
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        # wait() leaves the caller's own cancellation alone
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"[Worker] Remote exec in {self.sandbox_id} raised during stop: {task.exception()}")
        self._returncode = -1
        logger.log_worker_event("remote exec cancelled", pid=self.ident, exit_code=self._returncode)
