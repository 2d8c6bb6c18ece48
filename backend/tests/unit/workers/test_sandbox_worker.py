"""
Unit Tests for the remote sandbox worker
"""
import asyncio
from pathlib import Path

import anyio
import pytest

from sandboxforge.core.exceptions import SandboxNotFoundError, WorkerSpawnError
from sandboxforge.modules.generation.invocation import InvocationMode, WorkerInvocation
from sandboxforge.modules.workers.sandbox import SandboxPlatform, SandboxWorkerProcess

from tests.mocks.platform import FakePlatform


def invocation(**env) -> WorkerInvocation:
    return WorkerInvocation(
        mode=InvocationMode.GENERATE,
        script=Path("scripts/generate-in-daytona.ts"),
        argv=("npx", "tsx", "scripts/generate-in-daytona.ts", "build a todo app"),
        env=env,
    )


async def read_all(worker) -> bytes:
    return b"".join([chunk async for chunk in worker.stdout()])


class TestSandboxWorker:
    """Tests for remote execution through the platform surface"""

    def test_platform_protocol(self):
        """Test the fake satisfies the platform protocol"""
        assert isinstance(FakePlatform(), SandboxPlatform)

    @pytest.mark.asyncio
    async def test_output_and_exit_code(self):
        """Test callback output is streamed as bytes"""
        platform = FakePlatform(output=["Installing...\n", "Preview URL: https://x\n"], exit_code=0)
        worker = SandboxWorkerProcess(platform, "sb-1", invocation())
        await worker.start()

        assert await read_all(worker) == b"Installing...\nPreview URL: https://x\n"
        assert await worker.wait() == 0
        assert worker.returncode == 0

    @pytest.mark.asyncio
    async def test_command_line_quoted(self):
        """Test the prompt is shell quoted for remote exec"""
        platform = FakePlatform()
        worker = SandboxWorkerProcess(platform, "sb-1", invocation())
        await worker.start()
        await read_all(worker)
        await worker.wait()

        sandbox, command, _ = platform.executed[0]
        assert sandbox == {"id": "sb-1"}
        assert command.endswith("'build a todo app'")

    @pytest.mark.asyncio
    async def test_only_credentials_forwarded(self):
        """Test only *_API_KEY variables reach the remote side"""
        platform = FakePlatform()
        worker = SandboxWorkerProcess(
            platform, "sb-1",
            invocation(DAYTONA_API_KEY="d", ANTHROPIC_API_KEY="a", PATH="/usr/bin", HOME="/root"),
        )
        await worker.start()
        await read_all(worker)
        await worker.wait()

        assert platform.executed[0][2] == {"DAYTONA_API_KEY": "d", "ANTHROPIC_API_KEY": "a"}

    @pytest.mark.asyncio
    async def test_nonzero_exit(self):
        """Test the remote exit code is passed through"""
        worker = SandboxWorkerProcess(FakePlatform(exit_code=2), "sb-1", invocation())
        await worker.start()
        await read_all(worker)
        assert await worker.wait() == 2

    @pytest.mark.asyncio
    async def test_exec_failure_reports_failure_code(self):
        """Test a failing platform call ends the output and exits non-zero"""
        worker = SandboxWorkerProcess(FakePlatform(fail=RuntimeError("exec lost")), "sb-1", invocation())
        await worker.start()
        assert await read_all(worker) == b""
        assert await worker.wait() == 1

    @pytest.mark.asyncio
    async def test_stderr_empty(self):
        """Test remote exec has no separate diagnostic stream"""
        worker = SandboxWorkerProcess(FakePlatform(), "sb-1", invocation())
        assert [chunk async for chunk in worker.stderr()] == []


class TestSandboxWorkerLifecycle:
    """Tests for lookup failures and stopping"""

    @pytest.mark.asyncio
    async def test_unknown_sandbox(self):
        """Test a missing sandbox fails at start"""
        worker = SandboxWorkerProcess(FakePlatform(sandboxes=[]), "sb-404", invocation())
        with pytest.raises(SandboxNotFoundError):
            await worker.start()

    @pytest.mark.asyncio
    async def test_unreachable_platform(self):
        """Test platform errors become spawn errors"""
        worker = SandboxWorkerProcess(FakePlatform(fail=ConnectionError("down")), "sb-1", invocation())
        with pytest.raises(WorkerSpawnError):
            await worker.start()

    @pytest.mark.asyncio
    async def test_kill_stops_remote_exec(self):
        """Test kill cancels a running remote command"""
        worker = SandboxWorkerProcess(FakePlatform(output=["ready\n"], block=True), "sb-1", invocation())
        await worker.start()
        assert await worker.stdout().__anext__() == b"ready\n"

        await asyncio.wait_for(worker.kill(), timeout=1)

        assert worker.returncode == -1
        assert await worker.wait() == -1
        await worker.kill()

    @pytest.mark.asyncio
    async def test_kill_keeps_caller_cancellation(self):
        """Test a shielded kill completes and the caller's cancelled scope still ends"""
        worker = SandboxWorkerProcess(FakePlatform(output=["ready\n"], block=True), "sb-1", invocation())
        await worker.start()
        assert await worker.stdout().__anext__() == b"ready\n"

        with anyio.CancelScope() as scope:
            scope.cancel()
            with anyio.CancelScope(shield=True):
                await worker.kill()
            await anyio.sleep(1)

        assert scope.cancelled_caught
        assert worker.returncode == -1

    @pytest.mark.asyncio
    async def test_wait_requires_start(self):
        """Test wait before start is a programming error"""
        worker = SandboxWorkerProcess(FakePlatform(), "sb-1", invocation())
        with pytest.raises(RuntimeError):
            await worker.wait()
