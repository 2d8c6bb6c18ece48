"""
Worker transport selection.

WORKER_TRANSPORT=local   -> LocalWorkerProcess (default)
WORKER_TRANSPORT=sandbox -> SandboxWorkerProcess inside WORKER_SANDBOX_ID,
                            using the platform registered on the factory
"""

from typing import Optional

from sandboxforge.core.config import Settings, settings as default_settings
from sandboxforge.core.exceptions import ConfigurationError
from sandboxforge.modules.generation.invocation import WorkerInvocation
from sandboxforge.modules.workers.base import WorkerProcess
from sandboxforge.modules.workers.local import LocalWorkerProcess
from sandboxforge.modules.workers.sandbox import SandboxPlatform, SandboxWorkerProcess

TRANSPORT_LOCAL = "local"
TRANSPORT_SANDBOX = "sandbox"


class WorkerFactory:
    """Creates an unstarted WorkerProcess for an invocation"""

    def __init__(self, config: Optional[Settings] = None, platform: Optional[SandboxPlatform] = None):
        self.config = config or default_settings
        self.platform = platform

    def set_platform(self, platform: Optional[SandboxPlatform]) -> None:
        self.platform = platform

    @property
    def transport(self) -> str:
        return (self.config.WORKER_TRANSPORT or TRANSPORT_LOCAL).strip().lower()

    def validate(self) -> None:
        """Fail fast on a transport that cannot be served"""
        if self.transport == TRANSPORT_LOCAL:
            return
        if self.transport != TRANSPORT_SANDBOX:
            raise ConfigurationError(
                f"Unknown worker transport '{self.config.WORKER_TRANSPORT}'",
                code="UNKNOWN_TRANSPORT",
            )
        if self.platform is None:
            raise ConfigurationError(
                "Sandbox transport selected but no sandbox platform is registered",
                code="PLATFORM_NOT_CONFIGURED",
            )
        if not self.config.WORKER_SANDBOX_ID:
            raise ConfigurationError(
                "Sandbox transport requires WORKER_SANDBOX_ID",
                code="WORKER_SANDBOX_NOT_CONFIGURED",
            )

    def __call__(self, invocation: WorkerInvocation) -> WorkerProcess:
        self.validate()
        if self.transport == TRANSPORT_SANDBOX:
            return SandboxWorkerProcess(self.platform, self.config.WORKER_SANDBOX_ID, invocation)
        return LocalWorkerProcess(
            invocation,
            chunk_size=self.config.WORKER_READ_CHUNK_SIZE,
            kill_grace_seconds=self.config.WORKER_KILL_GRACE_SECONDS,
        )


worker_factory = WorkerFactory()
