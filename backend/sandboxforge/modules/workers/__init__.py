"""
Worker Module - external generation processes

Key Components:
- WorkerProcess: start / stdout / stderr / wait / kill contract
- LocalWorkerProcess: child process in its own process group
- SandboxWorkerProcess: command executed inside a remote sandbox
- WorkerFactory: picks the transport configured in settings
"""

from .base import WorkerProcess
from .local import LocalWorkerProcess
from .sandbox import SandboxPlatform, SandboxWorkerProcess
from .factory import WorkerFactory, worker_factory

__all__ = [
    "WorkerProcess",
    "LocalWorkerProcess",
    "SandboxPlatform",
    "SandboxWorkerProcess",
    "WorkerFactory",
    "worker_factory",
]
