"""
Sandbox management endpoints.
"""

import asyncio
from typing import AsyncIterator, List, Tuple

from fastapi import APIRouter, Depends, HTTPException

from sandboxforge.core.exceptions import ConfigurationError, SandboxDeletionError, WorkerError
from sandboxforge.core.logging_config import logger
from sandboxforge.modules.generation.invocation import InvocationBuilder, invocation_builder
from sandboxforge.modules.workers.base import WorkerProcess
from sandboxforge.modules.workers.factory import WorkerFactory, worker_factory
from sandboxforge.schemas.generation import DeleteSandboxRequest, DeleteSandboxResponse

router = APIRouter(prefix="/sandboxes", tags=["Sandboxes"])


def get_invocation_builder() -> InvocationBuilder:
    return invocation_builder


def get_worker_factory() -> WorkerFactory:
    return worker_factory


async def _collect_lines(chunks: AsyncIterator[bytes]) -> List[str]:
    data = b"".join([chunk async for chunk in chunks])
    return [line.strip() for line in data.decode("utf-8", errors="replace").splitlines() if line.strip()]


async def run_to_exit(worker: WorkerProcess) -> Tuple[int, List[str]]:
    """Run a short-lived worker to completion; returns exit code and stderr lines"""
    async with worker:
        output, diagnostics = await asyncio.gather(
            _collect_lines(worker.stdout()),
            _collect_lines(worker.stderr()),
        )
        exit_code = await worker.wait()
    for line in output:
        logger.debug(f"[Sandboxes] {line}")
    return exit_code, diagnostics


@router.post("/delete", response_model=DeleteSandboxResponse)
async def delete_sandbox(
    body: DeleteSandboxRequest,
    builder: InvocationBuilder = Depends(get_invocation_builder),
    factory: WorkerFactory = Depends(get_worker_factory),
):
    """Delete a sandbox on the platform through the remove-sandbox worker"""
    try:
        worker = factory(builder.for_removal(body.sandbox_id))
    except ConfigurationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    logger.info(f"[Sandboxes] Deleting sandbox {body.sandbox_id} for user {body.user_id}")

    try:
        exit_code, diagnostics = await run_to_exit(worker)
    except WorkerError as e:
        logger.error(f"[Sandboxes] Could not start removal for {body.sandbox_id}: {e.message}")
        error = SandboxDeletionError(body.sandbox_id)
        raise HTTPException(status_code=error.status_code, detail=error.message)

    if exit_code != 0:
        error = SandboxDeletionError(body.sandbox_id, exit_code=exit_code)
        logger.error(
            f"[Sandboxes] Removal of {body.sandbox_id} exited with code {exit_code}",
            extra={"event_type": "sandbox_delete_failed", "diagnostics": diagnostics[-5:]},
        )
        raise HTTPException(status_code=error.status_code, detail=error.message)

    logger.info(f"[Sandboxes] Sandbox {body.sandbox_id} deleted")
    return DeleteSandboxResponse(
        success=True,
        message="Sandbox deleted successfully",
        details={"sandboxId": body.sandbox_id},
    )
