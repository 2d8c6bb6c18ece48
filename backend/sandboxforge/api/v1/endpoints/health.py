"""
Health / diagnostics endpoint.

Reports which provider credentials are configured (never their values) so a
deployment can be checked without starting a generation.
"""

from datetime import datetime

from fastapi import APIRouter, Depends

from sandboxforge.core.config import settings
from sandboxforge.modules.generation.cancellation import CancellationController
from sandboxforge.api.v1.endpoints.generate import get_cancellation_controller


router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(
    controller: CancellationController = Depends(get_cancellation_controller),
):
    credentials = settings.credential_status()
    return {
        "status": "healthy" if credentials["daytona"] else "degraded",
        "service": "sandboxforge-backend",
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.utcnow().isoformat(),
        "transport": settings.WORKER_TRANSPORT,
        "credentials": credentials,
        "active_sessions": len(controller),
    }
