from fastapi import APIRouter
from sandboxforge.api.v1.endpoints import generate, sandboxes, health

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(generate.router)
api_router.include_router(sandboxes.router)
