# Pydantic schemas
from sandboxforge.schemas.generation import (
    GenerateRequest,
    SessionResponse,
    CancelResponse,
    DeleteSandboxRequest,
    DeleteSandboxResponse,
)
