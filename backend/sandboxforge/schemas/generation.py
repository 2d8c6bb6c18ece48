from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, Dict, Any


# ==================== Generation ====================

class GenerateRequest(BaseModel):
    """Generation / follow-up request as sent by the web client"""
    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(..., min_length=1)
    sandbox_id: Optional[str] = Field(None, alias="sandboxId")
    is_follow_up: bool = Field(False, alias="isFollowUp")
    model: Optional[str] = None  # claude, chatgpt, lovable or a canonical backend name

    @field_validator('prompt')
    @classmethod
    def prompt_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Prompt is required")
        return v

    @field_validator('sandbox_id')
    @classmethod
    def empty_sandbox_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class SessionResponse(BaseModel):
    """Snapshot of an open generation session"""
    sessionId: str
    backend: str
    isFollowUp: bool
    sandboxId: Optional[str] = None
    previewUrl: Optional[str] = None
    status: str
    createdAt: str
    finishedAt: Optional[str] = None


class CancelResponse(BaseModel):
    sessionId: str
    cancelled: bool


# ==================== Sandboxes ====================

class DeleteSandboxRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sandbox_id: str = Field(..., min_length=1, alias="sandboxId")
    user_id: str = Field(..., min_length=1, alias="userId")


class DeleteSandboxResponse(BaseModel):
    success: bool
    message: str
    details: Optional[Dict[str, Any]] = None
