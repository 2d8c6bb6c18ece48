"""
Custom Exceptions for SandboxForge
==================================

Configuration errors are raised before any worker is spawned and surface as a
plain HTTP error response. Worker errors happen once a stream is open and are
converted into a single fatal `error` event by the orchestrator.

Usage:
    from sandboxforge.core.exceptions import MissingCredentialError

    missing = settings.missing_credentials(["ANTHROPIC_API_KEY"])
    if missing:
        raise MissingCredentialError("primary-agent", missing)
"""

from typing import Optional, Any, Dict, List


class ForgeError(Exception):
    """Base exception for all SandboxForge errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Configuration Errors (raised before spawn)
# ============================================

class ConfigurationError(ForgeError):
    """Request or server configuration does not allow starting a worker"""

    status_code = 400

    def __init__(self, message: str, code: str = "CONFIGURATION_ERROR",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class MissingCredentialError(ConfigurationError):
    """A provider credential required by the selected backend is not set"""

    status_code = 500

    def __init__(self, backend: str, missing: List[str]):
        super().__init__(
            f"Missing API key for {backend}. Please check your environment variables.",
            code="MISSING_CREDENTIAL",
            details={"backend": backend, "missing": missing}
        )


class FollowUpWithoutSandboxError(ConfigurationError):
    """Follow-up requested but no sandbox is known"""

    def __init__(self):
        super().__init__(
            "Sandbox ID is required for follow-up requests",
            code="SANDBOX_ID_REQUIRED"
        )


class UnsupportedBackendError(ConfigurationError):
    """Unknown agent backend selector"""

    def __init__(self, backend: str):
        super().__init__(
            f"Unsupported agent backend '{backend}'",
            code="UNSUPPORTED_BACKEND",
            details={"backend": backend}
        )


# ============================================
# Worker Errors (raised once a stream is open)
# ============================================

class WorkerError(ForgeError):
    """Worker process failed"""

    def __init__(self, message: str, code: str = "WORKER_ERROR",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class WorkerSpawnError(WorkerError):
    """Worker could not be started"""

    def __init__(self, message: str, command: Optional[str] = None):
        super().__init__(message, code="WORKER_SPAWN_FAILED")
        if command:
            self.details["command"] = command


class WorkerExitError(WorkerError):
    """Worker exited with a non-zero code"""

    def __init__(self, exit_code: int):
        super().__init__(
            f"Process exited with code {exit_code}",
            code="WORKER_EXIT_NONZERO",
            details={"exit_code": exit_code}
        )
        self.exit_code = exit_code


class PreviewUnavailableError(WorkerError):
    """Worker exited cleanly but never announced a preview URL"""

    def __init__(self):
        super().__init__("Failed to get preview URL", code="PREVIEW_UNAVAILABLE")


class SandboxNotFoundError(WorkerError):
    """Remote sandbox could not be resolved on the platform"""

    def __init__(self, sandbox_id: str):
        super().__init__(
            f"Sandbox {sandbox_id} not found",
            code="SANDBOX_NOT_FOUND",
            details={"sandbox_id": sandbox_id}
        )


# ============================================
# Session / Sandbox Management Errors
# ============================================

class SessionNotFoundError(ForgeError):
    """No active generation session with this ID"""

    status_code = 404

    def __init__(self, session_id: str):
        super().__init__(
            f"Session with ID '{session_id}' not found",
            code="SESSION_NOT_FOUND",
            details={"session_id": session_id}
        )


class SandboxDeletionError(ForgeError):
    """Sandbox removal worker failed"""

    def __init__(self, sandbox_id: str, exit_code: Optional[int] = None):
        super().__init__("Failed to delete sandbox", code="SANDBOX_DELETE_FAILED")
        self.details["sandbox_id"] = sandbox_id
        if exit_code is not None:
            self.details["exit_code"] = exit_code


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: ForgeError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }
