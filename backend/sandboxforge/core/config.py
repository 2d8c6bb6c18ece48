from pydantic_settings import BaseSettings
from typing import List, Dict, Any, Optional
import json
import shlex
from pathlib import Path


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "SandboxForge"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    API_VERSION: str = "v1"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # ==========================================
    # Provider Credentials (empty means not configured)
    # ==========================================
    DAYTONA_API_KEY: str = ""  # Sandbox platform
    ANTHROPIC_API_KEY: str = ""  # primary-agent
    OPENAI_API_KEY: str = ""  # secondary-agent
    LOVABLE_API_KEY: str = ""  # third-party-agent

    # ==========================================
    # Worker Invocation
    # ==========================================
    WORKER_COMMAND: str = "npx tsx"  # Launcher prefix for mode scripts
    WORKER_SCRIPTS_DIR: str = "scripts"
    PRIMARY_AGENT_SCRIPT: str = "generate-in-daytona.ts"
    PRIMARY_AGENT_FOLLOW_UP_SCRIPT: str = "continue-in-daytona.ts"
    SECONDARY_AGENT_SCRIPT: str = "generate-with-chatgpt.ts"
    THIRD_PARTY_AGENT_SCRIPT: str = "generate-with-lovable.ts"
    REMOVE_SANDBOX_SCRIPT: str = "remove-sandbox.ts"

    # "local" spawns a subprocess, "sandbox" executes inside WORKER_SANDBOX_ID
    WORKER_TRANSPORT: str = "local"
    WORKER_SANDBOX_ID: str = ""
    WORKER_READ_CHUNK_SIZE: int = 4096
    WORKER_KILL_GRACE_SECONDS: float = 5.0
    SANDBOX_PREVIEW_PORT: int = 3000

    # ==========================================
    # Streaming
    # ==========================================
    SSE_DISCONNECT_POLL_SECONDS: float = 1.0
    GENERATION_TIMEOUT_SECONDS: float = 0  # 0 disables the timeout

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://127.0.0.1:3000"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/app.log"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    @property
    def worker_command(self) -> List[str]:
        """Launcher prefix as an argv list"""
        return shlex.split(self.WORKER_COMMAND)

    @property
    def scripts_dir(self) -> Path:
        return Path(self.WORKER_SCRIPTS_DIR).resolve()

    def credential_for(self, name: str) -> Optional[str]:
        """Return a configured credential, or None when it is empty or unknown"""
        value = getattr(self, name, "") or ""
        return value or None

    def missing_credentials(self, names: List[str]) -> List[str]:
        return [name for name in names if not self.credential_for(name)]

    def credential_status(self) -> Dict[str, bool]:
        """Which provider credentials are configured (never the values)"""
        return {
            "daytona": bool(self.DAYTONA_API_KEY),
            "anthropic": bool(self.ANTHROPIC_API_KEY),
            "openai": bool(self.OPENAI_API_KEY),
            "lovable": bool(self.LOVABLE_API_KEY),
        }

    def is_dev_mode(self) -> bool:
        """Check if running in development mode"""
        return self.ENVIRONMENT == "development" or self.DEBUG


# Create settings instance
settings = Settings()
