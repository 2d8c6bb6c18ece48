"""
Worker invocation selection.

Maps a session (backend, follow-up flag, sandbox id, prompt) to the concrete
argv/env of the mode script that serves it. Credentials are checked here, so
a request missing one fails before anything is spawned.

Argument shape: [*launcher, mode-script, sandbox-id?, prompt]
"""

import os
import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from sandboxforge.core.config import Settings, settings as default_settings
from sandboxforge.core.exceptions import FollowUpWithoutSandboxError, MissingCredentialError
from sandboxforge.modules.generation.session import AgentBackend, GenerationSession

SANDBOX_CREDENTIAL = "DAYTONA_API_KEY"

BACKEND_CREDENTIALS: Dict[AgentBackend, str] = {
    AgentBackend.PRIMARY: "ANTHROPIC_API_KEY",
    AgentBackend.SECONDARY: "OPENAI_API_KEY",
    AgentBackend.THIRD_PARTY: "LOVABLE_API_KEY",
}

# Always set for worker scripts regardless of the inherited environment
WORKER_ENV_DEFAULTS: Dict[str, str] = {
    "NO_UPDATE_NOTIFIER": "1",
}


class InvocationMode(str, Enum):
    GENERATE = "generate"
    CONTINUE = "continue"  # new run against a known sandbox
    FOLLOW_UP = "follow_up"
    REMOVE = "remove"


@dataclass(frozen=True)
class WorkerInvocation:
    """Immutable command line chosen for one request"""
    mode: InvocationMode
    script: Path
    argv: Tuple[str, ...]
    env: Mapping[str, str] = field(default_factory=dict, repr=False)
    sandbox_id: Optional[str] = None
    backend: Optional[AgentBackend] = None

    @property
    def command_line(self) -> str:
        return shlex.join(self.argv)

    def redacted(self) -> Dict[str, object]:
        """Loggable description; env values are never included"""
        return {
            "mode": self.mode.value,
            "script": str(self.script),
            "target_sandbox": self.sandbox_id,
            "backend": self.backend.value if self.backend else None,
            "argc": len(self.argv),
            "env_keys": sorted(k for k in self.env if k.endswith("_API_KEY")),
        }


class InvocationBuilder:
    """Builds WorkerInvocations from settings"""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    def required_credentials(self, backend: Optional[AgentBackend]) -> List[str]:
        names = [SANDBOX_CREDENTIAL]
        if backend is not None:
            names.append(BACKEND_CREDENTIALS[backend])
        return names

    def check_credentials(self, backend: Optional[AgentBackend], label: Optional[str] = None) -> None:
        missing = self.config.missing_credentials(self.required_credentials(backend))
        if missing:
            raise MissingCredentialError(label or (backend.value if backend else "sandbox"), missing)

    def script_for(self, backend: AgentBackend, follow_up: bool) -> Path:
        names = {
            AgentBackend.PRIMARY: self.config.PRIMARY_AGENT_SCRIPT,
            AgentBackend.SECONDARY: self.config.SECONDARY_AGENT_SCRIPT,
            AgentBackend.THIRD_PARTY: self.config.THIRD_PARTY_AGENT_SCRIPT,
        }
        name = names[backend]
        if follow_up and backend == AgentBackend.PRIMARY:
            name = self.config.PRIMARY_AGENT_FOLLOW_UP_SCRIPT
        return self.config.scripts_dir / name

    def for_session(self, session: GenerationSession) -> WorkerInvocation:
        """
        Choose the invocation for a generation or follow-up request.

        Raises:
            FollowUpWithoutSandboxError: follow-up without a known sandbox
            MissingCredentialError: sandbox or backend credential not set
        """
        if session.is_follow_up and not session.sandbox_id:
            raise FollowUpWithoutSandboxError()
        self.check_credentials(session.backend)

        if session.is_follow_up:
            mode = InvocationMode.FOLLOW_UP
        elif session.sandbox_id:
            mode = InvocationMode.CONTINUE
        else:
            mode = InvocationMode.GENERATE

        script = self.script_for(session.backend, follow_up=session.is_follow_up)
        args = [session.sandbox_id, session.prompt] if session.sandbox_id else [session.prompt]

        return WorkerInvocation(
            mode=mode,
            script=script,
            argv=tuple(self.config.worker_command + [str(script)] + args),
            env=self._worker_env(self.required_credentials(session.backend)),
            sandbox_id=session.sandbox_id,
            backend=session.backend,
        )

    def for_removal(self, sandbox_id: str) -> WorkerInvocation:
        """Invocation deleting a sandbox on the platform"""
        self.check_credentials(None)
        script = self.config.scripts_dir / self.config.REMOVE_SANDBOX_SCRIPT
        return WorkerInvocation(
            mode=InvocationMode.REMOVE,
            script=script,
            argv=tuple(self.config.worker_command + [str(script), sandbox_id]),
            env=self._worker_env([SANDBOX_CREDENTIAL]),
            sandbox_id=sandbox_id,
        )

    def _worker_env(self, credentials: List[str]) -> Dict[str, str]:
        env = dict(os.environ)
        env.update(WORKER_ENV_DEFAULTS)
        env["PREVIEW_PORT"] = str(self.config.SANDBOX_PREVIEW_PORT)
        for name in credentials:
            env[name] = self.config.credential_for(name) or ""
        return env


invocation_builder = InvocationBuilder()
