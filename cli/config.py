"""
CLI configuration: defaults, overridden by SANDBOXFORGE_* environment variables
"""

import os
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, Optional, Tuple


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# env var -> (attribute, converter)
ENV_OVERRIDES: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "SANDBOXFORGE_API_URL": ("api_base_url", str),
    "SANDBOXFORGE_MODEL": ("model", str),
    "SANDBOXFORGE_USER_ID": ("user_id", str),
    "SANDBOXFORGE_TIMEOUT": ("timeout", float),
    "SANDBOXFORGE_VERBOSE": ("verbose", _flag),
}


@dataclass
class CLIConfig:
    """Settings for one CLI invocation"""

    api_base_url: str = "http://localhost:8000/api/v1"
    timeout: float = 30.0  # connect/write timeout; reads on a stream never time out

    model: Optional[str] = None  # claude, chatgpt, lovable
    user_id: str = "cli"

    output_format: str = "text"  # text, json
    verbose: bool = False

    @classmethod
    def load_default(cls) -> "CLIConfig":
        config = cls()
        config.apply_env(os.environ)
        return config

    def apply_env(self, environ) -> None:
        for env_var, (attr, convert) in ENV_OVERRIDES.items():
            raw = environ.get(env_var)
            if raw:
                setattr(self, attr, convert(raw))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
