"""
Worker Log Compatibility Rules

The generation worker reports session facts only in its human-readable log
output. Every rule that depends on that output format lives here, so the
orchestrator never matches worker text itself.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

# "Sandbox created: 1b2c...-..." announcement
SANDBOX_ID_PATTERN = re.compile(r"Sandbox created: ([a-f0-9-]+)")

# "Preview URL: https://..." announcement
PREVIEW_URL_PATTERN = re.compile(r"Preview URL: (https://[^\s]+)")

# Internal debug lines the worker echoes while relaying agent output
INTERNAL_MARKER = "__"
INTERNAL_LOG_PREFIXES: Tuple[str, ...] = ("[Claude]:", "[Tool]:")

# Diagnostic stream lines containing any of these are surfaced as errors
DIAGNOSTIC_ERROR_KEYWORDS: Tuple[str, ...] = ("Error", "ERROR", "Failed", "FAILED", "Fatal", "FATAL")


@dataclass(frozen=True)
class ExtractedFacts:
    """Session facts announced on a single line"""
    sandbox_id: Optional[str] = None
    preview_url: Optional[str] = None

    def __bool__(self) -> bool:
        return bool(self.sandbox_id or self.preview_url)


def is_internal_line(text: str) -> bool:
    """True for worker debug output that must be neither forwarded nor kept"""
    if INTERNAL_MARKER in text:
        return True
    return any(prefix in text for prefix in INTERNAL_LOG_PREFIXES)


def extract_facts(text: str) -> ExtractedFacts:
    """Match the sandbox-creation and preview-URL announcements"""
    sandbox_match = SANDBOX_ID_PATTERN.search(text)
    preview_match = PREVIEW_URL_PATTERN.search(text)
    return ExtractedFacts(
        sandbox_id=sandbox_match.group(1) if sandbox_match else None,
        preview_url=preview_match.group(1) if preview_match else None,
    )


def is_error_significant(text: str) -> bool:
    """Heuristic for diagnostic-stream lines worth showing to the client"""
    return any(keyword in text for keyword in DIAGNOSTIC_ERROR_KEYWORDS)
