# API endpoints
from . import generate, sandboxes, health

__all__ = ["generate", "sandboxes", "health"]
