"""
SandboxForge - streams AI project generation running in remote sandboxes.
"""

__version__ = "1.0.0"
