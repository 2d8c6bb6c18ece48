"""SandboxForge terminal client"""
