"""Configuration module for the web tasks agent."""

from .settings import DEFAULT_SYSTEM_INSTRUCTION, Settings, load_settings

__all__ = ["DEFAULT_SYSTEM_INSTRUCTION", "Settings", "load_settings"]
