"""Core configuration and time helpers."""

from fokus.core.config import Config, get_config

__all__ = ["Config", "get_config"]
