"""
Storage Layer.

This package handles the persisted configuration file.
"""

from .config_manager import ConfigManager

__all__ = ["ConfigManager"]
