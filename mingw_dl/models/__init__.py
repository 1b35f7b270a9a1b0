"""
Data Models Layer.

This package contains the structures used throughout the application:
parsed build attributes, releases and assets, configuration, and the
application state.
"""

from .attributes import (
    Arch,
    AttributeField,
    AttributeSet,
    CRuntime,
    ExceptionModel,
    FilterSelection,
    RuntimeVersion,
    ThreadModel,
)
from .config import AppConfig
from .release import Asset, Release
from .state import AppState

__all__ = [
    "AppConfig",
    "AppState",
    "Arch",
    "Asset",
    "AttributeField",
    "AttributeSet",
    "CRuntime",
    "ExceptionModel",
    "FilterSelection",
    "Release",
    "RuntimeVersion",
    "ThreadModel",
]
