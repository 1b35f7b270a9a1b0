"""
Release Metadata Layer.

This package fetches the release list from the remote source and decodes it
into Release and Asset records.
"""

from .client import ReleasesClient
from .decoder import decode_releases

__all__ = ["ReleasesClient", "decode_releases"]
