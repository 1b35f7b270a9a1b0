"""
Transfer Layer.

This package is responsible for all file operations of a download: streaming
the asset to disk and unpacking the downloaded archive.
"""

from .downloader import TransferController
from .extractor import ArchiveExtractor, ExtractionResult, ExtractionState
from .readers import ArchiveEntry, ArchiveReader, open_archive

__all__ = [
    "ArchiveEntry",
    "ArchiveExtractor",
    "ArchiveReader",
    "ExtractionResult",
    "ExtractionState",
    "TransferController",
    "open_archive",
]
