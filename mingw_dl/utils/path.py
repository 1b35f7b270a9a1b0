"""
Utilities for deriving local paths from release assets.
"""

import os
from pathlib import Path

from pathvalidate import sanitize_filename


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def asset_output_path(destination_dir: str | os.PathLike, asset_name: str) -> Path:
    """
    Builds the download path for an asset.

    Asset names come from the remote payload, so they are reduced to a single
    valid file name before being joined onto the chosen directory.
    """
    file_name = sanitize_filename(asset_name, platform="auto") or "download"
    return Path(destination_dir) / file_name


def extraction_dir_for(archive_path: str | os.PathLike) -> Path:
    """Returns the sibling directory named after the archive without its extension."""
    path = Path(archive_path)
    return path.parent / path.stem
