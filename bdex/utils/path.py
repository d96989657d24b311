"""
Utilities for handling file paths and manifest identifiers.
"""

import re
from pathlib import Path
from typing import Optional

from pathvalidate import sanitize_filename

_SCHEME_PREFIX = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")
_IDENTIFIER = re.compile(r"^[A-Za-z0-9_-]+$")


def parse_identifier(raw: str) -> Optional[str]:
    """
    Extracts the manifest identifier from user input.
    Accepts both a bare hash and one prefixed with a ``scheme://`` marker.
    """
    identifier = _SCHEME_PREFIX.sub("", raw.strip()).strip("/")
    if identifier and _IDENTIFIER.match(identifier):
        return identifier
    return None


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def block_dir_for(destination: Path, identifier: str) -> Path:
    """Directory holding one temp file per block, named after the manifest."""
    return destination / identifier


def block_path(block_dir: Path, content_hash: str) -> Path:
    return block_dir / content_hash


def output_path_for(block_dir: Path, filename: str) -> Path:
    """
    The merged file lives next to the block directory, named by the manifest.
    The declared name is sanitized so it cannot escape the destination.
    """
    name = sanitize_filename(filename, platform="auto")
    if not name.strip("."):
        name = f"{block_dir.name}.bin"
    return block_dir.with_name(name)
