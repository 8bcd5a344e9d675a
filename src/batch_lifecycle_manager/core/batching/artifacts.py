# -*- coding: utf-8 -*-

"""
Destinations for normalized result artifacts.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from ..utils.misc import ensure_output_path, mask_path
from .utils import write_text_atomic


class ArtifactStore(ABC):
    """Write-once-per-name store for reconciled result documents."""

    @abstractmethod
    def write_text(self, name: str, content: str, content_type: str = "application/x-ndjson") -> str:
        """Store `content` under `name`, replacing any previous copy, and return its locator."""

    @abstractmethod
    def read_text(self, locator: str) -> str:
        """Return the content stored at `locator`."""


class FileArtifactStore(ArtifactStore):
    """Artifacts written as files in a local output directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root)
        ensure_output_path(self.root, description="Output folder")

    def __repr__(self):
        return f"FileArtifactStore({mask_path(self.root)})"

    def write_text(self, name, content, content_type="application/x-ndjson"):
        if Path(name).name != name:
            raise ValueError(f"Artifact name must not contain directories: {name!r}")
        path = self.root / name
        write_text_atomic(content, path)
        logging.info(f"Saved artifact to {mask_path(path)}")
        return str(path)

    def read_text(self, locator):
        with open(locator, 'r', encoding='utf-8') as f:
            return f.read()
