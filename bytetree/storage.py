"""
bytetree/storage.py

Class documents stored as JSON files in a directory tree:

    {"name": "App",
     "methods": [{"name": "foo", "descriptor": "()V",
                  "instructions": [...], "trycatches": []}]}

Documents are read from the source directory and written to the same
relative path below one or more output directories.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterator, Optional

from loguru import logger


class DirectoryStorage:

    def __init__(self, source: Path, output: Path):
        self.source = Path(source)
        self.output = Path(output)
        if not self.source.is_dir():
            raise ValueError(f"Source directory {self.source} doesn't exist")

    def paths(self) -> list[Path]:
        """Relative paths of every document below the source, sorted."""
        return sorted(p.relative_to(self.source) for p in self.source.rglob("*.json"))

    def load(self, relative: Path) -> dict:
        with open(self.source / relative) as f:
            document = json.load(f)
        if not isinstance(document, dict) or "methods" not in document:
            raise ValueError(f"{self.source / relative} is not a class document")
        return document

    def documents(self) -> Iterator[tuple[Path, dict]]:
        for relative in self.paths():
            yield relative, self.load(relative)

    def save(self, relative: Path, document: dict, root: Optional[Path] = None) -> Path:
        """Write a document below root (the output directory by default)."""
        target = Path(root or self.output) / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w") as f:
            json.dump(document, f, indent=2)
        logger.info(f"Saved {target}")
        return target
