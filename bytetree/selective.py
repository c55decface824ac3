"""
bytetree/selective.py

Per-method decompilation of stored class documents.

A method is decompiled only when the decompiler recognizes every one of
its opcodes and it has no exception handlers; other methods are left
exactly as they are. Compilation turns decompiled methods back into
instruction records.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from .compiler import compile_instructions
from .decompiler import DecompilerMachine, supported_opcode_names
from .errors import DecompilationError
from .opcodes import instructions_from_json, instructions_to_json, opcode_name
from .storage import DirectoryStorage
from .tree import TreeNode


def _opcode_names(method: dict) -> set[str]:
    names = set()
    for record in method.get("instructions", []):
        if "label" in record:
            continue
        raw = record.get("opcode")
        names.add(raw.lower() if isinstance(raw, str) else opcode_name(raw))
    return names


def unsupported_opcodes(method: dict, supported: Optional[Iterable[str]] = None) -> set[str]:
    """Opcodes of a method the decompiler doesn't recognize."""
    known = supported_opcode_names() if supported is None else frozenset(supported)
    return _opcode_names(method) - known


def is_eligible(method: dict, supported: Optional[Iterable[str]] = None) -> bool:
    """True when every opcode is supported and there are no exception handlers."""
    return not unsupported_opcodes(method, supported) and not method.get("trycatches")


def _label(document: dict, method: dict) -> str:
    return f"{document.get('name', '?')}.{method.get('name', '?')}{method.get('descriptor', '')}"


class SelectiveDecompiler:
    """
    Decompiles every eligible method of every document in a storage.

    Args:
        storage: documents to read and the output directory
        modified: directory that additionally receives every changed document
        supported: opcode names treated as supported (all recognized ones by default)
        counting: forwarded to the decompiler
    """

    def __init__(
        self,
        storage: DirectoryStorage,
        modified: Optional[Path] = None,
        supported: Optional[Iterable[str]] = None,
        counting: bool = True,
    ):
        self.storage = storage
        self.modified = modified
        self.supported = supported_opcode_names() if supported is None else frozenset(supported)
        self.machine = DecompilerMachine(counting)

    def decompile(self) -> int:
        """Process the whole storage; returns the number of decompiled methods."""
        total = 0
        for relative, document in self.storage.documents():
            count = self.decompile_document(document)
            self.storage.save(relative, document)
            if count and self.modified is not None:
                self.storage.save(relative, document, root=self.modified)
            total += count
        logger.info(f"Decompiled {total} method(s)")
        return total

    def decompile_document(self, document: dict) -> int:
        """Replace the instructions of eligible methods with their tree, in place."""
        count = 0
        for method in document.get("methods", []):
            if "instructions" not in method:
                continue
            missing = unsupported_opcodes(method, self.supported)
            handlers = len(method.get("trycatches") or [])
            if missing or handlers:
                logger.info(
                    f"Skipping {_label(document, method)}: "
                    f"unsupported opcodes {sorted(missing)}, {handlers} exception handler(s)"
                )
                continue
            try:
                root = self.machine.decompile(instructions_from_json(method["instructions"]))
            except DecompilationError as e:
                logger.warning(f"Skipping {_label(document, method)}: {e}")
                continue
            method["tree"] = [node.to_json() for node in root.to_tree().children]
            del method["instructions"]
            logger.debug(f"Decompiled {_label(document, method)}")
            count += 1
        return count


class SelectiveCompiler:
    """Turns the decompiled methods of every document back into instructions."""

    def __init__(self, storage: DirectoryStorage):
        self.storage = storage

    def compile(self) -> int:
        total = 0
        for relative, document in self.storage.documents():
            total += self.compile_document(document)
            self.storage.save(relative, document)
        logger.info(f"Compiled {total} method(s)")
        return total

    def compile_document(self, document: dict) -> int:
        count = 0
        for method in document.get("methods", []):
            if "tree" not in method:
                continue
            nodes = [TreeNode.from_json(n) for n in method["tree"]]
            method["instructions"] = instructions_to_json(compile_instructions(nodes))
            del method["tree"]
            count += 1
        return count
