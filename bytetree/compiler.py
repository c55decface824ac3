"""
bytetree/compiler.py

Tree IR -> flat instructions.

All top-level nodes of one method body are read with one TreeParser, so
``ref-<name>`` nodes may point at values duplicated by earlier
statements. A duplicated value that nothing references is left on the
stack by its DUP; before the next label the compiler discards each such
value with a POP so that the stack depth at the jump target is the same
on every path.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from loguru import logger

from . import descriptors as d
from .ast import AstNode, Duplicate, If, Label, Opcode, RawTree
from .errors import MalformedTreeError
from .opcodes import Element, Op
from .parser import TreeParser
from .tree import TreeNode


def _emission_order(node: AstNode) -> Iterator[AstNode]:
    """Nodes in the order their opcodes are emitted; jump targets of If are skipped."""
    yield node
    children = list(node.operands) if isinstance(node, If) else node.children()
    for child in children:
        yield from _emission_order(child)


def _compensations(trees: list[AstNode], used: set[str]) -> list[list[Opcode]]:
    """POPs to emit before each emitted label, in emission order."""
    result: list[list[Opcode]] = []
    pending: list[Duplicate] = []
    for tree in trees:
        for node in _emission_order(tree):
            if isinstance(node, Duplicate):
                pending.append(node)
            elif isinstance(node, Label):
                result.append([
                    Opcode.of(Op.POP2 if d.is_wide(dup.type()) else Op.POP)
                    for dup in pending
                    if dup.name not in used
                ])
                pending = []
    return result


def lower_trees(nodes: Iterable[TreeNode]) -> list[AstNode]:
    """Parse and lower the tree nodes of one method body."""
    parser = TreeParser()
    trees = parser.parse_all(nodes)
    compensations = iter(_compensations(trees, parser.used))
    result: list[AstNode] = []
    for tree in trees:
        logger.debug(f"Lowering {type(tree).__name__}")
        for element in tree.opcodes():
            if isinstance(element, Label):
                pops = next(compensations)
                if pops:
                    logger.warning(
                        f"Discarding {len(pops)} unreferenced duplicated value(s) "
                        f"before label '{element.identifier}'"
                    )
                result.extend(pops)
            result.append(element)
    return result


def compile_tree(nodes: Iterable[TreeNode]) -> list[TreeNode]:
    """Opcode, label and raw tree nodes, one per instruction."""
    return [element.to_tree() for element in lower_trees(nodes)]


def compile_instructions(nodes: Iterable[TreeNode]) -> list[Element]:
    result: list[Element] = []
    for element in lower_trees(nodes):
        if isinstance(element, RawTree):
            raise MalformedTreeError(f"Raw node can't be compiled:\n{element.node}")
        result.append(element.instruction())
    return result
