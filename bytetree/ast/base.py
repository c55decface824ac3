"""
Common protocol of the AST nodes.

Every node knows two things:

- to_tree(): its tagged tree-IR form (children serialized recursively)
- opcodes(): the flat instruction sequence that evaluates it, expressed
  as Opcode / Label nodes, operands before the operation consuming them

Nodes that leave a value on the operand stack also report its static type
as a JVM descriptor through type(); statements return None.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import fields, is_dataclass, replace
from typing import Callable, Iterable, Iterator, Optional

from ..descriptors import VOID
from ..tree import TreeNode


class AstNode(ABC):

    @abstractmethod
    def to_tree(self) -> TreeNode: ...

    @abstractmethod
    def opcodes(self) -> list[AstNode]: ...

    def type(self) -> Optional[str]:
        return None

    @property
    def produces_value(self) -> bool:
        """True if evaluating the node leaves a value on the stack."""
        desc = self.type()
        return desc is not None and desc != VOID

    def children(self) -> list[AstNode]:
        """Direct child nodes, in evaluation order."""
        result: list[AstNode] = []
        for f in fields(self):
            if f.metadata.get("link"):
                continue
            value = getattr(self, f.name)
            if isinstance(value, AstNode):
                result.append(value)
            elif isinstance(value, tuple):
                result.extend(v for v in value if isinstance(v, AstNode))
        return result


def lower(nodes: Iterable[AstNode]) -> list[AstNode]:
    """Concatenate the opcodes of several nodes, left to right."""
    result: list[AstNode] = []
    for node in nodes:
        result.extend(node.opcodes())
    return result


def value_type(node: AstNode, context: str) -> str:
    """Static type of a node that must produce a value."""
    desc = node.type()
    if desc is None or desc == VOID:
        raise ValueError(f"{context} expects a value, but {node!r} doesn't produce one")
    return desc


def walk(node: AstNode) -> Iterator[AstNode]:
    """Depth-first, left-to-right traversal (parents before children)."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children()))


def transform(node: AstNode, fn: Callable[[AstNode], AstNode]) -> AstNode:
    """
    Rebuild a node with fn applied to each direct child.

    Nodes are immutable, so a new node is returned whenever a child
    changes; untouched nodes are returned as they are.
    """
    if not is_dataclass(node):
        return node
    changes = {}
    for f in fields(node):
        if not f.init or f.metadata.get("link"):
            continue
        value = getattr(node, f.name)
        if isinstance(value, AstNode):
            updated = fn(value)
            if updated is not value:
                changes[f.name] = updated
        elif isinstance(value, tuple) and any(isinstance(v, AstNode) for v in value):
            updated = tuple(fn(v) if isinstance(v, AstNode) else v for v in value)
            if any(a is not b for a, b in zip(updated, value)):
                changes[f.name] = updated
    if not changes:
        return node
    return replace(node, **changes)
