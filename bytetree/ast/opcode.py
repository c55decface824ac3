"""Nodes that map one-to-one onto instruction stream elements."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any

from ..opcodes import Instruction, LabelInstruction, opcode_code, opcode_name
from ..tree import TreeNode, operand_node, operand_value
from .base import AstNode

# Sequence numbers appended to opcode names ("aload-12") so that every
# emitted opcode object gets a distinct name.
_SEQUENCE = itertools.count(1)


@dataclass(frozen=True)
class Opcode(AstNode):
    """
    Raw instruction passed through unchanged.

    Used for every instruction the decompiler has no higher level shape
    for, and as the output element of lowering.

    With counting on, every to_tree() call takes the next number from a
    process-wide sequence, so serializing the same node twice gives two
    different names ("nop-3", then "nop-4"). The suffix is ignored when
    the name is read back.

    Attributes:
        code: Numeric JVM opcode
        operands: Instruction operands
        counting: Whether the serialized name carries a sequence suffix
    """
    code: int
    operands: tuple = ()
    counting: bool = field(default=True, compare=False)

    def __post_init__(self):
        if not isinstance(self.operands, tuple):
            object.__setattr__(self, "operands", tuple(self.operands))

    @classmethod
    def of(cls, code: int, *operands: Any) -> Opcode:
        return cls(int(code), tuple(operands))

    @classmethod
    def from_tree(cls, node: TreeNode) -> Opcode:
        mnemonic, sep, _ = node.require_name().partition("-")
        return cls(
            opcode_code(mnemonic),
            tuple(operand_value(c) for c in node.children),
            counting=bool(sep),
        )

    def to_tree(self) -> TreeNode:
        name = opcode_name(self.code)
        if self.counting:
            name = f"{name}-{next(_SEQUENCE)}"
        return TreeNode(
            "opcode",
            name=name,
            children=tuple(operand_node(o) for o in self.operands),
        )

    def opcodes(self) -> list[AstNode]:
        return [self]

    def instruction(self) -> Instruction:
        return Instruction(self.code, self.operands)

    def __repr__(self) -> str:
        return f"Opcode({self.instruction()})"


@dataclass(frozen=True)
class Label(AstNode):
    identifier: str

    def to_tree(self) -> TreeNode:
        return TreeNode("label", text=self.identifier)

    def opcodes(self) -> list[AstNode]:
        return [self]

    def instruction(self) -> LabelInstruction:
        return LabelInstruction(self.identifier)


@dataclass(frozen=True)
class RawTree(AstNode):
    """Tree-IR node kept verbatim; it is neither interpreted nor lowered."""
    node: TreeNode

    def to_tree(self) -> TreeNode:
        return TreeNode("raw", children=(self.node,))

    def opcodes(self) -> list[AstNode]:
        return [self]
