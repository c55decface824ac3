"""Forward conditional jumps."""

from __future__ import annotations

from dataclasses import dataclass

from ..opcodes import Op, opcode_name
from ..tree import TreeNode
from .base import AstNode, lower, value_type
from .opcode import Label, Opcode

UNARY_JUMPS = frozenset({
    Op.IFEQ, Op.IFNE, Op.IFLT, Op.IFGE, Op.IFGT, Op.IFLE, Op.IFNULL, Op.IFNONNULL,
})
BINARY_JUMPS = frozenset({
    Op.IF_ICMPEQ, Op.IF_ICMPNE, Op.IF_ICMPLT, Op.IF_ICMPGE, Op.IF_ICMPGT,
    Op.IF_ICMPLE, Op.IF_ACMPEQ, Op.IF_ACMPNE,
})


def arity(code: int) -> int:
    """Number of values a conditional jump compares."""
    if code in UNARY_JUMPS:
        return 1
    if code in BINARY_JUMPS:
        return 2
    raise ValueError(f"'{opcode_name(code)}' is not a conditional jump")


@dataclass(frozen=True)
class If(AstNode):
    """
    Compare one or two values and jump forward to label when the
    comparison holds.
    """
    code: int
    operands: tuple[AstNode, ...]
    label: Label

    def __post_init__(self):
        if not isinstance(self.operands, tuple):
            object.__setattr__(self, "operands", tuple(self.operands))
        if len(self.operands) != arity(self.code):
            raise ValueError(
                f"'{opcode_name(self.code)}' compares {arity(self.code)} value(s), "
                f"got {len(self.operands)}"
            )

    def to_tree(self) -> TreeNode:
        return TreeNode(
            ".if",
            name=opcode_name(self.code),
            children=tuple(o.to_tree() for o in self.operands) + (self.label.to_tree(),),
        )

    def opcodes(self) -> list[AstNode]:
        for operand in self.operands:
            value_type(operand, opcode_name(self.code))
        return lower(self.operands) + [Opcode.of(self.code, self.label.instruction())]
