"""Array creation and element stores."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .. import descriptors as d
from ..opcodes import Op
from ..tree import TreeNode
from .base import AstNode, value_type
from .opcode import Opcode


@dataclass(frozen=True)
class ArrayConstructor(AstNode):
    """
    New one-dimensional array.

    The element is a primitive descriptor ("I", "J", ...) for NEWARRAY or
    an internal class name ("java/lang/Object") for ANEWARRAY.
    """
    size: AstNode
    element: str

    def to_tree(self) -> TreeNode:
        return TreeNode(".array", scope=self.element, children=(self.size.to_tree(),))

    def opcodes(self) -> list[AstNode]:
        value_type(self.size, "Array size")
        code = d.ARRAY_TYPE_CODES.get(self.element)
        if code is None:
            return self.size.opcodes() + [Opcode.of(Op.ANEWARRAY, self.element)]
        return self.size.opcodes() + [Opcode.of(Op.NEWARRAY, code)]

    def type(self) -> str:
        return d.array_of(self.element)


@dataclass(frozen=True)
class StoreArray(AstNode):
    """
    Element store that leaves the array on the stack.

    Lowers to ``array; DUP; index; value; xASTORE``, which is how array
    initializers are compiled: a chain of StoreArray nodes nested through
    their array operand fills consecutive elements of one array literal.
    The element descriptor selects the store instruction and is taken from
    the array type when omitted.
    """
    array: AstNode
    index: AstNode
    value: AstNode
    element: Optional[str] = None

    def __post_init__(self):
        if self.element is None:
            array = value_type(self.array, "Array store")
            if array.startswith("["):
                element = array[1:]
            else:
                element = value_type(self.value, "Array store")
            object.__setattr__(self, "element", element)

    def to_tree(self) -> TreeNode:
        return TreeNode(
            ".writearray",
            scope=self.element,
            children=(self.array.to_tree(), self.index.to_tree(), self.value.to_tree()),
        )

    def opcodes(self) -> list[AstNode]:
        return (
            self.array.opcodes()
            + [Opcode.of(Op.DUP)]
            + self.index.opcodes()
            + self.value.opcodes()
            + [Opcode.of(d.array_store_opcode(self.element))]
        )

    def type(self) -> str:
        return value_type(self.array, "Array store")
