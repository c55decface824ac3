"""Local variable slots: reads and assignments."""

from __future__ import annotations

from dataclasses import dataclass

from .. import descriptors as d
from ..attributes import Attributes, Kind
from ..errors import MalformedTreeError
from ..tree import TreeNode
from .base import AstNode, value_type
from .opcode import Opcode

PREFIX = "local-"


@dataclass(frozen=True)
class LocalVariable(AstNode):
    """
    Local variable slot with a declared type.

    The load and store instructions follow the declared type: int, long,
    float and double have their own families, boolean/byte/char/short
    share the int family, and every other type uses the reference family.
    """
    index: int
    descriptor: str

    def __post_init__(self):
        if not d.is_valid(self.descriptor):
            raise ValueError(f"Invalid type {self.descriptor!r} of local variable {self.index}")

    @classmethod
    def from_tree(cls, node: TreeNode) -> LocalVariable:
        try:
            index = int(node.base[len(PREFIX):])
        except ValueError:
            raise MalformedTreeError(
                f"Can't recognize variable node '{node.base}', expected '{PREFIX}<slot>'"
            ) from None
        attributes = Attributes.parse(node.require_scope())
        return cls(index, attributes.require("descriptor"))

    def to_tree(self) -> TreeNode:
        attributes = Attributes(descriptor=self.descriptor, kind=Kind.LOCAL)
        return TreeNode(f"{PREFIX}{self.index}", scope=str(attributes))

    def opcodes(self) -> list[AstNode]:
        return [self.load()]

    def load(self) -> Opcode:
        return Opcode.of(d.load_opcode(self.descriptor), self.index)

    def store(self) -> Opcode:
        return Opcode.of(d.store_opcode(self.descriptor), self.index)

    def type(self) -> str:
        return self.descriptor


@dataclass(frozen=True)
class VariableAssignment(AstNode):
    variable: LocalVariable
    value: AstNode

    def __post_init__(self):
        if not isinstance(self.variable, LocalVariable):
            raise TypeError(f"Can't assign to {self.variable!r}, a local variable is expected")

    def to_tree(self) -> TreeNode:
        return TreeNode(
            ".write-local",
            children=(self.variable.to_tree(), self.value.to_tree()),
        )

    def opcodes(self) -> list[AstNode]:
        value_type(self.value, f"Assignment to local {self.variable.index}")
        return self.value.opcodes() + [self.variable.store()]
