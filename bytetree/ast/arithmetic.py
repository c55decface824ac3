"""Binary arithmetic and type conversions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional

from .. import descriptors as d
from ..attributes import Attributes
from ..opcodes import Op
from ..tree import TreeNode
from .base import AstNode, value_type
from .opcode import Opcode

_NUMERIC = ("I", "J", "F", "D")


@dataclass(frozen=True)
class Binary(AstNode):
    """
    Arithmetic on two operands of the same numeric type.

    The attributes carry the result descriptor; when omitted it is the
    stack category of the left operand.
    """
    BASE: ClassVar[str]
    OPCODES: ClassVar[dict[str, Op]]

    left: AstNode
    right: AstNode
    attributes: Optional[Attributes] = None

    def __post_init__(self):
        attributes = self.attributes
        if attributes is None:
            attributes = Attributes(descriptor=d.kind(value_type(self.left, self.BASE)))
        if attributes.require("descriptor") not in _NUMERIC:
            raise ValueError(f"Can't apply '{self.BASE}' to values of type '{attributes}'")
        object.__setattr__(self, "attributes", attributes)

    def to_tree(self) -> TreeNode:
        return TreeNode(
            self.BASE,
            scope=str(self.attributes),
            children=(self.left.to_tree(), self.right.to_tree()),
        )

    def opcodes(self) -> list[AstNode]:
        code = self.OPCODES[self.attributes.descriptor]
        return self.left.opcodes() + self.right.opcodes() + [Opcode.of(code)]

    def type(self) -> str:
        return self.attributes.descriptor


@dataclass(frozen=True)
class Addition(Binary):
    BASE = ".plus"
    OPCODES = {"I": Op.IADD, "J": Op.LADD, "F": Op.FADD, "D": Op.DADD}


@dataclass(frozen=True)
class Substraction(Binary):
    BASE = ".minus"
    OPCODES = {"I": Op.ISUB, "J": Op.LSUB, "F": Op.FSUB, "D": Op.DSUB}


@dataclass(frozen=True)
class Multiplication(Binary):
    BASE = ".times"
    OPCODES = {"I": Op.IMUL, "J": Op.LMUL, "F": Op.FMUL, "D": Op.DMUL}


BINARY_OPERATIONS: dict[Op, tuple[type[Binary], str]] = {
    code: (cls, desc)
    for cls in (Addition, Substraction, Multiplication)
    for desc, code in cls.OPCODES.items()
}

# Primitive conversion instructions keyed by (source category, target type).
CONVERSIONS = {
    ("I", "J"): Op.I2L, ("I", "F"): Op.I2F, ("I", "D"): Op.I2D,
    ("J", "I"): Op.L2I, ("J", "F"): Op.L2F, ("J", "D"): Op.L2D,
    ("F", "I"): Op.F2I, ("F", "J"): Op.F2L, ("F", "D"): Op.F2D,
    ("D", "I"): Op.D2I, ("D", "J"): Op.D2L, ("D", "F"): Op.D2F,
    ("I", "B"): Op.I2B, ("I", "C"): Op.I2C, ("I", "S"): Op.I2S,
}
CONVERSION_TARGETS = {code: target for (_, target), code in CONVERSIONS.items()}


@dataclass(frozen=True)
class Cast(AstNode):
    """Primitive conversion of a value to the target descriptor."""
    value: AstNode
    target: str

    def to_tree(self) -> TreeNode:
        return TreeNode(".cast", scope=self.target, children=(self.value.to_tree(),))

    def opcodes(self) -> list[AstNode]:
        source = d.kind(value_type(self.value, "Cast"))
        code = CONVERSIONS.get((source, self.target))
        if code is None:
            raise ValueError(f"No conversion from '{source}' to '{self.target}'")
        return self.value.opcodes() + [Opcode.of(code)]

    def type(self) -> str:
        return self.target


@dataclass(frozen=True)
class CheckCast(AstNode):
    """Reference cast checked at runtime; type is an internal class name."""
    value: AstNode
    type_name: str

    def to_tree(self) -> TreeNode:
        return TreeNode(".checkcast", scope=self.type_name, children=(self.value.to_tree(),))

    def opcodes(self) -> list[AstNode]:
        return self.value.opcodes() + [Opcode.of(Op.CHECKCAST, self.type_name)]

    def type(self) -> str:
        return d.object_descriptor(self.type_name)
