"""
Value-producing leaves and the structural nodes around them.

Literal, This, ClassName and NewAddress push exactly one value.
Duplicate / Reference model the DUP instruction: the duplicated value is
computed once and referenced by name afterwards. Popped, Return and Root
are statements.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Optional

from .. import descriptors as d
from ..opcodes import Op, TypeRef
from ..tree import TreeNode
from .base import AstNode, lower, value_type
from .opcode import Opcode

_LITERAL_BASES = {
    "I": "int",
    "J": "long",
    "F": "float",
    "D": "double",
    d.STRING: "string",
    d.OBJECT: "null",
}
LITERAL_TYPES = {base: desc for desc, base in _LITERAL_BASES.items()}


@dataclass(frozen=True)
class Literal(AstNode):
    """
    Constant of type int, long, float, double, String, or null.

    The descriptor is inferred from the Python value when omitted:
    int -> I, float -> D, str -> String, None -> null reference.
    """
    value: Any
    descriptor: Optional[str] = None

    def __post_init__(self):
        value = self.value
        if isinstance(value, bool):
            value = int(value)
            object.__setattr__(self, "value", value)
        desc = self.descriptor
        if desc is None:
            match value:
                case None:
                    desc = d.OBJECT
                case int():
                    desc = "I"
                case float():
                    desc = "D"
                case str():
                    desc = d.STRING
                case _:
                    raise ValueError(f"Unsupported literal value {value!r}")
            object.__setattr__(self, "descriptor", desc)
        if desc not in _LITERAL_BASES:
            raise ValueError(f"Unsupported literal type {desc!r} for {value!r}")
        if desc in ("F", "D") and isinstance(value, int):
            object.__setattr__(self, "value", float(value))

    @classmethod
    def from_tree(cls, node: TreeNode) -> Literal:
        desc = LITERAL_TYPES[node.base]
        match desc:
            case "I" | "J":
                value: Any = int(node.require_text())
            case "F" | "D":
                value = float(node.require_text())
            case d.OBJECT:
                value = None
            case _:
                value = node.text or ""
        return cls(value, desc)

    def to_tree(self) -> TreeNode:
        match self.descriptor:
            case d.OBJECT:
                text = None
            case "F" | "D":
                text = repr(self.value)
            case _:
                text = str(self.value)
        return TreeNode(_LITERAL_BASES[self.descriptor], text=text)

    def opcodes(self) -> list[AstNode]:
        value = self.value
        match self.descriptor:
            case "I":
                if -1 <= value <= 5:
                    return [Opcode.of(Op.ICONST_0 + value)]
                if -128 <= value <= 127:
                    return [Opcode.of(Op.BIPUSH, value)]
                if -32768 <= value <= 32767:
                    return [Opcode.of(Op.SIPUSH, value)]
                return [Opcode.of(Op.LDC, value)]
            case "J":
                if value in (0, 1):
                    return [Opcode.of(Op.LCONST_0 + value)]
                return [Opcode.of(Op.LDC2_W, value)]
            case "F":
                if value in (0.0, 1.0, 2.0) and math.copysign(1.0, value) > 0:
                    return [Opcode.of(Op.FCONST_0 + int(value))]
                return [Opcode.of(Op.LDC, value)]
            case "D":
                if value in (0.0, 1.0) and math.copysign(1.0, value) > 0:
                    return [Opcode.of(Op.DCONST_0 + int(value))]
                return [Opcode.of(Op.LDC2_W, value)]
            case d.OBJECT:
                return [Opcode.of(Op.ACONST_NULL)]
            case _:
                return [Opcode.of(Op.LDC, value)]

    def type(self) -> str:
        return self.descriptor


@dataclass(frozen=True)
class This(AstNode):
    """The receiver of an instance method (local slot 0)."""

    def to_tree(self) -> TreeNode:
        return TreeNode("$")

    def opcodes(self) -> list[AstNode]:
        return [Opcode.of(Op.ALOAD, 0)]

    def type(self) -> str:
        return d.OBJECT


@dataclass(frozen=True)
class ClassName(AstNode):
    """Class literal, e.g. String.class."""
    name: str

    def to_tree(self) -> TreeNode:
        return TreeNode("class", text=self.name)

    def opcodes(self) -> list[AstNode]:
        return [Opcode.of(Op.LDC, TypeRef(d.object_descriptor(self.name)))]

    def type(self) -> str:
        return "Ljava/lang/Class;"


@dataclass(frozen=True)
class NewAddress(AstNode):
    """Uninitialized object pushed by NEW, before its constructor runs."""
    name: str

    def to_tree(self) -> TreeNode:
        return TreeNode("new-address", text=self.name)

    def opcodes(self) -> list[AstNode]:
        return [Opcode.of(Op.NEW, self.name)]

    def type(self) -> str:
        return d.object_descriptor(self.name)


@dataclass(frozen=True)
class Duplicate(AstNode):
    """
    A value computed once and used twice.

    The node evaluates its inner value and duplicates it; every other use
    of the same value is a Reference to this node, which emits nothing
    because the copy is already on the stack.
    """
    inner: AstNode
    name: str

    def to_tree(self) -> TreeNode:
        return TreeNode("duplicated", name=self.name, children=(self.inner.to_tree(),))

    def opcodes(self) -> list[AstNode]:
        desc = value_type(self.inner, "DUP")
        dup = Op.DUP2 if d.is_wide(desc) else Op.DUP
        return self.inner.opcodes() + [Opcode.of(dup)]

    def type(self) -> Optional[str]:
        return self.inner.type()


@dataclass(frozen=True)
class Reference(AstNode):
    """Later use of a Duplicate's value."""
    original: Duplicate = field(metadata={"link": True})

    @property
    def name(self) -> str:
        return self.original.name

    def to_tree(self) -> TreeNode:
        return TreeNode(f"ref-{self.original.name}")

    def opcodes(self) -> list[AstNode]:
        return []

    def type(self) -> Optional[str]:
        return self.original.type()


@dataclass(frozen=True)
class Popped(AstNode):
    """Value computed and then discarded."""
    inner: AstNode

    def to_tree(self) -> TreeNode:
        return TreeNode("popped", children=(self.inner.to_tree(),))

    def opcodes(self) -> list[AstNode]:
        desc = value_type(self.inner, "POP")
        pop = Op.POP2 if d.is_wide(desc) else Op.POP
        return self.inner.opcodes() + [Opcode.of(pop)]


_RETURNS = {"I": Op.IRETURN, "J": Op.LRETURN, "F": Op.FRETURN, "D": Op.DRETURN, "A": Op.ARETURN}
RETURN_TYPES = {
    Op.IRETURN: "I", Op.LRETURN: "J", Op.FRETURN: "F",
    Op.DRETURN: "D", Op.ARETURN: d.OBJECT,
}


@dataclass(frozen=True)
class Return(AstNode):
    """Method exit, returning a value of the given descriptor or nothing."""
    value: Optional[AstNode] = None
    descriptor: str = d.VOID

    def __post_init__(self):
        if (self.value is None) != (self.descriptor == d.VOID):
            raise ValueError(
                f"Return of {self.value!r} doesn't match descriptor {self.descriptor!r}"
            )

    def to_tree(self) -> TreeNode:
        if self.value is None:
            return TreeNode("return")
        return TreeNode("return", scope=self.descriptor, children=(self.value.to_tree(),))

    def opcodes(self) -> list[AstNode]:
        if self.value is None:
            return [Opcode.of(Op.RETURN)]
        return self.value.opcodes() + [Opcode.of(_RETURNS[d.kind(self.descriptor)])]


@dataclass(frozen=True)
class Root(AstNode):
    """Top-level container of the statements of a method body."""
    nodes: tuple[AstNode, ...] = ()

    def __post_init__(self):
        if not isinstance(self.nodes, tuple):
            object.__setattr__(self, "nodes", tuple(self.nodes))

    def to_tree(self) -> TreeNode:
        return TreeNode("tuple", children=tuple(n.to_tree() for n in self.nodes))

    def opcodes(self) -> list[AstNode]:
        return lower(self.nodes)
