"""
Method calls and object construction.

All callables carry Attributes with owner, name and descriptor; the kind
records the dispatch and is filled in by the node when absent:

- Invocation: INVOKEVIRTUAL on a target (kind=method)
- InterfaceInvocation: INVOKEINTERFACE on a target (kind=interface)
- StaticInvocation: INVOKESTATIC (kind=static)
- DynamicInvocation: INVOKEDYNAMIC with bootstrap operands (kind=dynamic)
- Super / Constructor: INVOKESPECIAL (kind=instance)
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from .. import descriptors as d
from ..attributes import Attributes, Kind
from ..opcodes import Op
from ..tree import TreeNode, operand_node
from .base import AstNode, lower, value_type
from .opcode import Opcode

INIT = "<init>"


def _callable(attributes: Attributes, kind: Kind, arguments: tuple) -> Attributes:
    """Validate a call site against its descriptor and tag it with its kind."""
    attributes.require("name")
    descriptor = attributes.require("descriptor")
    expected = d.argument_types(descriptor)
    if len(expected) != len(arguments):
        raise ValueError(
            f"Call '{attributes}' takes {len(expected)} argument(s), got {len(arguments)}"
        )
    for argument in arguments:
        value_type(argument, f"Argument of '{attributes}'")
    if attributes.kind is None:
        return replace(attributes, kind=kind)
    if attributes.kind is not kind:
        raise ValueError(f"Expected a {kind.value} call, got '{attributes}'")
    return attributes


def _invoke(code: int, attributes: Attributes) -> Opcode:
    return Opcode.of(code, attributes.require("owner"), attributes.name, attributes.descriptor)


class _Call(AstNode):

    def __post_init__(self):
        if not isinstance(self.arguments, tuple):
            object.__setattr__(self, "arguments", tuple(self.arguments))
        object.__setattr__(
            self, "attributes", _callable(self.attributes, self.KIND, self.arguments)
        )

    def type(self) -> str:
        return d.return_type(self.attributes.descriptor)


@dataclass(frozen=True)
class Invocation(_Call):
    KIND = Kind.METHOD
    OPCODE = Op.INVOKEVIRTUAL

    target: AstNode
    attributes: Attributes
    arguments: tuple[AstNode, ...] = ()

    def to_tree(self) -> TreeNode:
        return TreeNode(
            "invocation",
            scope=str(self.attributes),
            children=(self.target.to_tree(),) + tuple(a.to_tree() for a in self.arguments),
        )

    def opcodes(self) -> list[AstNode]:
        value_type(self.target, f"Call '{self.attributes}'")
        return (
            self.target.opcodes()
            + lower(self.arguments)
            + [_invoke(self.OPCODE, self.attributes)]
        )


@dataclass(frozen=True)
class InterfaceInvocation(Invocation):
    KIND = Kind.INTERFACE
    OPCODE = Op.INVOKEINTERFACE


@dataclass(frozen=True)
class StaticInvocation(_Call):
    KIND = Kind.STATIC

    attributes: Attributes
    arguments: tuple[AstNode, ...] = ()

    def to_tree(self) -> TreeNode:
        return TreeNode(
            "invocation",
            scope=str(self.attributes),
            children=tuple(a.to_tree() for a in self.arguments),
        )

    def opcodes(self) -> list[AstNode]:
        return lower(self.arguments) + [_invoke(Op.INVOKESTATIC, self.attributes)]


@dataclass(frozen=True)
class DynamicInvocation(_Call):
    """
    INVOKEDYNAMIC call site.

    There is no owner; the bootstrap method handle and its static
    arguments are kept as raw instruction operands and serialized under a
    leading "bootstrap" child.
    """
    KIND = Kind.DYNAMIC

    attributes: Attributes
    bootstrap: tuple = ()
    arguments: tuple[AstNode, ...] = ()

    def __post_init__(self):
        if not isinstance(self.bootstrap, tuple):
            object.__setattr__(self, "bootstrap", tuple(self.bootstrap))
        super().__post_init__()

    def to_tree(self) -> TreeNode:
        bootstrap = TreeNode("bootstrap", children=tuple(operand_node(o) for o in self.bootstrap))
        return TreeNode(
            "invocation",
            scope=str(self.attributes),
            children=(bootstrap,) + tuple(a.to_tree() for a in self.arguments),
        )

    def opcodes(self) -> list[AstNode]:
        call = Opcode.of(
            Op.INVOKEDYNAMIC, self.attributes.name, self.attributes.descriptor, *self.bootstrap
        )
        return lower(self.arguments) + [call]


@dataclass(frozen=True)
class Super(_Call):
    """
    INVOKESPECIAL that is not a complete object construction: a super
    constructor call, a private method or a super.method() call.
    """
    KIND = Kind.INSTANCE

    target: AstNode
    attributes: Attributes
    arguments: tuple[AstNode, ...] = ()

    def to_tree(self) -> TreeNode:
        return TreeNode(
            ".super",
            scope=str(self.attributes),
            children=(self.target.to_tree(),) + tuple(a.to_tree() for a in self.arguments),
        )

    def opcodes(self) -> list[AstNode]:
        return (
            self.target.opcodes()
            + lower(self.arguments)
            + [_invoke(Op.INVOKESPECIAL, self.attributes)]
        )


@dataclass(frozen=True)
class Constructor(_Call):
    """
    ``new T(args)``: NEW, DUP, arguments and the <init> call, leaving the
    initialized object on the stack.
    """
    KIND = Kind.INSTANCE

    type_name: str
    attributes: Attributes
    arguments: tuple[AstNode, ...] = ()

    def __post_init__(self):
        attributes = self.attributes
        if attributes.owner is None:
            attributes = attributes.with_owner(self.type_name)
        if attributes.name is None:
            attributes = attributes.with_name(INIT)
        if attributes.name != INIT:
            raise ValueError(f"Constructor of {self.type_name} can't call '{attributes.name}'")
        object.__setattr__(self, "attributes", attributes)
        super().__post_init__()

    @classmethod
    def of(cls, type_name: str, descriptor: str = "()V", *arguments: AstNode) -> Constructor:
        return cls(type_name, Attributes(descriptor=descriptor), tuple(arguments))

    def to_tree(self) -> TreeNode:
        return TreeNode(
            ".new",
            scope=str(self.attributes),
            text=self.type_name,
            children=tuple(a.to_tree() for a in self.arguments),
        )

    def opcodes(self) -> list[AstNode]:
        return (
            [Opcode.of(Op.NEW, self.type_name), Opcode.of(Op.DUP)]
            + lower(self.arguments)
            + [_invoke(Op.INVOKESPECIAL, self.attributes)]
        )

    def type(self) -> str:
        return d.object_descriptor(self.type_name)
