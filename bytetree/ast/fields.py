"""Static and instance field reads and writes."""

from __future__ import annotations

from dataclasses import dataclass, replace

from ..attributes import Attributes, Kind
from ..opcodes import Op
from ..tree import TreeNode
from .base import AstNode
from .opcode import Opcode


def _member(attributes: Attributes, kind: Kind) -> Attributes:
    """Check that a field reference is complete and tag it with its kind."""
    for key in ("owner", "name", "descriptor"):
        attributes.require(key)
    if attributes.kind is None:
        return replace(attributes, kind=kind)
    if attributes.kind is not kind:
        raise ValueError(f"Expected a {kind.value} reference, got '{attributes}'")
    return attributes


def _access(code: int, attributes: Attributes) -> Opcode:
    return Opcode.of(code, attributes.owner, attributes.name, attributes.descriptor)


@dataclass(frozen=True)
class ClassField(AstNode):
    """Static field read (GETSTATIC)."""
    attributes: Attributes

    def __post_init__(self):
        object.__setattr__(self, "attributes", _member(self.attributes, Kind.STATIC))

    @classmethod
    def of(cls, owner: str, name: str, descriptor: str) -> ClassField:
        return cls(Attributes(owner=owner, name=name, descriptor=descriptor))

    def to_tree(self) -> TreeNode:
        return TreeNode("staticfield", scope=str(self.attributes))

    def opcodes(self) -> list[AstNode]:
        return [_access(Op.GETSTATIC, self.attributes)]

    def type(self) -> str:
        return self.attributes.descriptor


@dataclass(frozen=True)
class InstanceField(AstNode):
    """Instance field read (GETFIELD) on the object computed by target."""
    target: AstNode
    attributes: Attributes

    def __post_init__(self):
        object.__setattr__(self, "attributes", _member(self.attributes, Kind.FIELD))

    def to_tree(self) -> TreeNode:
        return TreeNode(".field", scope=str(self.attributes), children=(self.target.to_tree(),))

    def opcodes(self) -> list[AstNode]:
        return self.target.opcodes() + [_access(Op.GETFIELD, self.attributes)]

    def type(self) -> str:
        return self.attributes.descriptor


@dataclass(frozen=True)
class FieldRetrieval(InstanceField):
    """
    Instance field read in the nested form: the field name wraps the
    target it is read from.

        {"base": ".get-field", "scope": "...",
         "children": [{"base": ".bar", "children": [{"base": "$"}]}]}
    """

    def to_tree(self) -> TreeNode:
        named = TreeNode(f".{self.attributes.name}", children=(self.target.to_tree(),))
        return TreeNode(".get-field", scope=str(self.attributes), children=(named,))


@dataclass(frozen=True)
class FieldAssignment(AstNode):
    """Field write: PUTFIELD for instance fields, PUTSTATIC for static ones."""
    field: AstNode
    value: AstNode

    def __post_init__(self):
        if not isinstance(self.field, (InstanceField, ClassField)):
            raise TypeError(f"Can't assign to {self.field!r}, a field is expected")

    def to_tree(self) -> TreeNode:
        return TreeNode(
            ".write-field",
            children=(self.field.to_tree(), self.value.to_tree()),
        )

    def opcodes(self) -> list[AstNode]:
        attributes = self.field.attributes
        if isinstance(self.field, ClassField):
            return self.value.opcodes() + [_access(Op.PUTSTATIC, attributes)]
        return (
            self.field.target.opcodes()
            + self.value.opcodes()
            + [_access(Op.PUTFIELD, attributes)]
        )
