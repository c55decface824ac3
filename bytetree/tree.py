"""
bytetree/tree.py

Generic tagged tree used as the textual form of the tree IR.

Every node carries a discriminator ``base`` and, optionally, a ``scope``
(serialized Attributes or a type), a ``name`` (reference names, opcode
names), a ``text`` payload (literal values, label identities) and ordered
children. The text form is JSON:

    {"base": ".plus", "scope": "descriptor=I",
     "children": [{"base": "int", "text": "2"}, {"base": "int", "text": "3"}]}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .errors import MalformedTreeError
from .opcodes import LabelInstruction, TypeRef


@dataclass(frozen=True)
class TreeNode:
    base: str
    scope: Optional[str] = None
    name: Optional[str] = None
    text: Optional[str] = None
    children: tuple[TreeNode, ...] = ()

    def __post_init__(self):
        if not isinstance(self.children, tuple):
            object.__setattr__(self, "children", tuple(self.children))

    def child(self, index: int) -> TreeNode:
        try:
            return self.children[index]
        except IndexError:
            raise MalformedTreeError(
                f"Node '{self.base}' has no child #{index}:\n{self}"
            ) from None

    def require_scope(self) -> str:
        if self.scope is None:
            raise MalformedTreeError(
                f"Node '{self.base}' should have the 'scope' attribute:\n{self}"
            )
        return self.scope

    def require_name(self) -> str:
        if self.name is None:
            raise MalformedTreeError(
                f"Node '{self.base}' should have the 'name' attribute:\n{self}"
            )
        return self.name

    def require_text(self) -> str:
        if self.text is None:
            raise MalformedTreeError(f"Node '{self.base}' has no text:\n{self}")
        return self.text

    def to_json(self) -> dict:
        data: dict[str, Any] = {"base": self.base}
        if self.scope is not None:
            data["scope"] = self.scope
        if self.name is not None:
            data["name"] = self.name
        if self.text is not None:
            data["text"] = self.text
        if self.children:
            data["children"] = [c.to_json() for c in self.children]
        return data

    @classmethod
    def from_json(cls, data: dict) -> TreeNode:
        if not isinstance(data, dict) or "base" not in data:
            raise MalformedTreeError(
                f"Can't recognize node: {data!r}, 'base' attribute should be present"
            )
        return cls(
            base=str(data["base"]),
            scope=data.get("scope"),
            name=data.get("name"),
            text=data.get("text"),
            children=tuple(cls.from_json(c) for c in data.get("children", [])),
        )

    def __str__(self) -> str:
        return json.dumps(self.to_json(), indent=2)


def dumps(nodes: Iterable[TreeNode]) -> str:
    return json.dumps([n.to_json() for n in nodes], indent=2)


def loads(text: str) -> list[TreeNode]:
    data = json.loads(text)
    if isinstance(data, dict):
        data = [data]
    return [TreeNode.from_json(d) for d in data]


# ---------------------------------------------------------------------------
# Instruction operands as tree nodes
# ---------------------------------------------------------------------------


def operand_node(operand: Any) -> TreeNode:
    """Encode an instruction operand; the inverse is operand_value."""
    match operand:
        case bool():
            return TreeNode("bool", text="true" if operand else "false")
        case int():
            return TreeNode("int", text=str(operand))
        case float():
            return TreeNode("float", text=repr(operand))
        case str():
            return TreeNode("string", text=operand)
        case None:
            return TreeNode("null")
        case LabelInstruction(identifier=ident):
            return TreeNode("label", text=ident)
        case TypeRef(descriptor=desc):
            return TreeNode("type", text=desc)
        case tuple() | list():
            return TreeNode("tuple", children=tuple(operand_node(o) for o in operand))
        case _:
            raise ValueError(f"Can't encode operand {operand!r}")


def operand_value(node: TreeNode) -> Any:
    match node.base:
        case "bool":
            return node.require_text() == "true"
        case "int":
            return int(node.require_text())
        case "float":
            return float(node.require_text())
        case "string":
            return node.text or ""
        case "null":
            return None
        case "label":
            return LabelInstruction(node.require_text())
        case "type":
            return TypeRef(node.require_text())
        case "tuple":
            return tuple(operand_value(c) for c in node.children)
        case other:
            raise MalformedTreeError(f"Unknown operand kind '{other}':\n{node}")
