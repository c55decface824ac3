"""
bytetree/parser.py

Tree IR -> AST.

TreeParser dispatches on the node's ``base`` discriminator and builds the
children recursively. One parser instance holds the table of named
``duplicated`` values of one method body, so that ``ref-<name>`` nodes
resolve to the value registered earlier in the same body.
"""

from __future__ import annotations

from loguru import logger

from .ast import (
    Addition,
    ArrayConstructor,
    AstNode,
    Cast,
    CheckCast,
    ClassField,
    ClassName,
    Constructor,
    Duplicate,
    DynamicInvocation,
    FieldAssignment,
    FieldRetrieval,
    If,
    InstanceField,
    InterfaceInvocation,
    Invocation,
    Label,
    Literal,
    LocalVariable,
    Multiplication,
    NewAddress,
    Opcode,
    Popped,
    RawTree,
    Reference,
    Return,
    Root,
    StaticInvocation,
    StoreArray,
    Substraction,
    Super,
    This,
    VariableAssignment,
)
from .ast.values import LITERAL_TYPES
from .ast.variables import PREFIX as LOCAL_PREFIX
from .attributes import Attributes, Kind
from .errors import MalformedTreeError
from .opcodes import opcode_code
from .tree import TreeNode, operand_value

REF_PREFIX = "ref-"

_ARITHMETIC = {".plus": Addition, ".minus": Substraction, ".times": Multiplication}


class TreeParser:
    """
    Recursive tree-IR reader.

    Attributes:
        references: duplicated values by name, in registration order
        used: names that were resolved by at least one reference
    """

    def __init__(self):
        self.references: dict[str, Duplicate] = {}
        self.used: set[str] = set()

    def parse(self, node: TreeNode) -> AstNode:
        try:
            return self._parse(node)
        except MalformedTreeError:
            raise
        except (ValueError, TypeError) as e:
            raise MalformedTreeError(f"Can't parse node '{node.base}': {e}\n{node}") from e

    def parse_all(self, nodes) -> list[AstNode]:
        return [self.parse(n) for n in nodes]

    def _parse(self, node: TreeNode) -> AstNode:
        match node.base:
            case "tuple":
                return Root(tuple(self.parse_all(node.children)))
            case base if base in LITERAL_TYPES:
                return Literal.from_tree(node)
            case "opcode":
                return Opcode.from_tree(node)
            case "label":
                return Label(node.require_text())
            case "$":
                return This()
            case "class":
                return ClassName(node.require_text())
            case "new-address":
                return NewAddress(node.require_text())
            case base if base.startswith(LOCAL_PREFIX):
                return LocalVariable.from_tree(node)
            case ".write-local":
                return VariableAssignment(self.parse(node.child(0)), self.parse(node.child(1)))
            case "staticfield":
                return ClassField(self._attributes(node))
            case ".field":
                return InstanceField(self.parse(node.child(0)), self._attributes(node))
            case ".get-field":
                return self._retrieval(node)
            case ".write-field":
                return FieldAssignment(self.parse(node.child(0)), self.parse(node.child(1)))
            case ".array":
                return ArrayConstructor(self.parse(node.child(0)), node.require_scope())
            case ".writearray":
                array, index, value = (self.parse(node.child(i)) for i in range(3))
                return StoreArray(array, index, value, node.require_scope())
            case ".new":
                return Constructor(
                    node.require_text(),
                    self._attributes(node),
                    tuple(self.parse_all(node.children)),
                )
            case "invocation":
                return self._invocation(node)
            case ".super":
                return Super(
                    self.parse(node.child(0)),
                    self._attributes(node),
                    tuple(self.parse_all(node.children[1:])),
                )
            case base if base in _ARITHMETIC:
                return _ARITHMETIC[base](
                    self.parse(node.child(0)), self.parse(node.child(1)), self._attributes(node)
                )
            case ".cast":
                return Cast(self.parse(node.child(0)), node.require_scope())
            case ".checkcast":
                return CheckCast(self.parse(node.child(0)), node.require_scope())
            case ".if":
                return self._condition(node)
            case "return":
                if not node.children:
                    return Return()
                return Return(self.parse(node.child(0)), node.require_scope())
            case "duplicated":
                return self._duplicated(node)
            case base if base.startswith(REF_PREFIX):
                return self._reference(base[len(REF_PREFIX):], node)
            case "popped":
                return Popped(self.parse(node.child(0)))
            case "raw":
                return RawTree(node.child(0))
            case other:
                raise MalformedTreeError(f"Unknown node '{other}':\n{node}")

    def _attributes(self, node: TreeNode) -> Attributes:
        return Attributes.parse(node.require_scope())

    def _retrieval(self, node: TreeNode) -> FieldRetrieval:
        attributes = self._attributes(node)
        named = node.child(0)
        if named.base != f".{attributes.name}":
            raise MalformedTreeError(
                f"Field read of '{attributes.name}' wraps '{named.base}' instead:\n{node}"
            )
        return FieldRetrieval(self.parse(named.child(0)), attributes)

    def _invocation(self, node: TreeNode) -> AstNode:
        attributes = self._attributes(node)
        match attributes.kind:
            case Kind.METHOD | None:
                return Invocation(
                    self.parse(node.child(0)), attributes, tuple(self.parse_all(node.children[1:]))
                )
            case Kind.INTERFACE:
                return InterfaceInvocation(
                    self.parse(node.child(0)), attributes, tuple(self.parse_all(node.children[1:]))
                )
            case Kind.STATIC:
                return StaticInvocation(attributes, tuple(self.parse_all(node.children)))
            case Kind.DYNAMIC:
                bootstrap = node.child(0)
                if bootstrap.base != "bootstrap":
                    raise MalformedTreeError(
                        f"Dynamic call should start with a 'bootstrap' node:\n{node}"
                    )
                return DynamicInvocation(
                    attributes,
                    tuple(operand_value(c) for c in bootstrap.children),
                    tuple(self.parse_all(node.children[1:])),
                )
            case other:
                raise MalformedTreeError(f"Unsupported invocation kind '{other.value}':\n{node}")

    def _condition(self, node: TreeNode) -> If:
        if not node.children:
            raise MalformedTreeError(f"Conditional has no target label:\n{node}")
        label = self.parse(node.children[-1])
        if not isinstance(label, Label):
            raise MalformedTreeError(f"Conditional should end with a label:\n{node}")
        return If(
            opcode_code(node.require_name()),
            tuple(self.parse_all(node.children[:-1])),
            label,
        )

    def _duplicated(self, node: TreeNode) -> Duplicate:
        name = node.require_name()
        if name in self.references:
            raise MalformedTreeError(f"Duplicated value '{name}' is defined twice:\n{node}")
        duplicate = Duplicate(self.parse(node.child(0)), name)
        self.references[name] = duplicate
        logger.debug(f"Registered duplicated value '{name}'")
        return duplicate

    def _reference(self, name: str, node: TreeNode) -> Reference:
        try:
            original = self.references[name]
        except KeyError:
            raise MalformedTreeError(
                f"Reference to unknown value '{name}', known: {sorted(self.references)}"
            ) from None
        self.used.add(name)
        return Reference(original)


def parse(node: TreeNode) -> AstNode:
    """Parse a single tree with a fresh reference table."""
    return TreeParser().parse(node)
