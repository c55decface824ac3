from .base import AstNode, lower, transform, value_type, walk
from .opcode import Label, Opcode, RawTree
from .values import (
    ClassName,
    Duplicate,
    Literal,
    NewAddress,
    Popped,
    Reference,
    Return,
    Root,
    This,
)
from .variables import LocalVariable, VariableAssignment
from .fields import ClassField, FieldAssignment, FieldRetrieval, InstanceField
from .arrays import ArrayConstructor, StoreArray
from .invocations import (
    Constructor,
    DynamicInvocation,
    InterfaceInvocation,
    Invocation,
    StaticInvocation,
    Super,
)
from .arithmetic import Addition, Cast, CheckCast, Multiplication, Substraction
from .branches import If

__all__ = [
    "AstNode", "lower", "transform", "value_type", "walk",
    "Label", "Opcode", "RawTree",
    "ClassName", "Duplicate", "Literal", "NewAddress", "Popped", "Reference",
    "Return", "Root", "This",
    "LocalVariable", "VariableAssignment",
    "ClassField", "FieldAssignment", "FieldRetrieval", "InstanceField",
    "ArrayConstructor", "StoreArray",
    "Constructor", "DynamicInvocation", "InterfaceInvocation", "Invocation",
    "StaticInvocation", "Super",
    "Addition", "Cast", "CheckCast", "Multiplication", "Substraction",
    "If",
]
