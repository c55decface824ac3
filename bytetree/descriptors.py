"""
JVM type descriptor helpers.

Descriptors are kept as plain strings ("I", "J", "Ljava/lang/String;",
"[I", "(ILjava/lang/Object;)V"). The helpers below answer the questions
the decompiler and the lowering code ask about them: how many arguments a
method takes, what it returns, which load/store family a value uses and
whether it occupies two stack slots.
"""

from __future__ import annotations

from .opcodes import Op

OBJECT = "Ljava/lang/Object;"
STRING = "Ljava/lang/String;"
VOID = "V"

_PRIMITIVES = frozenset("ZBCSIJFDV")

# Category of a value on the operand stack: int, long, float, double, reference.
_KIND = {
    "Z": "I", "B": "I", "C": "I", "S": "I", "I": "I",
    "J": "J", "F": "F", "D": "D",
}

_LOADS = {"I": Op.ILOAD, "J": Op.LLOAD, "F": Op.FLOAD, "D": Op.DLOAD, "A": Op.ALOAD}
_STORES = {"I": Op.ISTORE, "J": Op.LSTORE, "F": Op.FSTORE, "D": Op.DSTORE, "A": Op.ASTORE}

_ARRAY_STORES = {
    "I": Op.IASTORE, "J": Op.LASTORE, "F": Op.FASTORE, "D": Op.DASTORE,
    "Z": Op.BASTORE, "B": Op.BASTORE, "C": Op.CASTORE, "S": Op.SASTORE,
}
STORED_ELEMENTS = {
    Op.IASTORE: "I", Op.LASTORE: "J", Op.FASTORE: "F", Op.DASTORE: "D",
    Op.AASTORE: OBJECT, Op.BASTORE: "B", Op.CASTORE: "C", Op.SASTORE: "S",
}

# NEWARRAY operand codes (T_BOOLEAN .. T_LONG).
ARRAY_TYPE_CODES = {"Z": 4, "C": 5, "F": 6, "D": 7, "B": 8, "S": 9, "I": 10, "J": 11}
ARRAY_TYPES = {code: desc for desc, code in ARRAY_TYPE_CODES.items()}


def _read_one(desc: str, pos: int) -> int:
    """Return the index right after the field descriptor starting at pos."""
    start = pos
    while pos < len(desc) and desc[pos] == "[":
        pos += 1
    if pos >= len(desc):
        raise ValueError(f"Malformed descriptor {desc!r} at {start}")
    char = desc[pos]
    if char == "L":
        end = desc.find(";", pos)
        if end < 0:
            raise ValueError(f"Unterminated class name in descriptor {desc!r}")
        return end + 1
    if char in _PRIMITIVES:
        return pos + 1
    raise ValueError(f"Unknown type {char!r} in descriptor {desc!r}")


def is_valid(desc: str) -> bool:
    """True if desc is a single, complete field (or void) descriptor."""
    try:
        return bool(desc) and _read_one(desc, 0) == len(desc)
    except ValueError:
        return False


def argument_types(method: str) -> list[str]:
    """Argument descriptors of a method descriptor, in declaration order."""
    if not method.startswith("(") or ")" not in method:
        raise ValueError(f"Not a method descriptor: {method!r}")
    close = method.index(")")
    result = []
    pos = 1
    while pos < close:
        end = _read_one(method, pos)
        result.append(method[pos:end])
        pos = end
    return result


def return_type(method: str) -> str:
    """Return descriptor of a method descriptor."""
    if not method.startswith("(") or ")" not in method:
        raise ValueError(f"Not a method descriptor: {method!r}")
    result = method[method.index(")") + 1:]
    if not is_valid(result):
        raise ValueError(f"Malformed return type in {method!r}")
    return result


def kind(desc: str) -> str:
    """Stack category of a field descriptor: I, J, F, D or A (reference)."""
    return _KIND.get(desc, "A")


def is_wide(desc: str) -> bool:
    """Long and double values take two stack slots."""
    return desc in ("J", "D")


def is_reference(desc: str) -> bool:
    return kind(desc) == "A" and desc != VOID


def load_opcode(desc: str) -> Op:
    return _LOADS[kind(desc)]


def store_opcode(desc: str) -> Op:
    return _STORES[kind(desc)]


def array_store_opcode(element: str) -> Op:
    return _ARRAY_STORES.get(element, Op.AASTORE)


def object_descriptor(internal: str) -> str:
    """Descriptor of an internal class name ('java/lang/String' or '[I')."""
    if internal.startswith("["):
        return internal
    return f"L{internal};"


def internal_name(desc: str) -> str:
    """Inverse of object_descriptor."""
    if desc.startswith("L") and desc.endswith(";"):
        return desc[1:-1]
    return desc


def array_of(element: str) -> str:
    """Descriptor of an array whose elements have the given type.

    The element may be an internal class name (ANEWARRAY operand) or a
    primitive descriptor (NEWARRAY).
    """
    if element in _PRIMITIVES or element.startswith("["):
        return "[" + element
    return "[" + object_descriptor(element)
