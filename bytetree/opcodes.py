"""
bytetree/opcodes.py

Flat JVM instruction model consumed by the decompiler and produced by the
compiler.

- Op: every JVM opcode with its standard mnemonic
- Instruction: opcode + ordered operands
- LabelInstruction: jump target marker without an opcode
- TypeRef: class constant operand (``LDC Foo.class``)

Instruction sequences also have a JSON record form so that method bodies
can be stored next to class metadata:

    {"opcode": "aload", "operands": [0]}
    {"label": "L1"}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Iterable, Optional


class Op(IntEnum):
    """JVM opcodes, numbered as in the class file format."""
    NOP = 0
    ACONST_NULL = 1
    ICONST_M1 = 2
    ICONST_0 = 3
    ICONST_1 = 4
    ICONST_2 = 5
    ICONST_3 = 6
    ICONST_4 = 7
    ICONST_5 = 8
    LCONST_0 = 9
    LCONST_1 = 10
    FCONST_0 = 11
    FCONST_1 = 12
    FCONST_2 = 13
    DCONST_0 = 14
    DCONST_1 = 15
    BIPUSH = 16
    SIPUSH = 17
    LDC = 18
    LDC_W = 19
    LDC2_W = 20
    ILOAD = 21
    LLOAD = 22
    FLOAD = 23
    DLOAD = 24
    ALOAD = 25
    ILOAD_0 = 26
    ILOAD_1 = 27
    ILOAD_2 = 28
    ILOAD_3 = 29
    LLOAD_0 = 30
    LLOAD_1 = 31
    LLOAD_2 = 32
    LLOAD_3 = 33
    FLOAD_0 = 34
    FLOAD_1 = 35
    FLOAD_2 = 36
    FLOAD_3 = 37
    DLOAD_0 = 38
    DLOAD_1 = 39
    DLOAD_2 = 40
    DLOAD_3 = 41
    ALOAD_0 = 42
    ALOAD_1 = 43
    ALOAD_2 = 44
    ALOAD_3 = 45
    IALOAD = 46
    LALOAD = 47
    FALOAD = 48
    DALOAD = 49
    AALOAD = 50
    BALOAD = 51
    CALOAD = 52
    SALOAD = 53
    ISTORE = 54
    LSTORE = 55
    FSTORE = 56
    DSTORE = 57
    ASTORE = 58
    ISTORE_0 = 59
    ISTORE_1 = 60
    ISTORE_2 = 61
    ISTORE_3 = 62
    LSTORE_0 = 63
    LSTORE_1 = 64
    LSTORE_2 = 65
    LSTORE_3 = 66
    FSTORE_0 = 67
    FSTORE_1 = 68
    FSTORE_2 = 69
    FSTORE_3 = 70
    DSTORE_0 = 71
    DSTORE_1 = 72
    DSTORE_2 = 73
    DSTORE_3 = 74
    ASTORE_0 = 75
    ASTORE_1 = 76
    ASTORE_2 = 77
    ASTORE_3 = 78
    IASTORE = 79
    LASTORE = 80
    FASTORE = 81
    DASTORE = 82
    AASTORE = 83
    BASTORE = 84
    CASTORE = 85
    SASTORE = 86
    POP = 87
    POP2 = 88
    DUP = 89
    DUP_X1 = 90
    DUP_X2 = 91
    DUP2 = 92
    DUP2_X1 = 93
    DUP2_X2 = 94
    SWAP = 95
    IADD = 96
    LADD = 97
    FADD = 98
    DADD = 99
    ISUB = 100
    LSUB = 101
    FSUB = 102
    DSUB = 103
    IMUL = 104
    LMUL = 105
    FMUL = 106
    DMUL = 107
    IDIV = 108
    LDIV = 109
    FDIV = 110
    DDIV = 111
    IREM = 112
    LREM = 113
    FREM = 114
    DREM = 115
    INEG = 116
    LNEG = 117
    FNEG = 118
    DNEG = 119
    ISHL = 120
    LSHL = 121
    ISHR = 122
    LSHR = 123
    IUSHR = 124
    LUSHR = 125
    IAND = 126
    LAND = 127
    IOR = 128
    LOR = 129
    IXOR = 130
    LXOR = 131
    IINC = 132
    I2L = 133
    I2F = 134
    I2D = 135
    L2I = 136
    L2F = 137
    L2D = 138
    F2I = 139
    F2L = 140
    F2D = 141
    D2I = 142
    D2L = 143
    D2F = 144
    I2B = 145
    I2C = 146
    I2S = 147
    LCMP = 148
    FCMPL = 149
    FCMPG = 150
    DCMPL = 151
    DCMPG = 152
    IFEQ = 153
    IFNE = 154
    IFLT = 155
    IFGE = 156
    IFGT = 157
    IFLE = 158
    IF_ICMPEQ = 159
    IF_ICMPNE = 160
    IF_ICMPLT = 161
    IF_ICMPGE = 162
    IF_ICMPGT = 163
    IF_ICMPLE = 164
    IF_ACMPEQ = 165
    IF_ACMPNE = 166
    GOTO = 167
    JSR = 168
    RET = 169
    TABLESWITCH = 170
    LOOKUPSWITCH = 171
    IRETURN = 172
    LRETURN = 173
    FRETURN = 174
    DRETURN = 175
    ARETURN = 176
    RETURN = 177
    GETSTATIC = 178
    PUTSTATIC = 179
    GETFIELD = 180
    PUTFIELD = 181
    INVOKEVIRTUAL = 182
    INVOKESPECIAL = 183
    INVOKESTATIC = 184
    INVOKEINTERFACE = 185
    INVOKEDYNAMIC = 186
    NEW = 187
    NEWARRAY = 188
    ANEWARRAY = 189
    ARRAYLENGTH = 190
    ATHROW = 191
    CHECKCAST = 192
    INSTANCEOF = 193
    MONITORENTER = 194
    MONITOREXIT = 195
    WIDE = 196
    MULTIANEWARRAY = 197
    IFNULL = 198
    IFNONNULL = 199
    GOTO_W = 200
    JSR_W = 201


UNKNOWN = "unknown"


def opcode_name(code: int) -> str:
    """Lowercase mnemonic of an opcode, or 'unknown'."""
    try:
        return Op(code).name.lower()
    except ValueError:
        return UNKNOWN


def opcode_code(name: str) -> int:
    """Numeric code of a (case-insensitive) mnemonic."""
    try:
        return Op[name.upper()].value
    except KeyError:
        raise ValueError(f"Opcode name {name!r} not found") from None


@dataclass(frozen=True)
class TypeRef:
    """
    Class constant operand, e.g. the operand of ``LDC String.class``.

    Always held as a descriptor: an internal class name such as
    'java/lang/String' is stored as 'Ljava/lang/String;', array
    descriptors are kept as they are.
    """
    descriptor: str

    def __post_init__(self):
        desc = self.descriptor
        if not desc.startswith("[") and not (desc.startswith("L") and desc.endswith(";")):
            object.__setattr__(self, "descriptor", f"L{desc};")

    def __str__(self) -> str:
        return self.descriptor


@dataclass(frozen=True)
class LabelInstruction:
    """
    Jump target.

    Labels occupy a slot in the instruction sequence but carry no opcode.
    Jump instructions reference their target by holding the same
    LabelInstruction as an operand.
    """
    identifier: str
    opcode: Optional[int] = field(default=None, init=False)
    operands: tuple = field(default=(), init=False)

    @property
    def name(self) -> str:
        return "label"

    def __str__(self) -> str:
        return f"label {self.identifier}"


@dataclass(frozen=True)
class Instruction:
    """
    A single bytecode instruction.

    Attributes:
        opcode: Numeric JVM opcode
        operands: Ordered operands (ints, floats, strings, TypeRef,
            LabelInstruction or nested tuples for bootstrap arguments)
    """
    opcode: int
    operands: tuple = ()

    def __post_init__(self):
        if not isinstance(self.operands, tuple):
            object.__setattr__(self, "operands", tuple(self.operands))

    @property
    def name(self) -> str:
        return opcode_name(self.opcode)

    def operand(self, index: int) -> Any:
        try:
            return self.operands[index]
        except IndexError:
            raise ValueError(
                f"Instruction {self} has no operand #{index}"
            ) from None

    def __str__(self) -> str:
        if not self.operands:
            return self.name.upper()
        args = " ".join(_show(op) for op in self.operands)
        return f"{self.name.upper()} {args}"

    @classmethod
    def of(cls, opcode: int, *operands: Any) -> Instruction:
        return cls(int(opcode), tuple(operands))


Element = Instruction | LabelInstruction


def _show(operand: Any) -> str:
    if isinstance(operand, str):
        return repr(operand)
    if isinstance(operand, LabelInstruction):
        return operand.identifier
    return str(operand)


# ---------------------------------------------------------------------------
# JSON record form
# ---------------------------------------------------------------------------


def operand_to_json(operand: Any) -> Any:
    match operand:
        case LabelInstruction(identifier=ident):
            return {"label": ident}
        case TypeRef(descriptor=desc):
            return {"type": desc}
        case tuple() | list():
            return [operand_to_json(o) for o in operand]
        case bool() | int() | float() | str() | None:
            return operand
        case _:
            raise ValueError(f"Can't store operand {operand!r} as JSON")


def operand_from_json(data: Any, labels: dict[str, LabelInstruction]) -> Any:
    match data:
        case {"label": str(ident)}:
            return labels.setdefault(ident, LabelInstruction(ident))
        case {"type": str(desc)}:
            return TypeRef(desc)
        case list():
            return tuple(operand_from_json(d, labels) for d in data)
        case bool() | int() | float() | str() | None:
            return data
        case _:
            raise ValueError(f"Can't read operand from {data!r}")


def instructions_from_json(records: Iterable[dict]) -> list[Element]:
    """
    Read a method body stored as JSON records.

    The opcode may be given as a mnemonic or as its numeric code. Labels
    with the same identifier resolve to equal LabelInstruction objects.
    """
    labels: dict[str, LabelInstruction] = {}
    result: list[Element] = []
    for record in records:
        if "label" in record:
            ident = str(record["label"])
            result.append(labels.setdefault(ident, LabelInstruction(ident)))
            continue
        if "opcode" not in record:
            raise ValueError(f"Instruction record without opcode: {record!r}")
        raw = record["opcode"]
        code = opcode_code(raw) if isinstance(raw, str) else int(raw)
        operands = tuple(
            operand_from_json(o, labels) for o in record.get("operands", [])
        )
        result.append(Instruction(code, operands))
    return result


def instructions_to_json(instructions: Iterable[Element]) -> list[dict]:
    records: list[dict] = []
    for inst in instructions:
        if isinstance(inst, LabelInstruction):
            records.append({"label": inst.identifier})
        else:
            records.append({
                "opcode": inst.name,
                "operands": [operand_to_json(o) for o in inst.operands],
            })
    return records
