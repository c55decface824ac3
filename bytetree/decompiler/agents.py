"""
Recognizer agents.

An agent looks at the decompiler state and, when it is appropriate,
consumes one or more instructions and rebuilds the matching AST node on
the symbolic stack. Most recognizers only implement ``handle`` and
``operands``; the OpcodesAgent adapter makes them fire only for the
opcodes they support, and only when their operands are the topmost values
on the stack. Otherwise the instruction is kept as a passthrough.
Recognizers of composite shapes (object construction, array literals,
forward conditionals) also look at the stack or at the instructions ahead.

The order of ``default_agents()`` is significant: the first appropriate
agent wins.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from loguru import logger

from .. import descriptors as d
from ..ast import (
    ArrayConstructor,
    Cast,
    CheckCast,
    ClassField,
    ClassName,
    Constructor,
    Duplicate,
    DynamicInvocation,
    FieldAssignment,
    If,
    InstanceField,
    InterfaceInvocation,
    Invocation,
    Label,
    Literal,
    LocalVariable,
    NewAddress,
    Opcode,
    Popped,
    Return,
    StaticInvocation,
    StoreArray,
    Super,
    This,
    VariableAssignment,
)
from ..ast.arithmetic import BINARY_OPERATIONS, CONVERSION_TARGETS
from ..ast.branches import BINARY_JUMPS, UNARY_JUMPS, arity
from ..ast.invocations import INIT
from ..ast.values import RETURN_TYPES
from ..attributes import Attributes
from ..errors import DecompilationError, IllegalAgentError
from ..opcodes import Instruction, LabelInstruction, Op, TypeRef, opcode_name
from .state import DecompilerState


class Agent(ABC):

    @abstractmethod
    def supported(self) -> frozenset[int]:
        """Opcodes this agent can turn into AST nodes."""

    @abstractmethod
    def appropriate(self, state: DecompilerState) -> bool: ...

    @abstractmethod
    def handle(self, state: DecompilerState) -> None:
        """Consume instructions and update the stack; only valid when appropriate."""

    def __repr__(self) -> str:
        return type(self).__name__


class Recognizer(ABC):
    """Semantic part of an agent: what to do with the current instruction."""

    def operands(self, state: DecompilerState) -> int:
        """Number of values the current instruction takes off the stack."""
        return 0

    def appropriate(self, state: DecompilerState) -> bool:
        return True

    @abstractmethod
    def handle(self, state: DecompilerState) -> None: ...

    def __repr__(self) -> str:
        return type(self).__name__


class OpcodesAgent(Agent):
    """Narrows a recognizer to the instructions with the given opcodes."""

    def __init__(self, recognizer: Recognizer, opcodes: Iterable[int]):
        self.recognizer = recognizer
        self.opcodes = frozenset(int(o) for o in opcodes)

    def supported(self) -> frozenset[int]:
        return self.opcodes

    def appropriate(self, state: DecompilerState) -> bool:
        return (
            state.has_instructions()
            and state.current_opcode() in self.opcodes
            and state.operands_ready(self.recognizer.operands(state))
            and self.recognizer.appropriate(state)
        )

    def handle(self, state: DecompilerState) -> None:
        if not self.appropriate(state):
            raise IllegalAgentError(self, state)
        self.recognizer.handle(state)

    def __repr__(self) -> str:
        return repr(self.recognizer)


class LabelAgent(Agent):
    """Jump targets become Label nodes in place."""

    def supported(self) -> frozenset[int]:
        return frozenset()

    def appropriate(self, state: DecompilerState) -> bool:
        return isinstance(state.current(), LabelInstruction)

    def handle(self, state: DecompilerState) -> None:
        if not self.appropriate(state):
            raise IllegalAgentError(self, state)
        state.push(Label(state.next().identifier))


class AllAgents(Agent):
    """Several agents tried in order; the supported opcodes are their union."""

    def __init__(self, agents: Iterable[Agent]):
        self.agents = tuple(agents)

    def supported(self) -> frozenset[int]:
        return frozenset().union(*(a.supported() for a in self.agents))

    def appropriate(self, state: DecompilerState) -> bool:
        return self.first(state) is not None

    def first(self, state: DecompilerState) -> Optional[Agent]:
        return next((a for a in self.agents if a.appropriate(state)), None)

    def handle(self, state: DecompilerState) -> None:
        agent = self.first(state)
        if agent is None:
            raise IllegalAgentError(self, state)
        logger.debug(f"{agent} handles '{state.current()}'")
        agent.handle(state)


class UnimplementedAgent(Agent):
    """
    Fallback for instructions no other agent recognizes: the instruction is
    kept as a passthrough Opcode node.
    """

    def __init__(self, counting: bool = True):
        self.counting = counting

    def supported(self) -> frozenset[int]:
        return frozenset()

    def appropriate(self, state: DecompilerState) -> bool:
        return state.has_instructions()

    def handle(self, state: DecompilerState) -> None:
        if not self.appropriate(state):
            raise IllegalAgentError(self, state)
        instruction = state.next()
        if isinstance(instruction, LabelInstruction):
            state.push(Label(instruction.identifier))
            return
        logger.debug(f"Keeping unrecognized instruction '{instruction}'")
        state.push(Opcode(instruction.opcode, instruction.operands, counting=self.counting))


# ---------------------------------------------------------------------------
# Operand helpers
# ---------------------------------------------------------------------------


def _member(instruction: Instruction) -> Attributes:
    """Owner, name and descriptor operands of a field or method instruction."""
    if len(instruction.operands) < 3:
        raise DecompilationError(
            f"'{instruction}' should have owner, name and descriptor operands"
        )
    owner, name, descriptor = instruction.operands[:3]
    return Attributes(owner=owner, name=name, descriptor=descriptor)


def _arity(instruction: Instruction, position: int = 2) -> Optional[int]:
    """Number of arguments of the called method, None for a bad descriptor."""
    if len(instruction.operands) <= position:
        return None
    try:
        return len(d.argument_types(instruction.operands[position]))
    except (TypeError, ValueError):
        return None


def _call_arguments(state: DecompilerState, instruction: Instruction, position: int = 2):
    count = _arity(instruction, position)
    if count is None:
        raise DecompilationError(f"'{instruction}' has no valid method descriptor")
    return state.pop_many(count)


# ---------------------------------------------------------------------------
# Recognizers
# ---------------------------------------------------------------------------

CONSTANTS = frozenset({
    Op.ACONST_NULL, Op.ICONST_M1, Op.ICONST_0, Op.ICONST_1, Op.ICONST_2, Op.ICONST_3,
    Op.ICONST_4, Op.ICONST_5, Op.LCONST_0, Op.LCONST_1, Op.FCONST_0, Op.FCONST_1,
    Op.FCONST_2, Op.DCONST_0, Op.DCONST_1, Op.BIPUSH, Op.SIPUSH, Op.LDC, Op.LDC_W,
    Op.LDC2_W,
})


class ConstantRecognizer(Recognizer):
    """Constant pushes; LDC of method handles and the like is left alone."""

    def appropriate(self, state: DecompilerState) -> bool:
        instruction = state.current()
        if instruction.opcode in (Op.LDC, Op.LDC_W, Op.LDC2_W):
            if not instruction.operands:
                return False
            value = instruction.operands[0]
            if instruction.opcode == Op.LDC2_W:
                return isinstance(value, (int, float)) and not isinstance(value, bool)
            return isinstance(value, (int, float, str, TypeRef)) and not isinstance(value, bool)
        return True

    def handle(self, state: DecompilerState) -> None:
        instruction = state.next()
        state.push(self.constant(instruction))

    @staticmethod
    def constant(instruction: Instruction):
        code = instruction.opcode
        if code == Op.ACONST_NULL:
            return Literal(None)
        if Op.ICONST_M1 <= code <= Op.ICONST_5:
            return Literal(code - Op.ICONST_0, "I")
        if Op.LCONST_0 <= code <= Op.LCONST_1:
            return Literal(code - Op.LCONST_0, "J")
        if Op.FCONST_0 <= code <= Op.FCONST_2:
            return Literal(float(code - Op.FCONST_0), "F")
        if Op.DCONST_0 <= code <= Op.DCONST_1:
            return Literal(float(code - Op.DCONST_0), "D")
        value = instruction.operand(0)
        match code, value:
            case (Op.BIPUSH | Op.SIPUSH), _:
                return Literal(value, "I")
            case Op.LDC2_W, int():
                return Literal(value, "J")
            case Op.LDC2_W, float():
                return Literal(value, "D")
            case _, TypeRef(descriptor=desc):
                return ClassName(d.internal_name(desc))
            case _, int():
                return Literal(value, "I")
            case _, float():
                return Literal(value, "F")
            case _, str():
                return Literal(value, d.STRING)
        raise DecompilationError(f"Can't recognize constant '{instruction}'")


_LOAD_TYPES = {Op.ILOAD: "I", Op.LLOAD: "J", Op.FLOAD: "F", Op.DLOAD: "D", Op.ALOAD: d.OBJECT}
_STORE_TYPES = {Op.ISTORE: "I", Op.LSTORE: "J", Op.FSTORE: "F", Op.DSTORE: "D", Op.ASTORE: d.OBJECT}


def _slot(instruction: Instruction, base: Op, short: Op) -> tuple[int, int]:
    """
    Family opcode and slot of a load/store, short forms included:
    ILOAD_2 -> (ILOAD, 2).
    """
    code = instruction.opcode
    if code >= short:
        offset = code - short
        return base + offset // 4, offset % 4
    return code, instruction.operand(0)


LOADS = frozenset(range(Op.ILOAD, Op.ALOAD + 1)) | frozenset(range(Op.ILOAD_0, Op.ALOAD_3 + 1))
STORES = frozenset(range(Op.ISTORE, Op.ASTORE + 1)) | frozenset(range(Op.ISTORE_0, Op.ASTORE_3 + 1))


class LoadRecognizer(Recognizer):
    """Local reads; slot 0 of a reference load is the receiver."""

    def handle(self, state: DecompilerState) -> None:
        family, index = _slot(state.next(), Op.ILOAD, Op.ILOAD_0)
        if family == Op.ALOAD and index == 0:
            state.push(This())
        else:
            state.push(LocalVariable(index, _LOAD_TYPES[family]))


class StoreRecognizer(Recognizer):

    def operands(self, state: DecompilerState) -> int:
        return 1

    def handle(self, state: DecompilerState) -> None:
        family, index = _slot(state.next(), Op.ISTORE, Op.ISTORE_0)
        value = state.pop()
        desc = _STORE_TYPES[family]
        if family == Op.ASTORE and d.is_reference(value.type()):
            desc = value.type()
        state.push(VariableAssignment(LocalVariable(index, desc), value))


class ArithmeticRecognizer(Recognizer):

    def operands(self, state: DecompilerState) -> int:
        return 2

    def handle(self, state: DecompilerState) -> None:
        instruction = state.next()
        cls, desc = BINARY_OPERATIONS[instruction.opcode]
        left, right = state.pop_many(2)
        state.push(cls(left, right, Attributes(descriptor=desc)))


class CastRecognizer(Recognizer):

    def operands(self, state: DecompilerState) -> int:
        return 1

    def handle(self, state: DecompilerState) -> None:
        instruction = state.next()
        state.push(Cast(state.pop(), CONVERSION_TARGETS[instruction.opcode]))


class CheckCastRecognizer(Recognizer):

    def operands(self, state: DecompilerState) -> int:
        return 1

    def handle(self, state: DecompilerState) -> None:
        instruction = state.next()
        state.push(CheckCast(state.pop(), instruction.operand(0)))


_FIELD_OPERANDS = {Op.GETSTATIC: 0, Op.GETFIELD: 1, Op.PUTSTATIC: 1, Op.PUTFIELD: 2}


class FieldRecognizer(Recognizer):
    """GETFIELD, PUTFIELD, GETSTATIC and PUTSTATIC."""

    def operands(self, state: DecompilerState) -> int:
        return _FIELD_OPERANDS[state.current_opcode()]

    def handle(self, state: DecompilerState) -> None:
        instruction = state.next()
        attributes = _member(instruction)
        match instruction.opcode:
            case Op.GETFIELD:
                state.push(InstanceField(state.pop(), attributes))
            case Op.PUTFIELD:
                target, value = state.pop_many(2)
                state.push(FieldAssignment(InstanceField(target, attributes), value))
            case Op.GETSTATIC:
                state.push(ClassField(attributes))
            case Op.PUTSTATIC:
                state.push(FieldAssignment(ClassField(attributes), state.pop()))


class NewRecognizer(Recognizer):

    def handle(self, state: DecompilerState) -> None:
        state.push(NewAddress(state.next().operand(0)))


class DupRecognizer(Recognizer):
    """
    DUP, and DUP2 of a single long/double value.

    The same Duplicate object is pushed twice; the machine later turns the
    second use into a named reference.
    """

    def operands(self, state: DecompilerState) -> int:
        return 1

    def appropriate(self, state: DecompilerState) -> bool:
        if state.current_opcode() == Op.DUP:
            return True
        return state.has_values(1) and d.is_wide(state.peek().type())

    def handle(self, state: DecompilerState) -> None:
        state.next()
        duplicate = Duplicate(state.pop(), state.fresh_name())
        state.push(duplicate)
        state.push(duplicate)


class NewArrayRecognizer(Recognizer):

    def operands(self, state: DecompilerState) -> int:
        return 1

    def handle(self, state: DecompilerState) -> None:
        instruction = state.next()
        if instruction.opcode == Op.NEWARRAY:
            code = instruction.operand(0)
            if code not in d.ARRAY_TYPES:
                raise DecompilationError(f"Unknown primitive array type in '{instruction}'")
            element = d.ARRAY_TYPES[code]
        else:
            element = instruction.operand(0)
        state.push(ArrayConstructor(state.pop(), element))


ARRAY_STORES = frozenset(d.STORED_ELEMENTS)


def _array_element(array, instruction: Instruction) -> Optional[str]:
    """Element type of a store; None lets StoreArray derive it from the array."""
    desc = array.type()
    if desc is not None and desc.startswith("["):
        return None
    return d.STORED_ELEMENTS[instruction.opcode]


class ArrayLiteralRecognizer(Recognizer):
    """
    Store into a freshly duplicated array (``arr; DUP; i; v; xASTORE``):
    the second copy of the array is replaced by the StoreArray, so that
    the next element store chains onto it.
    """

    def operands(self, state: DecompilerState) -> int:
        return 3

    def appropriate(self, state: DecompilerState) -> bool:
        if not state.has_values(4):
            return False
        array = state.peek(2)
        return isinstance(array, Duplicate) and state.peek(3) is array

    def handle(self, state: DecompilerState) -> None:
        instruction = state.next()
        duplicate, index, value = state.pop_many(3)
        state.pop()
        element = _array_element(duplicate.inner, instruction)
        state.push(StoreArray(duplicate.inner, index, value, element))


class ArrayStoreRecognizer(Recognizer):

    def operands(self, state: DecompilerState) -> int:
        return 3

    def handle(self, state: DecompilerState) -> None:
        instruction = state.next()
        array, index, value = state.pop_many(3)
        state.push(Popped(StoreArray(array, index, value, _array_element(array, instruction))))


class ConstructorRecognizer(Recognizer):
    """
    ``NEW T; DUP; args; INVOKESPECIAL T.<init>`` becomes a Constructor:
    the <init> target must be a duplicated NewAddress whose other copy
    sits right below it.
    """

    def operands(self, state: DecompilerState) -> int:
        return (_arity(state.current()) or 0) + 1

    def appropriate(self, state: DecompilerState) -> bool:
        instruction = state.current()
        if len(instruction.operands) < 3 or instruction.operands[1] != INIT:
            return False
        count = _arity(instruction)
        if count is None or not state.has_values(count + 2):
            return False
        target = state.peek(count)
        return (
            isinstance(target, Duplicate)
            and isinstance(target.inner, NewAddress)
            and state.peek(count + 1) is target
        )

    def handle(self, state: DecompilerState) -> None:
        instruction = state.next()
        attributes = _member(instruction)
        arguments = _call_arguments(state, instruction)
        target = state.pop()
        state.pop()
        state.push(Constructor(target.inner.name, attributes, tuple(arguments)))


class SuperRecognizer(Recognizer):

    def operands(self, state: DecompilerState) -> int:
        return (_arity(state.current()) or 0) + 1

    def handle(self, state: DecompilerState) -> None:
        instruction = state.next()
        attributes = _member(instruction)
        arguments = _call_arguments(state, instruction)
        state.push(Super(state.pop(), attributes, tuple(arguments)))


class InvocationRecognizer(Recognizer):
    """INVOKEVIRTUAL, INVOKEINTERFACE and INVOKESTATIC."""

    def operands(self, state: DecompilerState) -> int:
        count = _arity(state.current()) or 0
        return count if state.current_opcode() == Op.INVOKESTATIC else count + 1

    def handle(self, state: DecompilerState) -> None:
        instruction = state.next()
        attributes = _member(instruction)
        arguments = tuple(_call_arguments(state, instruction))
        match instruction.opcode:
            case Op.INVOKEVIRTUAL:
                state.push(Invocation(state.pop(), attributes, arguments))
            case Op.INVOKEINTERFACE:
                state.push(InterfaceInvocation(state.pop(), attributes, arguments))
            case Op.INVOKESTATIC:
                state.push(StaticInvocation(attributes, arguments))


class DynamicInvocationRecognizer(Recognizer):
    """INVOKEDYNAMIC with operands (name, descriptor, *bootstrap)."""

    def operands(self, state: DecompilerState) -> int:
        return _arity(state.current(), position=1) or 0

    def handle(self, state: DecompilerState) -> None:
        instruction = state.next()
        if len(instruction.operands) < 2:
            raise DecompilationError(f"'{instruction}' should have name and descriptor operands")
        name, descriptor, *bootstrap = instruction.operands
        arguments = _call_arguments(state, instruction, position=1)
        state.push(
            DynamicInvocation(
                Attributes(name=name, descriptor=descriptor), tuple(bootstrap), tuple(arguments)
            )
        )


class PopRecognizer(Recognizer):
    """POP, and POP2 of a single long/double value."""

    def operands(self, state: DecompilerState) -> int:
        return 1

    def appropriate(self, state: DecompilerState) -> bool:
        if state.current_opcode() == Op.POP:
            return True
        return state.has_values(1) and d.is_wide(state.peek().type())

    def handle(self, state: DecompilerState) -> None:
        state.next()
        state.push(Popped(state.pop()))


JUMPS = UNARY_JUMPS | BINARY_JUMPS


class IfRecognizer(Recognizer):
    """Conditional jumps to a label further down the same method."""

    def operands(self, state: DecompilerState) -> int:
        return arity(state.current_opcode())

    def appropriate(self, state: DecompilerState) -> bool:
        instruction = state.current()
        if not instruction.operands or not isinstance(instruction.operands[0], LabelInstruction):
            return False
        return state.has_label_ahead(instruction.operands[0])

    def handle(self, state: DecompilerState) -> None:
        instruction = state.next()
        operands = state.pop_many(arity(instruction.opcode))
        label = instruction.operand(0)
        state.push(If(instruction.opcode, tuple(operands), Label(label.identifier)))


RETURNS = frozenset(RETURN_TYPES) | {Op.RETURN}


class ReturnRecognizer(Recognizer):

    def operands(self, state: DecompilerState) -> int:
        return 0 if state.current_opcode() == Op.RETURN else 1

    def handle(self, state: DecompilerState) -> None:
        instruction = state.next()
        if instruction.opcode == Op.RETURN:
            state.push(Return())
            return
        value = state.pop()
        desc = RETURN_TYPES[instruction.opcode]
        if instruction.opcode == Op.ARETURN and d.is_reference(value.type()):
            desc = value.type()
        state.push(Return(value, desc))


def default_agents() -> list[Agent]:
    """All recognizers, in priority order."""
    return [
        LabelAgent(),
        OpcodesAgent(ConstantRecognizer(), CONSTANTS),
        OpcodesAgent(LoadRecognizer(), LOADS),
        OpcodesAgent(StoreRecognizer(), STORES),
        OpcodesAgent(ArithmeticRecognizer(), BINARY_OPERATIONS),
        OpcodesAgent(CastRecognizer(), CONVERSION_TARGETS),
        OpcodesAgent(CheckCastRecognizer(), {Op.CHECKCAST}),
        OpcodesAgent(FieldRecognizer(), {Op.GETFIELD, Op.PUTFIELD, Op.GETSTATIC, Op.PUTSTATIC}),
        OpcodesAgent(NewRecognizer(), {Op.NEW}),
        OpcodesAgent(DupRecognizer(), {Op.DUP, Op.DUP2}),
        OpcodesAgent(NewArrayRecognizer(), {Op.NEWARRAY, Op.ANEWARRAY}),
        OpcodesAgent(ArrayLiteralRecognizer(), ARRAY_STORES),
        OpcodesAgent(ArrayStoreRecognizer(), ARRAY_STORES),
        OpcodesAgent(ConstructorRecognizer(), {Op.INVOKESPECIAL}),
        OpcodesAgent(SuperRecognizer(), {Op.INVOKESPECIAL}),
        OpcodesAgent(InvocationRecognizer(), {Op.INVOKEVIRTUAL}),
        OpcodesAgent(InvocationRecognizer(), {Op.INVOKESTATIC}),
        OpcodesAgent(InvocationRecognizer(), {Op.INVOKEINTERFACE}),
        OpcodesAgent(DynamicInvocationRecognizer(), {Op.INVOKEDYNAMIC}),
        OpcodesAgent(PopRecognizer(), {Op.POP, Op.POP2}),
        OpcodesAgent(IfRecognizer(), JUMPS),
        OpcodesAgent(ReturnRecognizer(), RETURNS),
    ]


def supported_opcodes(agents: Optional[Iterable[Agent]] = None) -> frozenset[int]:
    return AllAgents(default_agents() if agents is None else agents).supported()


def supported_opcode_names(agents: Optional[Iterable[Agent]] = None) -> frozenset[str]:
    """Lowercase mnemonics of every opcode some agent understands."""
    return frozenset(opcode_name(code) for code in supported_opcodes(agents))
