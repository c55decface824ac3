"""
Test suite for the decompiler engine and its recognizers.

Instruction sequences are decompiled into a Root and compared with the
expected AST; recognizable sequences compile back to the same
instructions.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from bytetree import descriptors as d
from bytetree.ast import (
    Addition,
    ArrayConstructor,
    Cast,
    ClassField,
    ClassName,
    Constructor,
    Duplicate,
    DynamicInvocation,
    FieldAssignment,
    If,
    InstanceField,
    Invocation,
    Label,
    Literal,
    LocalVariable,
    NewAddress,
    Opcode,
    Popped,
    Reference,
    Return,
    Root,
    StoreArray,
    Super,
    This,
    VariableAssignment,
)
from bytetree.attributes import Attributes
from bytetree.compiler import compile_instructions
from bytetree.decompiler import (
    DecompilerMachine,
    DecompilerState,
    OpcodesAgent,
    Recognizer,
    UnimplementedAgent,
    decompile,
    supported_opcode_names,
    supported_opcodes,
)
from bytetree.decompiler.agents import LOADS, LoadRecognizer, StoreRecognizer
from bytetree.errors import DecompilationError, IllegalAgentError
from bytetree.opcodes import Instruction, LabelInstruction, Op, TypeRef

ins = Instruction.of


def nodes(*instructions):
    return decompile(instructions).nodes


def recompiled(instructions):
    """Decompile, serialize and compile back."""
    return compile_instructions(decompile(instructions).to_tree().children)


class TestScenarios:
    """Typical method bodies."""

    def test_object_construction(self):
        """Test new A().bar() becomes one invocation on a constructor."""
        result = nodes(
            ins(Op.NEW, "A"),
            ins(Op.DUP),
            ins(Op.INVOKESPECIAL, "A", "<init>", "()V"),
            ins(Op.INVOKEVIRTUAL, "A", "bar", "()V"),
        )
        assert result == (
            Invocation(Constructor.of("A"), Attributes(owner="A", name="bar", descriptor="()V")),
        )

    def test_arithmetic_with_fields(self):
        """Test this.a + this.b."""
        result = nodes(
            ins(Op.ALOAD, 0),
            ins(Op.GETFIELD, "App", "a", "I"),
            ins(Op.ALOAD_0),
            ins(Op.GETFIELD, "App", "b", "I"),
            ins(Op.IADD),
        )
        assert result == (
            Addition(
                InstanceField(This(), Attributes(owner="App", name="a", descriptor="I")),
                InstanceField(This(), Attributes(owner="App", name="b", descriptor="I")),
            ),
        )

    def test_array_literal(self):
        """Test new Object[] {this, ...} element store."""
        result = nodes(
            ins(Op.ICONST_2),
            ins(Op.ANEWARRAY, "java/lang/Object"),
            ins(Op.DUP),
            ins(Op.ICONST_0),
            ins(Op.ALOAD, 0),
            ins(Op.AASTORE),
        )
        assert result == (
            StoreArray(ArrayConstructor(Literal(2), "java/lang/Object"), Literal(0), This()),
        )

    def test_long_variables(self):
        """Test long loads and stores keep their type."""
        result = nodes(ins(Op.LLOAD, 2), ins(Op.LSTORE, 4))
        assert result == (VariableAssignment(LocalVariable(4, "J"), LocalVariable(2, "J")),)
        assert recompiled([ins(Op.LLOAD, 2), ins(Op.LSTORE, 4)]) == [ins(Op.LLOAD, 2), ins(Op.LSTORE, 4)]

    def test_print(self):
        """Test System.out.println("hi")."""
        result = nodes(
            ins(Op.GETSTATIC, "java/lang/System", "out", "Ljava/io/PrintStream;"),
            ins(Op.LDC, "hi"),
            ins(Op.INVOKEVIRTUAL, "java/io/PrintStream", "println", "(Ljava/lang/String;)V"),
            ins(Op.RETURN),
        )
        out = ClassField(Attributes(owner="java/lang/System", name="out", descriptor="Ljava/io/PrintStream;"))
        println = Attributes(owner="java/io/PrintStream", name="println", descriptor="(Ljava/lang/String;)V")
        assert result == (Invocation(out, println, (Literal("hi"),)), Return())


class TestRecognizers:
    """Individual instruction families."""

    @pytest.mark.parametrize("instruction,expected", [
        (ins(Op.ACONST_NULL), Literal(None)),
        (ins(Op.ICONST_M1), Literal(-1)),
        (ins(Op.LCONST_1), Literal(1, "J")),
        (ins(Op.FCONST_2), Literal(2.0, "F")),
        (ins(Op.DCONST_0), Literal(0.0, "D")),
        (ins(Op.BIPUSH, -7), Literal(-7)),
        (ins(Op.SIPUSH, 300), Literal(300)),
        (ins(Op.LDC, 100000), Literal(100000, "I")),
        (ins(Op.LDC, 1.5), Literal(1.5, "F")),
        (ins(Op.LDC_W, "s"), Literal("s")),
        (ins(Op.LDC2_W, 5), Literal(5, "J")),
        (ins(Op.LDC2_W, 0.25), Literal(0.25, "D")),
        (ins(Op.LDC, TypeRef("Ljava/lang/String;")), ClassName("java/lang/String")),
    ])
    def test_constants(self, instruction, expected):
        """Test each constant instruction becomes a literal."""
        assert nodes(instruction) == (expected,)

    @pytest.mark.parametrize("instruction,expected", [
        (ins(Op.ALOAD_0), This()),
        (ins(Op.ALOAD_2), LocalVariable(2, d.OBJECT)),
        (ins(Op.ILOAD_3), LocalVariable(3, "I")),
        (ins(Op.DLOAD_1), LocalVariable(1, "D")),
        (ins(Op.FLOAD, 7), LocalVariable(7, "F")),
    ])
    def test_loads(self, instruction, expected):
        """Test short and long load forms."""
        assert nodes(instruction) == (expected,)

    def test_reference_store_type(self):
        """Test a reference store takes the type of the stored value."""
        result = nodes(ins(Op.LDC, "x"), ins(Op.ASTORE_1))
        assert result == (VariableAssignment(LocalVariable(1, d.STRING), Literal("x")),)

    def test_conversion(self):
        """Test (long) i returned."""
        result = nodes(ins(Op.ILOAD_1), ins(Op.I2L), ins(Op.LRETURN))
        assert result == (Return(Cast(LocalVariable(1, "I"), "J"), "J"),)

    def test_static_field_write(self):
        """Test PUTSTATIC."""
        result = nodes(ins(Op.ICONST_1), ins(Op.PUTSTATIC, "App", "count", "I"))
        count = ClassField(Attributes(owner="App", name="count", descriptor="I"))
        assert result == (FieldAssignment(count, Literal(1)),)

    def test_super_constructor(self):
        """Test <init> on this is a Super call, not a construction."""
        result = nodes(ins(Op.ALOAD_0), ins(Op.INVOKESPECIAL, "java/lang/Object", "<init>", "()V"), ins(Op.RETURN))
        init = Attributes(owner="java/lang/Object", name="<init>", descriptor="()V")
        assert result == (Super(This(), init), Return())

    def test_init_without_dup(self):
        """Test <init> on a lone NewAddress is a Super call."""
        result = nodes(ins(Op.NEW, "A"), ins(Op.INVOKESPECIAL, "A", "<init>", "()V"))
        assert result == (Super(NewAddress("A"), Attributes(owner="A", name="<init>", descriptor="()V")),)

    def test_constructor_arguments(self):
        """Test new B(1, "a") stored in a local."""
        result = nodes(
            ins(Op.NEW, "B"),
            ins(Op.DUP),
            ins(Op.ICONST_1),
            ins(Op.LDC, "a"),
            ins(Op.INVOKESPECIAL, "B", "<init>", "(ILjava/lang/String;)V"),
            ins(Op.ASTORE_1),
        )
        created = Constructor.of("B", "(ILjava/lang/String;)V", Literal(1), Literal("a"))
        assert result == (VariableAssignment(LocalVariable(1, "LB;"), created),)

    def test_plain_array_store(self):
        """Test a store into an array held in a local is discarded afterwards."""
        result = nodes(ins(Op.ALOAD_1), ins(Op.ICONST_0), ins(Op.ICONST_5), ins(Op.IASTORE))
        assert result == (Popped(StoreArray(LocalVariable(1, d.OBJECT), Literal(0), Literal(5), "I")),)

    def test_two_element_array_literal(self):
        """Test element stores chain onto the same array."""
        instructions = [
            ins(Op.ICONST_2),
            ins(Op.NEWARRAY, 10),
            ins(Op.DUP),
            ins(Op.ICONST_0),
            ins(Op.ICONST_3),
            ins(Op.IASTORE),
            ins(Op.DUP),
            ins(Op.ICONST_1),
            ins(Op.ICONST_4),
            ins(Op.IASTORE),
            ins(Op.ASTORE_1),
        ]
        array = ArrayConstructor(Literal(2), "I")
        filled = StoreArray(StoreArray(array, Literal(0), Literal(3)), Literal(1), Literal(4))
        assert nodes(*instructions) == (VariableAssignment(LocalVariable(1, "[I"), filled),)
        assert recompiled(instructions) == [
            ins(Op.ICONST_2), ins(Op.NEWARRAY, 10), ins(Op.DUP), ins(Op.ICONST_0), ins(Op.ICONST_3),
            ins(Op.IASTORE), ins(Op.DUP), ins(Op.ICONST_1), ins(Op.ICONST_4), ins(Op.IASTORE),
            ins(Op.ASTORE, 1),
        ]

    def test_field_increment(self):
        """Test o.x += 1 shares the duplicated receiver by reference."""
        instructions = [
            ins(Op.ALOAD, 1),
            ins(Op.DUP),
            ins(Op.GETFIELD, "App", "x", "I"),
            ins(Op.ICONST_1),
            ins(Op.IADD),
            ins(Op.PUTFIELD, "App", "x", "I"),
        ]
        field = Attributes(owner="App", name="x", descriptor="I")
        receiver = Duplicate(LocalVariable(1, d.OBJECT), "d1")
        expected = FieldAssignment(
            InstanceField(receiver, field),
            Addition(InstanceField(Reference(receiver), field), Literal(1)),
        )
        result = nodes(*instructions)
        assert result == (expected,)
        assert isinstance(result[0].value.left.target, Reference)
        assert recompiled(instructions) == instructions

    def test_dynamic_invocation(self):
        """Test INVOKEDYNAMIC keeps its bootstrap operands."""
        desc = "(Ljava/lang/Object;)Ljava/util/function/Supplier;"
        result = nodes(ins(Op.ALOAD_1), ins(Op.INVOKEDYNAMIC, "get", desc, "bsm", ("x",)))
        assert result == (
            DynamicInvocation(
                Attributes(name="get", descriptor=desc), ("bsm", ("x",)), (LocalVariable(1, d.OBJECT),)
            ),
        )

    def test_pop_wide(self):
        """Test POP2 of a long is a discarded value."""
        assert nodes(ins(Op.LCONST_0), ins(Op.POP2)) == (Popped(Literal(0, "J")),)

    def test_forward_condition(self):
        """Test a jump to a later label becomes an If."""
        target = LabelInstruction("L1")
        result = nodes(
            ins(Op.ILOAD_1),
            ins(Op.IFEQ, target),
            ins(Op.ICONST_1),
            ins(Op.IRETURN),
            target,
            ins(Op.ICONST_0),
            ins(Op.IRETURN),
        )
        assert result == (
            If(Op.IFEQ, (LocalVariable(1, "I"),), Label("L1")),
            Return(Literal(1), "I"),
            Label("L1"),
            Return(Literal(0), "I"),
        )

    def test_statements_keep_order(self):
        """Test statements stay in execution order next to pending values."""
        result = nodes(ins(Op.ICONST_1), ins(Op.ISTORE_1), ins(Op.ICONST_2), ins(Op.ISTORE_2))
        assert result == (
            VariableAssignment(LocalVariable(1, "I"), Literal(1)),
            VariableAssignment(LocalVariable(2, "I"), Literal(2)),
        )


class TestFallback:
    """Unrecognized instructions pass through."""

    def test_unsupported_opcode(self):
        """Test an unknown opcode becomes one passthrough node."""
        result = nodes(ins(Op.NOP))
        assert result == (Opcode.of(Op.NOP),)
        assert result[0].instruction() == ins(Op.NOP)

    def test_backward_jump(self):
        """Test a jump to an earlier label is left as it is."""
        target = LabelInstruction("L0")
        result = nodes(target, ins(Op.ILOAD_1), ins(Op.IFNE, target))
        assert result == (Label("L0"), LocalVariable(1, "I"), Opcode.of(Op.IFNE, target))

    def test_dup2_of_two_values(self):
        """Test DUP2 over two int values is not interpreted."""
        result = nodes(ins(Op.ICONST_1), ins(Op.ICONST_2), ins(Op.DUP2))
        assert result == (Literal(1), Literal(2), Opcode.of(Op.DUP2))

    def test_mixed_sequence_terminates(self):
        """Test recognized and unrecognized instructions mixed together."""
        instructions = [ins(Op.NOP), ins(Op.ICONST_1), ins(Op.MONITORENTER), ins(Op.ATHROW), ins(Op.RETURN)]
        result = decompile(instructions)
        assert isinstance(result, Root)
        assert len(result.nodes) == 5

    def test_counting(self):
        """Test the sequence suffix on passthrough names can be disabled."""
        counted = DecompilerMachine().decompile([ins(Op.NOP)]).nodes[0]
        plain = DecompilerMachine(counting=False).decompile([ins(Op.NOP)]).nodes[0]
        assert counted.to_tree().name.startswith("nop-")
        assert plain.to_tree().name == "nop"

    def test_empty(self):
        """Test an empty body gives an empty root."""
        assert decompile([]) == Root(())


class TestOperandOrder:
    """Operands never come from below a passthrough, statement or label."""

    def test_value_from_passthrough(self):
        """Test a store after an unrecognized division keeps its place."""
        instructions = [ins(Op.ILOAD, 1), ins(Op.ILOAD, 2), ins(Op.IDIV), ins(Op.ISTORE, 3)]
        assert nodes(*instructions) == (
            LocalVariable(1, "I"),
            LocalVariable(2, "I"),
            Opcode.of(Op.IDIV),
            Opcode.of(Op.ISTORE, 3),
        )
        assert recompiled(instructions) == instructions

    def test_array_length(self):
        """Test ARRAYLENGTH followed by a store."""
        instructions = [ins(Op.ALOAD, 1), ins(Op.ARRAYLENGTH), ins(Op.ISTORE, 2)]
        assert recompiled(instructions) == instructions

    def test_dup2_of_narrow_values(self):
        """Test a body duplicating two ints is recompiled unchanged."""
        instructions = [
            ins(Op.ILOAD, 1),
            ins(Op.ILOAD, 2),
            ins(Op.DUP2),
            ins(Op.IADD),
            ins(Op.ISTORE, 3),
            ins(Op.IADD),
            ins(Op.ISTORE, 4),
            ins(Op.RETURN),
        ]
        assert nodes(*instructions)[-1] == Return()
        assert recompiled(instructions) == instructions

    def test_value_below_statement(self):
        """Test a load isn't moved past a store to the same variable."""
        instructions = [ins(Op.ILOAD, 1), ins(Op.ICONST_0), ins(Op.ISTORE, 1), ins(Op.ISTORE, 2)]
        assert nodes(*instructions) == (
            LocalVariable(1, "I"),
            VariableAssignment(LocalVariable(1, "I"), Literal(0)),
            Opcode.of(Op.ISTORE, 2),
        )
        assert recompiled(instructions) == instructions

    def test_chained_assignment(self):
        """Test x = y = 0 keeps the duplicated value in place."""
        instructions = [ins(Op.ICONST_0), ins(Op.DUP), ins(Op.ISTORE, 1), ins(Op.ISTORE, 2)]
        result = nodes(*instructions)
        assert isinstance(result[0], Duplicate)
        assert result[1] == VariableAssignment(LocalVariable(1, "I"), Reference(result[0]))
        assert recompiled(instructions) == instructions

    def test_values_across_labels(self):
        """Test a conditional expression joined at a label."""
        else_, end = LabelInstruction("L1"), LabelInstruction("L2")
        instructions = [
            ins(Op.ILOAD, 1),
            ins(Op.IFEQ, else_),
            ins(Op.ICONST_1),
            ins(Op.GOTO, end),
            else_,
            ins(Op.ICONST_2),
            end,
            ins(Op.ISTORE, 3),
            ins(Op.RETURN),
        ]
        assert Opcode.of(Op.ISTORE, 3) in nodes(*instructions)
        assert recompiled(instructions) == instructions

    def test_class_constant_by_internal_name(self):
        """Test LDC of a class given by its internal name."""
        instructions = [ins(Op.LDC, TypeRef("java/lang/String")), ins(Op.ARETURN)]
        assert recompiled(instructions) == instructions
        assert recompiled(instructions)[0].operand(0) == TypeRef("Ljava/lang/String;")


class TestEngineContract:
    """Errors and the agent protocol."""

    def test_stack_underflow(self):
        """Test a recognized opcode without enough operands."""
        with pytest.raises(DecompilationError):
            decompile([ins(Op.IADD)])

    def test_statements_are_not_operands(self):
        """Test a statement on the stack is never popped as a value."""
        with pytest.raises(DecompilationError):
            decompile([ins(Op.ICONST_1), ins(Op.ISTORE_1), ins(Op.POP)])

    def test_inappropriate_agent(self):
        """Test handling a state an agent isn't appropriate for."""
        agent = OpcodesAgent(LoadRecognizer(), LOADS)
        with pytest.raises(IllegalAgentError):
            agent.handle(DecompilerState.of([ins(Op.NOP)]))
        with pytest.raises(IllegalAgentError):
            UnimplementedAgent().handle(DecompilerState.of([]))

    def test_agent_must_consume(self):
        """Test a recognizer that doesn't advance is an engine defect."""

        class Stuck(Recognizer):
            def handle(self, state):
                state.push(Literal(0))

        machine = DecompilerMachine(agents=[OpcodesAgent(Stuck(), {Op.NOP})])
        with pytest.raises(IllegalAgentError):
            machine.decompile([ins(Op.NOP)])

    def test_supported_union(self):
        """Test supported opcodes merge as a set union."""
        agents = [
            OpcodesAgent(LoadRecognizer(), {Op.ILOAD}),
            OpcodesAgent(StoreRecognizer(), {Op.ISTORE, Op.ILOAD}),
        ]
        assert supported_opcodes(agents) == {Op.ILOAD, Op.ISTORE}

    def test_supported_names(self):
        """Test the default registry's opcode names."""
        names = supported_opcode_names()
        assert {"iadd", "invokevirtual", "aload_0", "aastore", "ifeq", "ireturn"} <= names
        assert "nop" not in names
        assert "monitorenter" not in names

    def test_state_does_not_leak(self):
        """Test reference names restart for every run of one machine."""
        machine = DecompilerMachine()
        body = [ins(Op.ALOAD_1), ins(Op.DUP), ins(Op.POP), ins(Op.POP)]
        first = machine.decompile(body)
        second = machine.decompile(body)
        assert first == second
        assert first.nodes[0].name == "d1"
