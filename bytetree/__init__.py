"""
bytetree: decompile JVM method bodies into a tree IR and compile them back.

    from bytetree import decompile, compile_instructions

    root = decompile(instructions)
    assert compile_instructions(root.to_tree().children)
"""

from .attributes import Attributes, Kind
from .compiler import compile_instructions, compile_tree
from .decompiler import DecompilerMachine, decompile, supported_opcode_names
from .errors import DecompilationError, IllegalAgentError, MalformedTreeError
from .opcodes import Instruction, LabelInstruction, Op, TypeRef
from .parser import TreeParser, parse
from .tree import TreeNode

__version__ = "0.1.0"

__all__ = [
    "Attributes", "Kind",
    "compile_instructions", "compile_tree",
    "DecompilerMachine", "decompile", "supported_opcode_names",
    "DecompilationError", "IllegalAgentError", "MalformedTreeError",
    "Instruction", "LabelInstruction", "Op", "TypeRef",
    "TreeParser", "parse",
    "TreeNode",
]
