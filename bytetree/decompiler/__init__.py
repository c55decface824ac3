from .agents import (
    Agent,
    AllAgents,
    OpcodesAgent,
    Recognizer,
    UnimplementedAgent,
    default_agents,
    supported_opcode_names,
    supported_opcodes,
)
from .machine import DecompilerMachine, decompile
from .state import DecompilerState

__all__ = [
    "Agent", "AllAgents", "OpcodesAgent", "Recognizer", "UnimplementedAgent",
    "default_agents", "supported_opcode_names", "supported_opcodes",
    "DecompilerMachine", "decompile", "DecompilerState",
]
