from __future__ import annotations

from typing import Iterable, Optional

from loguru import logger

from ..ast import AstNode, Duplicate, Reference, Root, transform
from ..errors import IllegalAgentError
from ..opcodes import Element
from .agents import AllAgents, Agent, UnimplementedAgent, default_agents
from .state import DecompilerState


class DecompilerMachine:
    """
    Rebuilds the AST of a method body from its instructions.

    Each step hands the state to the first appropriate agent, or to the
    fallback agent that keeps the instruction as it is; every step
    consumes at least one instruction, so a run always ends.

    Args:
        counting: passthrough opcodes get a sequence suffix on their names
        agents: recognizers in priority order (default_agents() if omitted)
    """

    def __init__(self, counting: bool = True, agents: Optional[Iterable[Agent]] = None):
        self.agents = AllAgents(default_agents() if agents is None else agents)
        self.fallback = UnimplementedAgent(counting)

    def decompile(self, instructions: Iterable[Element]) -> Root:
        state = DecompilerState.of(instructions)
        logger.debug(f"Decompiling {len(state.instructions)} instruction(s)")
        while state.has_instructions():
            before = len(state.instructions)
            if self.agents.appropriate(state):
                self.agents.handle(state)
            else:
                self.fallback.handle(state)
            if len(state.instructions) >= before:
                raise IllegalAgentError(self.agents.first(state) or self.fallback, state)
            logger.debug(f"Step {state.consumed}: {state}")
        return _link_duplicates(Root(tuple(state.stack)))


def _link_duplicates(root: Root) -> Root:
    """
    Keep the first use of each duplicated value, in evaluation order, and
    turn the later ones into references to it.
    """
    linked: dict[int, Duplicate] = {}

    def visit(node: AstNode) -> AstNode:
        if not isinstance(node, Duplicate):
            return transform(node, visit)
        if id(node) in linked:
            return Reference(linked[id(node)])
        result = transform(node, visit)
        linked[id(node)] = result
        return result

    return transform(root, visit)


def decompile(instructions: Iterable[Element], counting: bool = True) -> Root:
    return DecompilerMachine(counting).decompile(instructions)
