"""Errors raised while decompiling, parsing or lowering method bodies."""

from __future__ import annotations


class MalformedTreeError(ValueError):
    """A tree-IR node can't be turned into an AST node."""


class DecompilationError(ValueError):
    """The instruction stream doesn't fit the shape a recognizer expects."""


class IllegalAgentError(RuntimeError):
    """
    A recognizer was asked to handle a state it is not appropriate for.

    This never depends on the input: it means the recognizer registry is
    ordered wrongly or a recognizer doesn't advance the cursor.
    """

    def __init__(self, agent: object, state: object):
        super().__init__(
            f"Agent {type(agent).__name__} can't handle the current state: {state}"
        )
