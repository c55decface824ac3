from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from ..ast import AstNode, Opcode
from ..errors import DecompilationError
from ..opcodes import Element, LabelInstruction


@dataclass
class DecompilerState:
    """
    Everything the recognizers see and change during one run.

    The stack holds AST nodes instead of runtime values (top = last).
    Statements, labels and passthrough opcodes stay on it next to values.
    Operands only come off the top, so the entries keep instruction order
    and at the end the whole stack, bottom to top, becomes the method body.
    """
    instructions: deque[Element]
    stack: list[AstNode] = field(default_factory=list)
    consumed: int = 0
    duplicates: int = 0

    @classmethod
    def of(cls, instructions: Iterable[Element]) -> DecompilerState:
        return cls(deque(instructions))

    # --- instruction cursor ---------------------------------------------------

    def has_instructions(self) -> bool:
        return bool(self.instructions)

    def current(self) -> Optional[Element]:
        return self.instructions[0] if self.instructions else None

    def current_opcode(self) -> Optional[int]:
        current = self.current()
        return None if current is None else current.opcode

    def next(self) -> Element:
        """Consume the current instruction."""
        if not self.instructions:
            raise DecompilationError(f"No instructions left to consume: {self}")
        self.consumed += 1
        return self.instructions.popleft()

    def upcoming(self) -> Iterator[Element]:
        """Remaining instructions after the current one."""
        it = iter(self.instructions)
        next(it, None)
        return it

    def has_label_ahead(self, label: LabelInstruction) -> bool:
        return any(i == label for i in self.upcoming())

    def fresh_name(self) -> str:
        """Name for the next duplicated value of this run: d1, d2, ..."""
        self.duplicates += 1
        return f"d{self.duplicates}"

    # --- symbolic stack ----------------------------------------------------------

    def push(self, node: AstNode) -> None:
        self.stack.append(node)

    def has_values(self, count: int) -> bool:
        """True when the count topmost entries are all values."""
        if count > len(self.stack):
            return False
        return all(n.produces_value for n in self.stack[len(self.stack) - count:])

    def operands_ready(self, count: int) -> bool:
        """
        True when the next consumer can take count operands off the top.

        Operands are never taken from below a statement, a label or a
        passthrough opcode, since lowering would move them past it; the
        consumer is then kept as a passthrough too. Without any
        passthrough on the stack, too few values means the body itself is
        malformed, which raises DecompilationError.
        """
        if self.has_values(count):
            return True
        values = sum(1 for n in self.stack if n.produces_value)
        if values < count and not any(isinstance(n, Opcode) for n in self.stack):
            raise DecompilationError(
                f"Stack holds {values} value(s), at least {count} needed "
                f"for '{self.current()}': {self}"
            )
        return False

    def peek(self, depth: int = 0) -> AstNode:
        if not self.has_values(depth + 1):
            raise DecompilationError(
                f"No value at depth {depth} for '{self.current()}': {self}"
            )
        return self.stack[-1 - depth]

    def pop(self) -> AstNode:
        node = self.peek()
        self.stack.pop()
        return node

    def pop_many(self, count: int) -> list[AstNode]:
        """Pop count values and return them in push order (deepest first)."""
        popped = [self.pop() for _ in range(count)]
        popped.reverse()
        return popped

    def __str__(self) -> str:
        stack = ", ".join(repr(n) for n in self.stack) or "ϵ"
        return f"consumed={self.consumed} next={self.current()} stack=[{stack}]"
