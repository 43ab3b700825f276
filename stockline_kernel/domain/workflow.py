"""
Canonical workflow types (``stockline_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document state machines.  The sales order and
purchase order lifecycles both declare a ``Workflow`` and ask it whether an
action is allowed from the current state, so the transition tables live in
one readable place per module.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Descriptive only; the lifecycle service evaluates it.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    moves_stock: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    Guarantees: ``initial_state`` is a member of ``states``.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} "
                f"is not a declared state"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.from_state!r} -> "
                    f"{t.to_state!r} references an undeclared state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state!r} "
                    f"has an outgoing transition"
                )

    def can(self, from_state: str, action: str) -> bool:
        """True if ``action`` has at least one transition out of ``from_state``."""
        return any(
            t.from_state == from_state and t.action == action
            for t in self.transitions
        )

    def targets(self, from_state: str, action: str) -> tuple[str, ...]:
        return tuple(
            t.to_state
            for t in self.transitions
            if t.from_state == from_state and t.action == action
        )

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states
