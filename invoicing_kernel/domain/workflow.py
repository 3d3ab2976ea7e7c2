"""
Canonical workflow types (``invoicing_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document status state machines.  Used by the
invoice and quote modules so that Guard, Transition, and Workflow are
defined once.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``store/``, ``services/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* ``terminal_states`` have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the owning service does.
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
                f"{self.name}: initial state {self.initial_state!r} not in states"
            )
        for transition in self.transitions:
            if transition.from_state not in self.states or transition.to_state not in self.states:
                raise ValueError(
                    f"{self.name}: transition {transition.action!r} references unknown state"
                )
            if transition.from_state in self.terminal_states:
                raise ValueError(
                    f"{self.name}: terminal state {transition.from_state!r} has outgoing transition"
                )

    def find_transition(self, from_state: str, to_state: str) -> Transition | None:
        """Return the transition between two states, or None when not allowed."""
        for transition in self.transitions:
            if transition.from_state == from_state and transition.to_state == to_state:
                return transition
        return None

    def can_transition(self, from_state: str, to_state: str) -> bool:
        """True when ``from_state == to_state`` or a transition exists."""
        if from_state == to_state:
            return True
        return self.find_transition(from_state, to_state) is not None

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states
