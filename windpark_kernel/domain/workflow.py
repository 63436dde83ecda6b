"""
Canonical workflow types (``windpark_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for workflow state machines.  Used by the settlement
and cost-allocation modules so that Transition and Workflow are defined
once.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    Contract: frozen.  ``action`` names the service operation that performs
    the transition.  Several transitions may share one action when the
    operation is allowed from more than one state.
    """
    from_state: str
    to_state: str
    action: str


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    Guarantees: ``initial_state`` is a member of ``states``.
    ``terminal_states`` are states with no outgoing transitions (optional).
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
                f"Workflow {self.name}: initial state {self.initial_state} not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} "
                    f"{t.from_state}->{t.to_state} references unknown state"
                )

    def source_states(self, action: str) -> tuple[str, ...]:
        """States from which ``action`` may fire, in declaration order."""
        return tuple(t.from_state for t in self.transitions if t.action == action)

    def find_transition(self, current_state: str, action: str) -> Transition | None:
        """The transition fired by ``action`` from ``current_state``, if any."""
        for t in self.transitions:
            if t.from_state == current_state and t.action == action:
                return t
        return None
