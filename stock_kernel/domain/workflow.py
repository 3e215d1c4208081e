"""
Document state machines as frozen value objects.

The GRN lifecycle (draft -> pending_approval -> approved | rejected |
cancelled) is declared with these types in
``stock_modules.procurement.workflows``.  The service looks a transition up
by (current status, action) and treats a missing entry as an invalid
transition; nothing here touches the database.

A ``Workflow`` checks its own table on construction: the initial state and
every transition endpoint must be declared states, and each
(from_state, action) pair may appear once.
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
    """A valid state transition in a workflow.

    Contract: frozen.  ``appends_movements=True`` marks the transition that
    writes check-in events to the inventory ledger.  ``idempotent=True``
    means repeating the action from ``to_state`` is a no-op rather than an
    error.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    appends_movements: bool = False
    idempotent: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    ``terminal_states`` are states with no outgoing transitions.
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
                f"Workflow {self.name}: initial state {self.initial_state!r} not in states"
            )
        seen: set[tuple[str, str]] = set()
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} references unknown state"
                )
            key = (t.from_state, t.action)
            if key in seen:
                raise ValueError(
                    f"Workflow {self.name}: duplicate transition {t.action} from {t.from_state}"
                )
            seen.add(key)

    def find_transition(self, from_state: str, action: str) -> Transition | None:
        """Return the transition for (from_state, action), or None."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def actions_from(self, state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == state)
