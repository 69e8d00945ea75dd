"""
Lifecycle data types and structures.

Defines the value types shared by the context, the persistence layer and
the state machine driver:
- STATE_UNKNOWN / STATE_NEW: reserved state names
- StateType: Role of a state in the machine
- State: A named state
- Transition: An allowed, optionally guarded, move between two states
- StorageData: One persisted state write
- FailedTransitionEntry: Audit record of a failed transition attempt
- TransitionError / PersistenceError: Exceptions raised by the library
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from lifecycle.identifier import Identifier
from lifecycle.rules import Rule

# Returned by persistence adapters for an entity that was never written.
STATE_UNKNOWN = "unknown"
# Conventional name of an initial state, used when none is typed INITIAL.
STATE_NEW = "new"


class StateType(Enum):
    """Role of a state within its machine."""

    INITIAL = "initial"   # Entry point, at most one per machine
    NORMAL = "normal"     # Intermediate state
    FINAL = "final"       # No further transitions expected


@dataclass(frozen=True)
class State:
    """
    A named state.

    Args:
        name: Unique name of the state within its machine.
        type: Role of the state (default: NORMAL).
        description: Brief description of the state.

    Raises:
        ValueError: If the name is empty or uses the reserved unknown name.
    """

    name: str
    type: StateType = StateType.NORMAL
    description: str = ""

    def __post_init__(self):
        if not self.name:
            raise ValueError("State name must not be empty")
        if self.name == STATE_UNKNOWN:
            raise ValueError(f"'{STATE_UNKNOWN}' is reserved and cannot be used as a state name")

    def get_name(self) -> str:
        return self.name

    def is_initial(self) -> bool:
        return self.type == StateType.INITIAL

    def is_final(self) -> bool:
        return self.type == StateType.FINAL


@dataclass(frozen=True)
class Transition:
    """
    Defines a transition between two states.

    Args:
        state_from: The state this transition originates from.
        state_to: The state this transition leads to.
        rule: Optional guard. If provided, must apply for the transition
              to occur.
        action: Optional callable invoked with the entity after the guard
                passed and before the new state is written.
        description: Brief description of the transition.
    """

    state_from: State
    state_to: State
    rule: Optional[Rule] = None
    action: Optional[Callable[[Any], None]] = None
    description: str = ""

    @property
    def name(self) -> str:
        """Canonical name, eg: ``new_to_paid``."""
        return f"{self.state_from.name}_to_{self.state_to.name}"

    def get_name(self) -> str:
        return self.name

    def can_transition(self) -> bool:
        """
        Check if the guard currently allows this transition.

        Returns:
            True if no rule is set or the rule applies.

        Raises:
            Whatever the rule raises; the caller classifies the failure.
        """
        if self.rule is None:
            return True
        return self.rule.applies()

    def __str__(self) -> str:
        if self.rule is None:
            return self.name
        return f"{self.name} [{self.rule}]"


class TransitionError(Exception):
    """
    A transition could not be performed.

    Args:
        message: Human readable explanation.
        code: One of the class level error codes.
    """

    TRANSITION_NOT_FOUND = 1
    TRANSITION_NOT_ALLOWED = 2
    STATE_NOT_FOUND = 3
    RULE_APPLY_FAILURE = 4
    ACTION_FAILURE = 5

    def __init__(self, message: str, code: int):
        super().__init__(message)
        self.code = code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": str(self)}


class PersistenceError(Exception):
    """The persistence adapter failed while recording an audit entry."""


@dataclass
class StorageData:
    """One state write, as kept in an adapter's history."""

    identifier: Identifier
    state: str
    message: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        """Serialise to a plain dictionary."""
        return {
            "machine": self.identifier.machine,
            "entity_id": self.identifier.entity_id,
            "state": self.state,
            "message": self.message,
            "timestamp": self.timestamp,
        }


@dataclass
class FailedTransitionEntry:
    """
    Records a failed transition attempt.

    Never mutated after creation. Retention is up to the adapter.
    """

    identifier: Identifier
    transition: Transition
    error: BaseException
    timestamp: float = field(default_factory=time.time)

    @property
    def code(self) -> Optional[int]:
        """The TransitionError code, if the error carries one."""
        return getattr(self.error, "code", None)

    def to_dict(self) -> dict:
        """Serialise to a plain dictionary."""
        return {
            "machine": self.identifier.machine,
            "entity_id": self.identifier.entity_id,
            "transition": self.transition.name,
            "code": self.code,
            "message": str(self.error),
            "timestamp": self.timestamp,
        }
