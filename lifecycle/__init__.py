"""
lifecycle
~~~~~~~~~

State, rules and context for driving domain entities through their lifecycle.

Quick start:
    from lifecycle import Context, Identifier, StateMachine, State, StateType
    from lifecycle import Rule, TrueRule, FalseRule, PredicateRule
"""

from lifecycle.builder import EntityBuilder
from lifecycle.context import Context
from lifecycle.identifier import EntityId, Identifier, MachineName
from lifecycle.machine import StateMachine
from lifecycle.persistence import Adapter, Memory
from lifecycle.rules import (
    AndRule,
    FalseRule,
    NotRule,
    OrRule,
    PredicateRule,
    Rule,
    TrueRule,
    XorRule,
)
from lifecycle.types import (
    STATE_NEW,
    STATE_UNKNOWN,
    FailedTransitionEntry,
    PersistenceError,
    State,
    StateType,
    StorageData,
    Transition,
    TransitionError,
)
from lifecycle.helpers import (
    build_transitions,
    create_context,
    log_rule_evaluation,
)

__all__ = [
    "Identifier",
    "MachineName",
    "EntityId",
    "Context",
    "EntityBuilder",
    "Adapter",
    "Memory",
    "StateMachine",
    "Rule",
    "OrRule",
    "AndRule",
    "XorRule",
    "NotRule",
    "TrueRule",
    "FalseRule",
    "PredicateRule",
    "STATE_UNKNOWN",
    "STATE_NEW",
    "State",
    "StateType",
    "Transition",
    "TransitionError",
    "PersistenceError",
    "StorageData",
    "FailedTransitionEntry",
    "build_transitions",
    "create_context",
    "log_rule_evaluation",
]
