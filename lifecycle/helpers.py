"""
Helper utilities for building state machines.

Provides convenience functions and decorators that reduce boilerplate
when creating contexts, defining transitions and writing rules.
"""

import logging
from functools import wraps
from typing import Dict, Iterable, List, Optional, Tuple, Union

from lifecycle.builder import EntityBuilder
from lifecycle.context import Context
from lifecycle.identifier import Identifier
from lifecycle.persistence import Adapter
from lifecycle.types import State, Transition

logger = logging.getLogger(__name__)


def create_context(
    machine: str,
    entity_id: Union[str, int],
    entity_builder: Optional[EntityBuilder] = None,
    persistence_adapter: Optional[Adapter] = None,
) -> Context:
    """
    Create a Context for one entity.

    Args:
        machine: Machine name, eg: 'order'.
        entity_id: Key of the entity.
        entity_builder: Optional builder (default: identity builder).
        persistence_adapter: Optional adapter (default: in-memory).

    Returns:
        A configured Context.

    Raises:
        ValueError: If machine or entity_id is empty.

    Example:
        context = create_context("order", 42, persistence_adapter=shared_memory)
    """
    return Context(
        Identifier(machine, entity_id),
        entity_builder=entity_builder,
        persistence_adapter=persistence_adapter,
    )


def build_transitions(
    states: Iterable[State],
    configs: Dict[Tuple[str, str], dict],
) -> List[Transition]:
    """
    Build a transition list from a compact configuration.

    Each transition maps to a plain dict instead of a verbose Transition()
    call, keyed by ``(from_name, to_name)``.

    Args:
        states: The states of the machine, looked up by name.
        configs: Mapping of (from, to) → config dict. Supported keys:
            - ``rule`` (Rule, optional): Guard.
            - ``action`` (callable, optional): Invoked with the entity.
            - ``description`` (str, optional): Brief description.

    Returns:
        List of Transition instances, in configuration order.

    Raises:
        ValueError: If a state name is not among ``states``.

    Example:
        transitions = build_transitions(states, {
            ("new", "paid"): {"rule": PredicateRule(is_paid, order)},
            ("paid", "shipped"): {"action": ship},
        })
    """
    by_name = {state.name: state for state in states}
    result = []
    for (from_name, to_name), config in configs.items():
        for name in (from_name, to_name):
            if name not in by_name:
                raise ValueError(f"Transition {from_name} → {to_name} references unknown state '{name}'")
        result.append(
            Transition(
                state_from=by_name[from_name],
                state_to=by_name[to_name],
                rule=config.get("rule", None),
                action=config.get("action", None),
                description=config.get("description", ""),
            )
        )
    return result


def log_rule_evaluation(func):
    """
    Decorator that adds automatic verdict logging to a rule's ``_applies``.

    Logs the rule and its verdict at DEBUG level without requiring manual
    logger calls inside every rule.

    Usage:
        class IsPaid(Rule):
            @log_rule_evaluation
            def _applies(self):
                return self._order.paid

    Note:
        Optional — use selectively where the automatic logging is sufficient.
    """

    @wraps(func)
    def wrapper(self) -> bool:
        logger.debug(f"{self}: Evaluating...")
        result = func(self)
        logger.debug(f"{self}: {'applies' if result else 'does not apply'}")
        return result

    return wrapper
