"""
StateMachine — drives one entity through its states via guarded transitions.

Features:
- Declarative state and transition definitions via abstract methods
- Current state resolved through the Context (persisted, else initial)
- Transitions guarded by composable Rules
- Optional per-transition action invoked with the entity
- Failed transitions recorded through the Context for auditing
- Safety cap on the number of transitions per ``run()``

Usage:
    from lifecycle import Context, Identifier, State, StateType, StateMachine
    from lifecycle.helpers import build_transitions
    from lifecycle.rules import PredicateRule

    NEW = State("new", StateType.INITIAL)
    PAID = State("paid")
    DONE = State("done", StateType.FINAL)

    class OrderMachine(StateMachine):
        def define_states(self): return [NEW, PAID, DONE]
        def define_transitions(self):
            return build_transitions(self.define_states(), {
                ("new", "paid"): {"rule": PredicateRule(is_paid, order)},
                ("paid", "done"): {},
            })

    machine = OrderMachine(Context(Identifier("order", 42)))
    machine.transition("new_to_paid")
    machine.run()
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from lifecycle.context import Context
from lifecycle.types import (
    STATE_NEW,
    State,
    Transition,
    TransitionError,
)

logger = logging.getLogger(__name__)


class StateMachine(ABC):
    """
    Base class for all state machines.

    Subclass this and implement the two abstract methods.

    Attributes:
        MAX_TRANSITIONS_PER_RUN: Safety cap on transitions per ``run()`` call
                                 to prevent infinite loops (default: 100).
    """

    MAX_TRANSITIONS_PER_RUN: int = 100

    def __init__(self, context: Context):
        self._context = context
        self._states: Dict[str, State] = {}
        self._transitions: Dict[str, Transition] = {}
        self._transition_map: Dict[str, List[Transition]] = {}
        self._initialized: bool = False

        context.set_state_machine(self)

    # ------------------------------------------------------------------
    # Abstract interface — subclasses must implement these
    # ------------------------------------------------------------------

    @abstractmethod
    def define_states(self) -> List[State]:
        """Return every state of the machine."""

    @abstractmethod
    def define_transitions(self) -> List[Transition]:
        """Return the list of allowed Transitions."""

    # ------------------------------------------------------------------
    # Initialisation
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """
        Initialise the state machine.

        Called automatically on first use. Builds the lookup maps and
        validates the definitions.

        Raises:
            ValueError: On invalid configuration.
        """
        if self._initialized:
            return

        states = self.define_states()
        transitions = self.define_transitions()

        self._states = {}
        for state in states:
            if state.name in self._states:
                raise ValueError(f"Duplicate state '{state.name}'")
            self._states[state.name] = state

        self._transitions = {}
        self._transition_map = {}
        for t in transitions:
            if t.name in self._transitions:
                raise ValueError(f"Duplicate transition '{t.name}'")
            self._transitions[t.name] = t
            self._transition_map.setdefault(t.state_from.name, []).append(t)

        self._validate()
        self._initialized = True

        logger.info(
            f"{self.__class__.__name__} initialised for {self._context.get_id()} — "
            f"{len(self._states)} states, {len(self._transitions)} transitions"
        )

    def _validate(self) -> None:
        """Validate configuration. Raises ValueError on problems."""
        initial = [s for s in self._states.values() if s.is_initial()]
        if len(initial) > 1:
            names = ", ".join(s.name for s in initial)
            raise ValueError(f"More than one initial state: {names}")

        for t in self._transitions.values():
            if self._states.get(t.state_from.name) != t.state_from:
                raise ValueError(f"Transition state_from {t.state_from.name} not in states")
            if self._states.get(t.state_to.name) != t.state_to:
                raise ValueError(f"Transition state_to {t.state_to.name} not in states")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_context(self) -> Context:
        return self._context

    def get_states(self) -> List[State]:
        self.initialize()
        return list(self._states.values())

    def get_transitions(self) -> List[Transition]:
        self.initialize()
        return list(self._transitions.values())

    def get_state(self, name: str) -> Optional[State]:
        self.initialize()
        return self._states.get(name)

    def get_initial_state(self, allow_new: bool = False) -> Optional[State]:
        """
        Return the state the machine starts in.

        Args:
            allow_new: Fall back to a state named ``new`` when no state is
                       typed INITIAL.

        Returns:
            The initial state, or None.
        """
        self.initialize()
        for state in self._states.values():
            if state.is_initial():
                return state
        if allow_new:
            return self._states.get(STATE_NEW)
        return None

    def get_current_state(self) -> State:
        """
        Return the current state of the entity.

        Raises:
            TransitionError: If the resolved state name is not defined on
                             this machine (STATE_NOT_FOUND).
        """
        self.initialize()
        name = self._context.get_state()
        state = self._states.get(name)
        if state is None:
            raise TransitionError(
                f"State '{name}' of {self._context.get_id()} is not defined on "
                f"{self.__class__.__name__}",
                TransitionError.STATE_NOT_FOUND,
            )
        return state

    def get_transition(self, name: str) -> Transition:
        """
        Return a transition by name.

        Raises:
            TransitionError: If no such transition exists (TRANSITION_NOT_FOUND).
        """
        self.initialize()
        transition = self._transitions.get(name)
        if transition is None:
            raise TransitionError(
                f"No transition '{name}' on {self.__class__.__name__}",
                TransitionError.TRANSITION_NOT_FOUND,
            )
        return transition

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def can_transition(self, name: str) -> bool:
        """
        Check whether a transition may fire right now.

        True if the transition exists, starts at the current state and its
        rule applies. Rule exceptions propagate.
        """
        self.initialize()
        transition = self._transitions.get(name)
        if transition is None:
            return False
        if transition.state_from != self.get_current_state():
            return False
        return transition.can_transition()

    def transition(self, name: str, message: Optional[str] = None) -> bool:
        """
        Perform a transition.

        Args:
            name: Transition name, eg: ``new_to_paid``.
            message: Optional free text stored with the new state.

        Returns:
            True if the new state was written, False if the transition does
            not start at the current state or its rule does not apply.

        Raises:
            TransitionError: TRANSITION_NOT_FOUND for an unknown name;
                             RULE_APPLY_FAILURE or ACTION_FAILURE when the rule
                             or action raised. Failures other than an unknown
                             name are recorded on the context first.
        """
        transition = self.get_transition(name)
        current = self.get_current_state()

        # first time this entity is acted upon
        self._context.add(current.name, "initial state")

        if transition.state_from != current:
            error = TransitionError(
                f"Transition '{name}' not allowed from state '{current.name}'",
                TransitionError.TRANSITION_NOT_ALLOWED,
            )
            logger.warning(f"{self._context.get_id()}: {error}")
            self._context.set_failed_transition(transition, error)
            return False

        try:
            allowed = transition.can_transition()
        except Exception as e:
            raise self._record_failure(transition, e, TransitionError.RULE_APPLY_FAILURE, "rule") from e

        if not allowed:
            results = transition.rule.results() if transition.rule is not None else []
            logger.info(f"{self._context.get_id()}: rule blocked {transition} {results}")
            return False

        if transition.action is not None:
            try:
                transition.action(self._context.get_entity())
            except Exception as e:
                raise self._record_failure(transition, e, TransitionError.ACTION_FAILURE, "action") from e

        self._context.set_state(transition.state_to.name, message)
        logger.info(
            f"Transition: {self._context.get_id()} "
            f"{transition.state_from.name} → {transition.state_to.name}"
        )
        return True

    def _record_failure(
        self, transition: Transition, cause: Exception, code: int, what: str
    ) -> TransitionError:
        """Record a failed transition and return the TransitionError to raise."""
        logger.error(
            f"Error in {what} of {transition.name} for {self._context.get_id()}: {cause}",
            exc_info=True,
        )
        error = TransitionError(f"{what} of '{transition.name}' raised: {cause}", code)
        self._context.set_failed_transition(transition, error)
        return error

    def run(self, message: Optional[str] = None) -> int:
        """
        Follow transitions until none applies.

        From the current state, performs the first transition whose rule
        applies, and repeats. Stops at a FINAL state, when no transition
        applies, or after MAX_TRANSITIONS_PER_RUN transitions.

        Returns:
            The number of transitions performed.
        """
        self.initialize()
        steps = 0

        while steps < self.MAX_TRANSITIONS_PER_RUN:
            current = self.get_current_state()
            if current.is_final():
                logger.info(f"{self._context.get_id()} reached final state {current.name}")
                break

            if not self._transition_from(current, message):
                logger.info(f"No further transitions from {current.name} — run complete")
                break
            steps += 1
        else:
            if not self.get_current_state().is_final():
                logger.error(f"Safety limit reached ({self.MAX_TRANSITIONS_PER_RUN} transitions) — stopping")

        return steps

    def _transition_from(self, current: State, message: Optional[str]) -> bool:
        """
        Perform the first transition out of ``current`` whose rule applies.

        Returns False if no valid transition exists.
        """
        for transition in self._transition_map.get(current.name, []):
            if self.transition(transition.name, message):
                return True
        return False

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self._context.get_id(True)})"
