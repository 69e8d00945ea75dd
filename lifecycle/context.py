"""
Context — everything a state machine needs to act on one entity.

A Context is created by the application for a single (machine, entity)
pair. It separates the state machine from how state is read and written
(the persistence adapter) and from how the domain object is obtained (the
entity builder).

Usage:
    from lifecycle import Context, Identifier

    context = Context(Identifier("order", 42))
    context.add("new")          # seed the first record, once
    context.get_state()         # "new"
    context.set_state("paid", "payment received")
    context.get_id(readable=True, with_state=True)
    # "machine: 'order', id: '42', state: 'paid'"
"""

import logging
import weakref
from typing import TYPE_CHECKING, Any, Optional

from lifecycle.builder import EntityBuilder
from lifecycle.identifier import EntityId, Identifier, MachineName
from lifecycle.persistence import Adapter, Memory
from lifecycle.types import STATE_UNKNOWN, PersistenceError, Transition

if TYPE_CHECKING:
    from lifecycle.machine import StateMachine

logger = logging.getLogger(__name__)


class Context:
    """
    Holds the identifier and collaborators for one stateful entity.

    Args:
        identifier: The (machine, entity id) pair this context is about.
        entity_builder: Optional builder for the domain object. Defaults
                        lazily to an EntityBuilder returning the identifier.
        persistence_adapter: Optional reader/writer of state. Defaults
                             lazily to a private Memory adapter.

    Collaborator exceptions propagate unchanged, except from
    ``set_failed_transition`` (see there).
    """

    def __init__(
        self,
        identifier: Identifier,
        entity_builder: Optional[EntityBuilder] = None,
        persistence_adapter: Optional[Adapter] = None,
    ):
        self._identifier = identifier
        self._entity_builder = entity_builder
        self._persistence_adapter = persistence_adapter
        self._state_machine_ref: Optional["weakref.ReferenceType[StateMachine]"] = None

    # ------------------------------------------------------------------
    # State machine back-reference
    # ------------------------------------------------------------------

    def set_state_machine(self, state_machine: "StateMachine") -> None:
        """
        Associate the owning state machine.

        Only the StateMachine using this context should call this. The
        machine owns the context; the context keeps a weak reference used
        for initial state lookups only.
        """
        self._state_machine_ref = weakref.ref(state_machine)

    def get_state_machine(self) -> Optional["StateMachine"]:
        """Return the associated state machine, if any is (still) set."""
        if self._state_machine_ref is None:
            return None
        return self._state_machine_ref()

    # ------------------------------------------------------------------
    # Entity and state
    # ------------------------------------------------------------------

    def get_entity(self, create_fresh: bool = False) -> Any:
        """
        Return a (cached) reference to the domain object, eg: an 'Order'.

        Args:
            create_fresh: Ask the builder to bypass its cache.
        """
        return self.get_builder().get_entity(self._identifier, create_fresh)

    def get_state(self) -> str:
        """
        Return the current state name.

        Resolution order:
          1. the state stored by the persistence adapter;
          2. without an attached state machine, STATE_UNKNOWN;
          3. the machine's initial state, or STATE_UNKNOWN if it has none.
        """
        state = self.get_persistence_adapter().get_state(self._identifier)
        if state != STATE_UNKNOWN:
            return state

        state_machine = self.get_state_machine()
        if state_machine is None:
            # standalone context
            return state

        initial = state_machine.get_initial_state(True)
        if initial is None:
            return STATE_UNKNOWN
        return initial.name

    def set_state(self, state: str, message: Optional[str] = None) -> bool:
        """
        Write the state.

        Args:
            state: The new state name.
            message: Optional free text for the adapter's history.

        Returns:
            True if nothing was ever persisted for this entity before.
        """
        return self.get_persistence_adapter().set_state(self._identifier, state, message)

    def add(self, state: str, message: Optional[str] = None) -> bool:
        """
        Persist the state only if no state was ever persisted for this entity.

        Marks the first construction of the entity's lifecycle. Subsequent
        calls have no effect.

        Returns:
            True if it was added, False if something was already there.
        """
        return self.get_persistence_adapter().add(self._identifier, state, message)

    def set_failed_transition(self, transition: Transition, error: BaseException) -> None:
        """
        Store a failed transition through the persistence adapter.

        Called by the state machine when a transition was not allowed, or a
        rule or action raised.

        Raises:
            PersistenceError: If the adapter fails to record it. The adapter's
                              exception is chained as ``__cause__``.
        """
        try:
            self.get_persistence_adapter().set_failed_transition(self._identifier, transition, error)
        except Exception as e:
            logger.error(
                f"Could not record failed transition {transition.name} "
                f"for {self.get_id()}: {e}",
                exc_info=True,
            )
            raise PersistenceError(
                f"Recording failed transition {transition.name} for {self.get_id()} failed: {e}"
            ) from e

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    def get_builder(self) -> EntityBuilder:
        """Return the entity builder, creating the default on first use."""
        if self._entity_builder is None:
            self._entity_builder = EntityBuilder()
            logger.debug(f"{self.get_id()}: using default entity builder")
        return self._entity_builder

    def get_persistence_adapter(self) -> Adapter:
        """Return the persistence adapter, creating the default on first use."""
        if self._persistence_adapter is None:
            self._persistence_adapter = Memory()
            logger.debug(f"{self.get_id()}: using default in-memory persistence")
        return self._persistence_adapter

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def get_identifier(self) -> Identifier:
        return self._identifier

    def get_entity_id(self) -> EntityId:
        return self._identifier.entity_id

    def get_machine(self) -> MachineName:
        return self._identifier.machine

    def get_id(self, readable: bool = False, with_state: bool = False) -> str:
        """
        Return the unique key of this context.

        Args:
            readable: Human readable instead of parseable (default: False).
            with_state: Append the current state (default: False).

        Examples:
            order_42_paid
            machine: 'order', id: '42', state: 'paid'
        """
        output = self._identifier.get_id(readable)
        if with_state:
            if readable:
                output += f", state: '{self.get_state()}'"
            else:
                output += f"_{self.get_state()}"
        return output

    def to_string(self) -> str:
        return f"{self.__class__.__module__}.{self.__class__.__name__}({self.get_id(True)})"

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.get_id()}>"
