"""
Persistence adapters — where the state of an entity lives.

An Adapter reads and writes state keyed by Identifier. The Context
delegates every state mutation to one. ``Memory`` is the default adapter
and keeps everything in process; backends for databases, sessions and the
like implement the same contract.
"""

import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, Dict, List, Optional

from lifecycle.identifier import Identifier
from lifecycle.types import (
    STATE_UNKNOWN,
    FailedTransitionEntry,
    StorageData,
    Transition,
)

logger = logging.getLogger(__name__)


class Adapter(ABC):
    """
    Base class for persistence adapters.

    Concurrency control across threads or processes (unique constraints,
    version checks) is the adapter's responsibility.
    """

    @abstractmethod
    def get_state(self, identifier: Identifier) -> str:
        """Return the last written state, or STATE_UNKNOWN."""

    @abstractmethod
    def set_state(self, identifier: Identifier, state: str, message: Optional[str] = None) -> bool:
        """
        Write the state unconditionally.

        Returns:
            True if this was the first write for the identifier.
        """

    @abstractmethod
    def add(self, identifier: Identifier, state: str, message: Optional[str] = None) -> bool:
        """
        Write the state only if nothing was persisted for the identifier yet.

        Returns:
            True if this call performed the write.
        """

    @abstractmethod
    def get_entity_ids(self, machine: str, state: Optional[str] = None) -> List[str]:
        """Return the entity ids known for a machine, optionally filtered by state."""

    def set_failed_transition(
        self, identifier: Identifier, transition: Transition, error: BaseException
    ) -> None:
        """
        Store an audit record of a failed transition.

        The base implementation keeps nothing and only logs the failure.
        """
        logger.warning(
            f"Failed transition {transition.name} for {identifier.get_id()}: {error}"
        )

    def get_history(self, identifier: Identifier) -> List[StorageData]:
        """Return the state writes for an identifier, oldest first."""
        return []

    def get_failed_transitions(self, identifier: Identifier) -> List[FailedTransitionEntry]:
        """Return the failed transitions recorded for an identifier, oldest first."""
        return []

    def __str__(self) -> str:
        return f"{self.__class__.__module__}.{self.__class__.__name__}"


class Memory(Adapter):
    """
    In-process adapter.

    Each instance owns its own storage; data is lost with the instance.

    Attributes:
        MAX_HISTORY: Entries kept per identifier for both the write history
                     and the failed transitions (default: 100).
    """

    MAX_HISTORY: int = 100

    def __init__(self):
        self._states: Dict[Identifier, StorageData] = {}
        self._history: Dict[Identifier, Deque[StorageData]] = {}
        self._failed: Dict[Identifier, Deque[FailedTransitionEntry]] = {}

    def get_state(self, identifier: Identifier) -> str:
        data = self._states.get(identifier)
        if data is None:
            return STATE_UNKNOWN
        return data.state

    def set_state(self, identifier: Identifier, state: str, message: Optional[str] = None) -> bool:
        is_new = identifier not in self._states
        self._write(identifier, state, message)
        return is_new

    def add(self, identifier: Identifier, state: str, message: Optional[str] = None) -> bool:
        if identifier in self._states:
            return False
        self._write(identifier, state, message)
        return True

    def _write(self, identifier: Identifier, state: str, message: Optional[str]) -> None:
        data = StorageData(identifier=identifier, state=state, message=message)
        self._states[identifier] = data
        self._history.setdefault(identifier, deque(maxlen=self.MAX_HISTORY)).append(data)
        logger.debug(f"{identifier.get_id()} stored state '{state}'")

    def get_entity_ids(self, machine: str, state: Optional[str] = None) -> List[str]:
        return [
            identifier.entity_id
            for identifier, data in self._states.items()
            if identifier.machine == machine and (state is None or data.state == state)
        ]

    def set_failed_transition(
        self, identifier: Identifier, transition: Transition, error: BaseException
    ) -> None:
        entry = FailedTransitionEntry(identifier=identifier, transition=transition, error=error)
        self._failed.setdefault(identifier, deque(maxlen=self.MAX_HISTORY)).append(entry)
        logger.debug(f"{identifier.get_id()} recorded failed transition {transition.name}")

    def get_history(self, identifier: Identifier) -> List[StorageData]:
        return list(self._history.get(identifier, ()))

    def get_failed_transitions(self, identifier: Identifier) -> List[FailedTransitionEntry]:
        return list(self._failed.get(identifier, ()))

    def clear(self) -> None:
        """Forget everything stored by this adapter."""
        self._states.clear()
        self._history.clear()
        self._failed.clear()
