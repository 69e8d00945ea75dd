"""
Identifier — the (machine, entity id) pair that names one stateful entity.
"""

from dataclasses import dataclass
from typing import NewType

MachineName = NewType("MachineName", str)
EntityId = NewType("EntityId", str)


@dataclass(frozen=True)
class Identifier:
    """
    Uniquely identifies an entity within a state machine.

    Args:
        machine: Name of the machine type handling the entity (eg: 'order').
        entity_id: Application-specific key of the entity, usually a primary
                   key. Integers are accepted and stored as strings.

    Raises:
        ValueError: If either value is empty.
    """

    machine: MachineName
    entity_id: EntityId

    def __post_init__(self):
        machine = "" if self.machine is None else str(self.machine)
        entity_id = "" if self.entity_id is None else str(self.entity_id)
        if not machine:
            raise ValueError("machine name must not be empty")
        if not entity_id:
            raise ValueError("entity id must not be empty")
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "machine", MachineName(machine))
        object.__setattr__(self, "entity_id", EntityId(entity_id))

    def get_machine(self) -> MachineName:
        return self.machine

    def get_entity_id(self) -> EntityId:
        return self.entity_id

    def get_id(self, readable: bool = False) -> str:
        """
        Return the canonical key, or a human readable form.

        Examples:
            order_42
            machine: 'order', id: '42'
        """
        if readable:
            return f"machine: '{self.machine}', id: '{self.entity_id}'"
        return f"{self.machine}_{self.entity_id}"

    def __str__(self) -> str:
        return f"{self.__class__.__module__}.{self.__class__.__name__}({self.get_id(True)})"
