"""
EntityBuilder — constructs the domain object a state machine acts upon.
"""

import logging
from typing import Any, Optional

from lifecycle.identifier import Identifier

logger = logging.getLogger(__name__)


class EntityBuilder:
    """
    Builds and caches the entity for an Identifier.

    The default implementation returns the Identifier itself, which makes a
    Context usable without any domain model (eg: in tests). Subclass and
    override ``build()`` to load an 'Order', a 'Customer', etc.

    Example:
        class OrderBuilder(EntityBuilder):
            def build(self, identifier):
                return Order.load(identifier.entity_id)
    """

    def __init__(self):
        self._entity: Any = None
        self._identifier: Optional[Identifier] = None

    def get_entity(self, identifier: Identifier, create_fresh: bool = False) -> Any:
        """
        Return the cached entity, building it when needed.

        Args:
            identifier: The entity to build.
            create_fresh: Bypass the cache and rebuild.
        """
        if create_fresh or self._identifier != identifier:
            self._entity = self.build(identifier)
            self._identifier = identifier
            logger.debug(f"{self.__class__.__name__} built entity for {identifier.get_id()}")
        return self._entity

    def build(self, identifier: Identifier) -> Any:
        """Construct the entity. Returns the identifier by default."""
        return identifier

    def __str__(self) -> str:
        return f"{self.__class__.__module__}.{self.__class__.__name__}"
