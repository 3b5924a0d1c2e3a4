"""
Registration sources

A registration source is a factory of last resort: it is asked for a
binding only after every explicit binding for a key has missed.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from .binding import Binding
from .construction import get_constructor_parameters, is_concrete_type
from .exceptions import TypeInferenceError
from .key import ServiceKey
from .lifetime import Lifetime

logger = logging.getLogger(__name__)


class RegistrationSource(ABC):
    """Supplies bindings on demand for keys without an explicit registration."""

    @abstractmethod
    def binding_for(self, key: ServiceKey) -> Optional[Binding]:
        """Return a binding able to produce ``key``, or None."""
        pass


class ConcreteTypeSource(RegistrationSource):
    """Resolves any concrete class that was not explicitly registered.

    Only unnamed keys are supplied: a named lookup is always a request for
    an explicit registration. Classes whose constructor cannot be analysed
    (missing type hints, unresolvable forward references) are not supplied
    either. The synthesised binding is transient and constructs the class
    reflectively from its constructor type hints.
    """

    def binding_for(self, key: ServiceKey) -> Optional[Binding]:
        if key.name is not None or not is_concrete_type(key.service):
            return None
        try:
            get_constructor_parameters(key.service)
        except TypeInferenceError as e:
            logger.debug("Not synthesising %s: %s", key, e)
            return None
        logger.debug("Synthesising transient binding for unregistered %s", key)
        return Binding(
            primary=key,
            lifetime=Lifetime.TRANSIENT,
            implementation=key.service,
        )

    def __repr__(self) -> str:
        return "ConcreteTypeSource()"
