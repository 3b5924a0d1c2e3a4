"""
NavigationService

A deferred-binding proxy: the navigation service has to exist while the
application is still registering services, before the container it will
eventually query has been built. It starts Pending, is rebound exactly once
by the startup sequence, and delegates to the container from then on.

Routable units (pages, views, screens) are registered keyed by route name::

    register_for_navigation(container, HomePage, "home")

    navigation = NavigationService()
    ...
    container.ensure_built()
    navigation._rebind(container)
    page = navigation.create_routable_unit("home")
"""

import logging
import weakref
from enum import Enum
from typing import Any, Optional, Type, TYPE_CHECKING

from .binding import BindingHandle
from .exceptions import (
    AlreadyBoundError,
    ContainerDisposedError,
    NotYetBoundError,
    UnregisteredServiceError,
)
from .key import type_name

if TYPE_CHECKING:
    from .container import ServiceContainer

logger = logging.getLogger(__name__)


class BindingState(Enum):
    """State of a deferred-binding proxy"""
    PENDING = "PENDING"
    BOUND = "BOUND"


class NavigationService:
    """Creates routable units by name from a container bound after construction.

    The proxy holds a weak reference to its container: it looks services up,
    it never keeps the container alive. It caches nothing else, so nothing
    can go stale across the rebind.

    Args:
        container: The backing container, or None to start Pending
        unit_type: Service type routable units are registered under

    Example::

        navigation = NavigationService()
        navigation.is_bound                       # False
        navigation.create_routable_unit("home")   # NotYetBoundError
    """

    def __init__(self, container: Optional['ServiceContainer'] = None, unit_type: Type = object):
        self._unit_type = unit_type
        self._container_ref: Optional[weakref.ReferenceType] = None
        if container is not None:
            self._container_ref = weakref.ref(container)

    @property
    def unit_type(self) -> Type:
        return self._unit_type

    @property
    def state(self) -> BindingState:
        return BindingState.PENDING if self._container_ref is None else BindingState.BOUND

    @property
    def is_bound(self) -> bool:
        return self._container_ref is not None

    def _rebind(self, container: 'ServiceContainer') -> None:
        """Bind the proxy to its container.

        Reserved for the startup sequence. Single use: a proxy that is
        already bound raises AlreadyBoundError.
        """
        if container is None:
            raise TypeError("Cannot rebind a navigation service to None")
        if self._container_ref is not None:
            raise AlreadyBoundError(
                "This navigation service is already bound to a container. "
                "Rebinding is reserved for the startup sequence and may only happen once."
            )
        self._container_ref = weakref.ref(container)
        logger.info("Navigation service bound to a %s container", container.mode.name)

    def _container(self) -> 'ServiceContainer':
        if self._container_ref is None:
            raise NotYetBoundError(
                "The navigation service is not bound to a container yet. "
                "Routable units can only be created after application startup has "
                "finished configuring the container."
            )
        container = self._container_ref()
        if container is None or container.is_disposed:
            raise ContainerDisposedError(
                "The container backing this navigation service has been disposed"
            )
        return container

    def can_route(self, name: str) -> bool:
        """Whether a routable unit is registered under ``name``."""
        return self._container().is_registered_named(self._unit_type, name)

    def create_routable_unit(self, name: str) -> Any:
        """Resolve the routable unit registered under ``name``.

        Raises:
            NotYetBoundError: Before the startup sequence rebound the proxy
            UnregisteredServiceError: When no unit is registered as ``name``
        """
        container = self._container()
        if not container.is_registered_named(self._unit_type, name):
            raise UnregisteredServiceError(f"The requested page '{name}' has not been registered.")
        return container.resolve_named(self._unit_type, name)

    def __repr__(self) -> str:
        return f"<NavigationService {self.state.value.lower()} unit_type={type_name(self._unit_type)}>"


def register_for_navigation(
    container: 'ServiceContainer',
    view_type: Type,
    name: Optional[str] = None,
    unit_type: Type = object,
) -> BindingHandle:
    """Register ``view_type`` as a routable unit.

    Args:
        container: Container to register into
        view_type: Class constructed when the route is requested
        name: Route name; defaults to the class name
        unit_type: Service type the navigation service resolves routes under

    Returns:
        The binding handle (transient by default)
    """
    route = view_type.__name__ if name is None else name
    return container.register_named(unit_type, route, implementation=view_type)
