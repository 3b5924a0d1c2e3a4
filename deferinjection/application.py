"""
DeferInjectionApplication

Startup orchestrator. It runs the configuration phase of a container in a
fixed order and performs the privileged rebind of the navigation service:

1. Apply the requested container mode (once per process)
2. Create the container and a Pending navigation service
3. Register built-in services
4. Run platform pre-registrations, then the application's registrations
5. Enable the concrete type fallback as the last registration, build the
   container, rebind the navigation service
6. Call on_initialized()

Example::

    class MyApp(DeferInjectionApplication):
        def register_types(self):
            self.container.register(IRepository, SqlRepository).as_singleton()
            self.register_for_navigation(HomePage, "home")

        def on_initialized(self):
            self.navigation_service.create_routable_unit("home")

    app = MyApp(mode=ContainerMode.STRICT).initialize()
"""

import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Type

from .binding import BindingHandle
from .container import ServiceContainer
from .exceptions import AlreadyInitializedError, NotInitializedError
from .mode import ContainerMode, set_mode
from .navigation import NavigationService, register_for_navigation

logger = logging.getLogger(__name__)


class PreRegisterTypes(ABC):
    """Registrations contributed from outside the application class.

    Typically platform-specific services. Run after the built-in services
    and before ``DeferInjectionApplication.register_types()``.
    """

    @abstractmethod
    def register_types(self, container: ServiceContainer) -> None:
        pass


class DeferInjectionApplication(ABC):
    """Base class driving container configuration at application startup.

    Args:
        pre_registrations: Hooks run before ``register_types()``
        mode: Container mode to apply; None keeps the process mode

    Attributes:
        unit_type: Service type routable units are registered under
    """

    NAVIGATION_SERVICE_NAME = "NavigationService"

    unit_type: Type = object

    def __init__(
        self,
        pre_registrations: Optional[Iterable[PreRegisterTypes]] = None,
        mode: Optional[ContainerMode] = None,
    ):
        self._pre_registrations: List[PreRegisterTypes] = list(pre_registrations or [])
        self._mode = mode
        self._container: Optional[ServiceContainer] = None
        self._initial_navigation: Optional[NavigationService] = None
        self._initialized = False
        self._mode_applied = False

    def initialize(self) -> 'DeferInjectionApplication':
        """Run the startup sequence.

        If any step raises, the partially configured container is disposed
        and ``initialize()`` may be called again.

        Raises:
            AlreadyInitializedError: When startup already completed
            AlreadySetError: When ``mode`` was given but the process mode
                has already been set
        """
        if self._initialized:
            raise AlreadyInitializedError("The application has already been initialized")

        if self._mode is not None and not self._mode_applied:
            set_mode(self._mode)
            self._mode_applied = True

        try:
            self._container = self.create_container()
            self._initial_navigation = self.create_navigation_service()

            self.configure_container()
            for pre_registration in self._pre_registrations:
                pre_registration.register_types(self._container)
            self.register_types()
            self.finish_configuration()

            logger.info("Application initialized (%s mode)", self._container.mode.name)
            self.on_initialized()
        except Exception:
            self._abandon_startup()
            raise

        self._initialized = True
        return self

    @property
    def container(self) -> ServiceContainer:
        if self._container is None:
            raise NotInitializedError("The application has not been initialized; call initialize() first")
        return self._container

    @property
    def navigation_service(self) -> NavigationService:
        """The initial proxy until the container is built, then the registered service."""
        container = self.container
        if container.is_built:
            return container.resolve_named(NavigationService, self.NAVIGATION_SERVICE_NAME)
        return self._initial_navigation

    def register_for_navigation(self, view_type: Type, name: Optional[str] = None) -> BindingHandle:
        return register_for_navigation(self.container, view_type, name, self.unit_type)

    def create_container(self) -> ServiceContainer:
        return ServiceContainer()

    def create_navigation_service(self) -> NavigationService:
        return NavigationService(None, self.unit_type)

    def configure_container(self) -> None:
        """Register the built-in services."""
        container = self.container
        container.register_instance(logging.Logger, logging.getLogger(type(self).__module__))

        if container.mode is ContainerMode.STRICT:
            # The pending proxy is the service: once rebound, every resolution
            # returns the same bound object
            container.register_instance(NavigationService, self._initial_navigation) \
                .named(self.NAVIGATION_SERVICE_NAME)
        else:
            container.register_named(
                NavigationService,
                self.NAVIGATION_SERVICE_NAME,
                factory=lambda ctx: NavigationService(self._container, self.unit_type),
            )

    @abstractmethod
    def register_types(self) -> None:
        """Register the application's services."""
        pass

    def finish_configuration(self) -> None:
        """Install the fallback last, build, and rebind the navigation service."""
        container = self.container
        container.enable_concrete_fallback()
        container.ensure_built()
        self._initial_navigation._rebind(container)

    def on_initialized(self) -> None:
        pass

    def shutdown(self) -> None:
        if self._container is not None:
            self._container.dispose()

    def _abandon_startup(self) -> None:
        if self._container is not None:
            self._container.dispose()
        self._container = None
        self._initial_navigation = None
