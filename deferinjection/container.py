"""
ServiceContainer

This module provides the public container facade. It combines the
registration ledger, the build gate and the frozen resolver:

- Registration operations while the container is open
- A one-time, thread-safe build triggered by the first resolution
- Resolution with singleton and transient lifetimes
- An opt-in fallback that constructs unregistered concrete types
- Disposal

Example::

    container = ServiceContainer()
    container.register(IRepository, SqlRepository).as_singleton()
    container.register_instance(Settings, settings)
    container.register_factory(Clock, lambda ctx: SystemClock())

    repo = container.resolve(IRepository)   # builds the container
    container.register_type(Other)          # ConfigurationLockedError (strict)
"""

import logging
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple, Type, TypeVar

from .binding import Binding, BindingHandle, ensure_assignable
from .exceptions import AlreadySetError, BuildError, ContainerDisposedError, DeferInjectionError
from .gate import Mutation, create_gate
from .key import ServiceKey, type_name
from .ledger import RegistrationLedger
from .lifetime import ContainerState, Lifetime
from .mode import ContainerMode, ModeSelector
from .resolver import FrozenResolver
from .sources import ConcreteTypeSource, RegistrationSource

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ServiceContainer:
    """Deferred-build service container.

    Registrations accumulate while the container is open. The first call to
    ``ensure_built()`` or to any resolution operation builds the container,
    exactly once across all threads. What happens to registrations after
    that depends on the container mode:

    - ``ContainerMode.STRICT``: every registration operation raises
      ``ConfigurationLockedError``
    - ``ContainerMode.REBUILDABLE``: the registration replaces existing
      bindings for the key and the resolver is rebuilt

    Args:
        mode: Lifecycle policy for this container. Defaults to the process
            mode from the ModeSelector. Once set_mode() has been called, a
            different value raises AlreadySetError. Creating a container
            freezes the ModeSelector either way.
        resolve_unregistered_concrete: Enable the concrete type fallback
            from the start (same as calling ``enable_concrete_fallback()``)

    Attributes:
        _ledger: Keys registered so far
        _registrations: Bindings per key, in registration order
        _sources: Explicit registration sources
        _gate: Build gate for the selected mode
    """

    def __init__(
        self,
        mode: Optional[ContainerMode] = None,
        resolve_unregistered_concrete: bool = False,
    ):
        selector = ModeSelector()
        process_mode = selector.freeze()
        if mode is not None and mode is not process_mode and selector.is_set:
            raise AlreadySetError(
                f"The container mode was set to {process_mode.name} for this process; "
                f"a container cannot override it with {mode.name}."
            )
        self._mode: ContainerMode = mode if mode is not None else process_mode
        self._ledger = RegistrationLedger()
        self._registrations: Dict[ServiceKey, List[Binding]] = {}
        self._sources: List[RegistrationSource] = []
        self._concrete_fallback = resolve_unregistered_concrete
        self._gate = create_gate(self._mode, self._build_resolver)
        self._disposed = False

    # Registration

    def register(self, service: Type, implementation: Optional[Type] = None) -> BindingHandle:
        """Bind ``service`` to a class constructed from its constructor type hints.

        Args:
            service: The service type to register
            implementation: The concrete class; defaults to ``service``

        Returns:
            A handle for further configuration (lifetime, names, aliases)

        Raises:
            ConfigurationLockedError: In strict mode after build
            TypeError: When ``implementation`` is not a subclass of ``service``
        """
        implementation = service if implementation is None else implementation
        if not isinstance(implementation, type):
            raise TypeError(
                f"Implementation for {type_name(service)} must be a class, got {implementation!r}. "
                f"Use register_factory() or register_instance() instead."
            )
        ensure_assignable(implementation, service)
        return self._register(Binding(primary=ServiceKey(service), implementation=implementation))

    def register_type(self, implementation: Type) -> BindingHandle:
        """Bind a class to itself."""
        return self.register(implementation, implementation)

    def register_instance(self, service: Type[T], value: T) -> BindingHandle:
        """Bind ``service`` to an existing object. Always single-instance."""
        return self._register(Binding(primary=ServiceKey(service), instance=value))

    def register_factory(self, service: Type[T], factory: Callable[[FrozenResolver], T]) -> BindingHandle:
        """Bind ``service`` to a factory receiving the component context.

        Example::

            container.register_factory(
                UserRepository,
                lambda ctx: UserRepository(ctx.resolve(Database)),
            ).as_singleton()
        """
        if not callable(factory):
            raise TypeError(f"Factory for {type_name(service)} must be callable, got {factory!r}")
        return self._register(Binding(primary=ServiceKey(service), factory=factory))

    def register_named(
        self,
        service: Type,
        name: str,
        implementation: Optional[Type] = None,
        factory: Optional[Callable[[FrozenResolver], Any]] = None,
    ) -> BindingHandle:
        """Bind ``service`` under ``name`` only, without a default binding.

        Exactly one of ``implementation`` or ``factory`` may be given; with
        neither, ``service`` itself is constructed.
        """
        if implementation is not None and factory is not None:
            raise TypeError("Pass either implementation or factory, not both")
        key = ServiceKey(service, name)
        if factory is not None:
            if not callable(factory):
                raise TypeError(f"Factory for {key.display()} must be callable, got {factory!r}")
            return self._register(Binding(primary=key, factory=factory))
        implementation = service if implementation is None else implementation
        if not isinstance(implementation, type):
            raise TypeError(f"Implementation for {key.display()} must be a class, got {implementation!r}")
        ensure_assignable(implementation, service)
        return self._register(Binding(primary=key, implementation=implementation))

    def register_source(self, source: RegistrationSource) -> None:
        """Add a registration source consulted after explicit bindings miss."""
        with self._gate.mutation(f"add registration source {source!r}") as change:
            self._sources.append(source)
            change.on_failure(lambda: self._sources.remove(source))

    def enable_concrete_fallback(self) -> None:
        """Construct unregistered concrete classes on demand.

        The fallback source is installed behind every explicit registration
        and source when the container is built, so it never masks a
        registration made later in the open phase.
        """
        with self._gate.mutation("enable the concrete type fallback") as change:
            previous = self._concrete_fallback
            self._concrete_fallback = True
            change.on_failure(lambda: setattr(self, '_concrete_fallback', previous))

    # Resolution

    def ensure_built(self) -> FrozenResolver:
        """Build the container if needed and return its resolver.

        Raises:
            ContainerDisposedError: When the container has been disposed
            BuildError: When a binding cannot be constructed; the container
                stays open so the registrations can be corrected
        """
        self._ensure_not_disposed()
        return self._gate.ensure_built()

    def resolve(self, service: Type[T]) -> T:
        """Resolve the default binding of ``service``, building first if needed.

        Raises:
            UnregisteredServiceError: When nothing can supply ``service``
            CircularDependencyError: When constructor dependencies form a cycle
            ResolutionError: When a factory or constructor raised
        """
        return self.ensure_built().resolve(service)

    def resolve_named(self, service: Type[T], name: str) -> T:
        return self.ensure_built().resolve_named(service, name)

    def resolve_key(self, key: ServiceKey) -> Any:
        return self.ensure_built().resolve_key(key)

    def try_resolve(self, service: Type[T], name: Optional[str] = None) -> Tuple[Optional[T], bool]:
        """Resolve if possible.

        Returns:
            ``(instance, True)`` when a binding or source supplied the key,
            ``(None, False)`` otherwise. Errors raised while constructing a
            found service still propagate.
        """
        return self.ensure_built().try_resolve(service, name)

    def resolve_all(self, service: Type[T], name: Optional[str] = None) -> List[T]:
        """Resolve every explicit binding for the key, in registration order."""
        return self.ensure_built().resolve_all(service, name)

    def __getitem__(self, service: Type[T]) -> Callable[[], T]:
        """Support subscript syntax: container[Type]().

        Example::

            # These are equivalent:
            service = container[MyService]()
            service = container.resolve(MyService)
        """

        def getter() -> T:
            return self.resolve(service)

        return getter

    # Introspection

    def is_registered(self, service: Type) -> bool:
        """Whether ``service`` has a default binding. Never triggers a build."""
        return self.is_registered_key(ServiceKey(service))

    def is_registered_named(self, service: Type, name: str) -> bool:
        return self.is_registered_key(ServiceKey(service, name))

    def is_registered_key(self, key: ServiceKey) -> bool:
        self._ensure_not_disposed()
        resolver = self._gate.resolver
        if resolver is None:
            return self._ledger.contains(key)
        return resolver.is_registered_key(key)

    def registered_keys(self) -> FrozenSet[ServiceKey]:
        self._ensure_not_disposed()
        resolver = self._gate.resolver
        if resolver is None:
            return self._ledger.keys()
        return resolver.keys()

    @property
    def mode(self) -> ContainerMode:
        return self._mode

    @property
    def state(self) -> ContainerState:
        self._ensure_not_disposed()
        return self._gate.state

    @property
    def is_built(self) -> bool:
        self._ensure_not_disposed()
        return self._gate.is_built

    @property
    def build_count(self) -> int:
        return self._gate.build_count

    # Lifecycle

    def dispose(self) -> None:
        """Release the resolver, cached singletons and the ledger.

        After disposal every operation raises ContainerDisposedError.
        This method is idempotent.
        """
        if self._disposed:
            return
        self._disposed = True
        self._gate.close()
        for group in self._registrations.values():
            for binding in group:
                binding.release()
        self._registrations.clear()
        self._sources.clear()
        self._ledger.clear()
        logger.debug("Container disposed")

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def __enter__(self) -> 'ServiceContainer':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.dispose()
        return False

    def __repr__(self) -> str:
        if self._disposed:
            status = "disposed"
        else:
            status = self.state.value.lower()
        return f"<ServiceContainer mode={self._mode.name} {status} keys={len(self._ledger)}>"

    # Internals (called by BindingHandle)

    def _register(self, binding: Binding) -> BindingHandle:
        self._ensure_not_disposed()
        key = binding.primary
        with self._gate.mutation(f"register {key.display()}") as change:
            if not change.after_build:
                for existing in self._registrations.get(key, ()):
                    if existing.same_recipe(binding):
                        logger.debug("Skipping duplicate registration of %s (%s)", key, binding.describe())
                        return BindingHandle(self, existing)
            self._bind_key(key, binding, change)
        logger.debug("Registered %s -> %s (%s)", key, binding.describe(), binding.lifetime.name)
        return BindingHandle(self, binding)

    def _add_key(self, binding: Binding, key: ServiceKey) -> None:
        self._ensure_not_disposed()
        with self._gate.mutation(f"add {key.display()} to {binding.primary.display()}") as change:
            if binding in self._registrations.get(key, ()):
                return
            self._bind_key(key, binding, change)
        logger.debug("Registered %s -> %s", key, binding.describe())

    def _change_lifetime(self, binding: Binding, lifetime: Lifetime) -> None:
        self._ensure_not_disposed()
        with self._gate.mutation(f"change the lifetime of {binding.primary.display()}") as change:
            previous = binding.lifetime
            if previous is not lifetime:
                binding.release()
                binding.lifetime = lifetime
                change.on_failure(lambda: setattr(binding, 'lifetime', previous))

    def _bind_key(self, key: ServiceKey, binding: Binding, change: Mutation) -> None:
        # Called with the gate lock held
        previous = self._registrations.get(key)
        if change.after_build:
            self._registrations[key] = [binding]
        else:
            self._registrations.setdefault(key, []).append(binding)
        added_key = key not in binding.keys
        if added_key:
            binding.keys.append(key)
        recorded = self._ledger.record(key)

        def undo() -> None:
            if previous is None:
                self._registrations.pop(key, None)
            elif change.after_build:
                self._registrations[key] = previous
            else:
                previous.remove(binding)
            if added_key:
                binding.keys.remove(key)
            if recorded:
                self._ledger.discard(key)

        change.on_failure(undo)

    def _build_resolver(self) -> FrozenResolver:
        # Called with the gate lock held
        sources = list(self._sources)
        if self._concrete_fallback:
            sources.append(ConcreteTypeSource())
        snapshot = {key: tuple(group) for key, group in self._registrations.items()}
        resolver = FrozenResolver(snapshot, sources)
        try:
            resolver.validate()
        except DeferInjectionError as e:
            raise BuildError(f"Container build failed: {e}") from e
        return resolver

    def _ensure_not_disposed(self) -> None:
        if self._disposed:
            raise ContainerDisposedError("This container has been disposed")
