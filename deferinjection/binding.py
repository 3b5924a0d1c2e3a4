"""
Binding

Data class representing a registered recipe and the handle used to
configure it fluently after registration.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Type, TypeVar, TYPE_CHECKING

from .key import ServiceKey, type_name
from .lifetime import Lifetime

if TYPE_CHECKING:
    from .container import ServiceContainer

T = TypeVar('T')


class _Unset:
    def __repr__(self) -> str:
        return '<unset>'


UNSET: Any = _Unset()


@dataclass(eq=False)
class Binding:
    """Recipe producing a service.

    Exactly one of ``implementation``, ``factory`` or ``instance`` is set.
    Single-instance bindings keep their instance on the binding itself, so
    it survives a rebuild of the resolver that publishes it.
    """
    primary: ServiceKey
    lifetime: Lifetime = Lifetime.TRANSIENT
    implementation: Optional[Type] = None
    factory: Optional[Callable[..., Any]] = None
    instance: Any = UNSET
    keys: List[ServiceKey] = field(default_factory=list)
    _cached: Any = field(default=UNSET, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self):
        if not self.keys:
            self.keys = [self.primary]
        if self.instance is not UNSET:
            self.lifetime = Lifetime.SINGLE_INSTANCE
            self._cached = self.instance

    @property
    def kind(self) -> str:
        if self.instance is not UNSET:
            return "instance"
        if self.factory is not None:
            return "factory"
        return "implementation"

    def describe(self) -> str:
        if self.kind == "instance":
            return f"instance of {type(self.instance).__name__}"
        if self.kind == "factory":
            return f"factory {getattr(self.factory, '__qualname__', repr(self.factory))}"
        return type_name(self.implementation)

    def same_recipe(self, other: 'Binding') -> bool:
        """True when both bindings would produce services the same way."""
        if self.kind != other.kind or self.lifetime != other.lifetime:
            return False
        if self.kind == "instance":
            return self.instance is other.instance
        if self.kind == "factory":
            return self.factory is other.factory
        return self.implementation is other.implementation

    @property
    def has_instance(self) -> bool:
        return self._cached is not UNSET

    def get_or_create(self, create: Callable[[], T]) -> T:
        """Return the instance for this binding according to its lifetime.

        Transient bindings call ``create`` every time. Single-instance
        bindings call it at most once; concurrent first callers block on
        the binding's lock and receive the same object.
        """
        if self.lifetime == Lifetime.TRANSIENT:
            return create()

        cached = self._cached
        if cached is not UNSET:
            return cached

        with self._lock:
            if self._cached is UNSET:
                self._cached = create()
            return self._cached

    def release(self) -> None:
        """Drop the cached instance (used when the container is disposed)."""
        if self.instance is UNSET:
            self._cached = UNSET


class BindingHandle:
    """Fluent configuration for a registered binding.

    Every method is itself a registration operation: in strict mode it
    raises ConfigurationLockedError once the container has been built.

    Example::

        container.register(IRepository, SqlRepository).as_singleton()
        container.register_type(HomePage).named("home")
        container.register_type(FileCache).as_(ICache, IFlushable).as_singleton()
    """

    def __init__(self, container: 'ServiceContainer', binding: Binding):
        self._container = container
        self._binding = binding

    @property
    def binding(self) -> Binding:
        return self._binding

    def as_singleton(self) -> 'BindingHandle':
        self._container._change_lifetime(self._binding, Lifetime.SINGLE_INSTANCE)
        return self

    def as_transient(self) -> 'BindingHandle':
        if self._binding.kind == "instance":
            raise ValueError(
                f"{self._binding.primary} is bound to an instance and is always single-instance"
            )
        self._container._change_lifetime(self._binding, Lifetime.TRANSIENT)
        return self

    def named(self, name: str) -> 'BindingHandle':
        """Also answer the primary service type under ``name``."""
        return self.named_as(self._binding.primary.service, name)

    def named_as(self, service: Type, name: str) -> 'BindingHandle':
        self._check_assignable(service)
        self._container._add_key(self._binding, ServiceKey(service, name))
        return self

    def as_(self, *services: Type) -> 'BindingHandle':
        """Also answer each of ``services`` (default, unnamed keys)."""
        for service in services:
            self._check_assignable(service)
            self._container._add_key(self._binding, ServiceKey(service))
        return self

    def _check_assignable(self, service: Type) -> None:
        if self._binding.implementation is not None:
            ensure_assignable(self._binding.implementation, service)


def ensure_assignable(implementation: Type, service: Any) -> None:
    """Raise TypeError if ``implementation`` cannot stand in for ``service``."""
    if not isinstance(service, type) or implementation is service:
        return
    # Protocols are structural; issubclass() is not defined for most of them
    if getattr(service, '_is_protocol', False):
        return
    if not issubclass(implementation, service):
        raise TypeError(
            f"{type_name(implementation)} cannot be exposed as {type_name(service)}: "
            f"it is not a subclass."
        )
