"""
FrozenResolver

This module provides the immutable, queryable state a container publishes
once it is built. It is responsible for:

- Looking up bindings by service key (last registration wins)
- Consulting registration sources after explicit bindings miss
- Constructing implementation types reflectively
- Applying binding lifetimes and detecting circular dependencies

A FrozenResolver never changes after construction. Rebuildable containers
replace it wholesale instead of mutating it. The resolver is also the
component context passed to factory bindings.
"""

import logging
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar

from .binding import Binding
from .construction import (
    ConstructorParameter,
    ResolutionContext,
    _resolution_context,
    get_constructor_parameters,
)
from .exceptions import (
    CircularDependencyError,
    DeferInjectionError,
    ResolutionError,
    UnregisteredServiceError,
)
from .key import ServiceKey, type_name
from .sources import RegistrationSource

logger = logging.getLogger(__name__)

T = TypeVar('T')


class FrozenResolver:
    """Immutable snapshot of a container's bindings.

    Attributes:
        bindings: Read-only mapping from key to the bindings registered for it,
            in registration order
        sources: Registration sources, consulted in order after explicit
            bindings miss
    """

    def __init__(
        self,
        bindings: Mapping[ServiceKey, Tuple[Binding, ...]],
        sources: Iterable[RegistrationSource] = (),
    ):
        self.bindings: Mapping[ServiceKey, Tuple[Binding, ...]] = MappingProxyType(dict(bindings))
        self.sources: Tuple[RegistrationSource, ...] = tuple(sources)
        # Constructor analysis cache; filled by validate() and lazily for
        # fallback types. Values never change once computed.
        self._parameters: Dict[type, List[ConstructorParameter]] = {}

    # Introspection

    def keys(self) -> FrozenSet[ServiceKey]:
        return frozenset(self.bindings.keys())

    def is_registered(self, service: Type, name: Optional[str] = None) -> bool:
        return self.is_registered_key(ServiceKey(service, name))

    def is_registered_key(self, key: ServiceKey) -> bool:
        return key in self.bindings

    def __len__(self) -> int:
        return len({id(b) for group in self.bindings.values() for b in group})

    # Validation

    def validate(self) -> None:
        """Check every implementation binding can be constructed.

        Raises:
            TypeInferenceError: A constructor cannot be analysed
            UnregisteredServiceError: A required constructor parameter has no
                binding and no source can supply it
        """
        seen = set()
        for group in self.bindings.values():
            for binding in group:
                if id(binding) in seen or binding.implementation is None:
                    continue
                seen.add(id(binding))
                for param in self._constructor_parameters(binding.implementation):
                    if param.annotation is None or param.has_default:
                        continue
                    key = ServiceKey(param.annotation)
                    if self._find(key, quiet=True) is None:
                        raise UnregisteredServiceError(
                            f"{type_name(binding.implementation)} requires "
                            f"'{param.name}: {key.display()}', which is not registered."
                        )

    # Resolution (component context surface)

    def resolve(self, service: Type[T]) -> T:
        return self.resolve_key(ServiceKey(service))

    def resolve_named(self, service: Type[T], name: str) -> T:
        return self.resolve_key(ServiceKey(service, name))

    def try_resolve(self, service: Type[T], name: Optional[str] = None) -> Tuple[Optional[T], bool]:
        key = ServiceKey(service, name)
        binding = self._find(key)
        if binding is None:
            return None, False
        return self._produce(key, binding), True

    def resolve_all(self, service: Type[T], name: Optional[str] = None) -> List[T]:
        key = ServiceKey(service, name)
        return [self._produce(key, binding) for binding in self.bindings.get(key, ())]

    def resolve_key(self, key: ServiceKey) -> Any:
        """Resolve a key.

        Raises:
            UnregisteredServiceError: When no binding or source supplies the key
            CircularDependencyError: When the key is already being resolved
            ResolutionError: When a factory or constructor raised
        """
        binding = self._find(key)
        if binding is None:
            raise UnregisteredServiceError(self._not_registered_message(key))
        return self._produce(key, binding)

    def __getitem__(self, service: Type[T]):
        def getter() -> T:
            return self.resolve(service)

        return getter

    # Internals

    def _find(self, key: ServiceKey, quiet: bool = False) -> Optional[Binding]:
        group = self.bindings.get(key)
        if group:
            return group[-1]
        for source in self.sources:
            binding = source.binding_for(key)
            if binding is not None:
                if not quiet:
                    logger.debug("%s supplied by %r", key, source)
                return binding
        return None

    def _produce(self, key: ServiceKey, binding: Binding) -> Any:
        ctx = _resolution_context.get()
        if ctx is not None and ctx.is_resolving(key, binding):
            raise CircularDependencyError(
                f"Circular dependency detected: {ctx.describe_cycle(key)}"
            )

        return binding.get_or_create(lambda: self._create(key, binding, ctx))

    def _create(self, key: ServiceKey, binding: Binding, parent: Optional[ResolutionContext]) -> Any:
        ctx = (parent or ResolutionContext()).enter(key, binding)
        token = _resolution_context.set(ctx)
        try:
            if binding.factory is not None:
                return binding.factory(self)
            return self._construct(binding.implementation)
        except DeferInjectionError:
            raise
        except Exception as e:
            raise ResolutionError(
                f"Creating {key.display()} from {binding.describe()} raised "
                f"{type(e).__name__}: {e}"
            ) from e
        finally:
            _resolution_context.reset(token)

    def _construct(self, implementation: Type[T]) -> T:
        kwargs: Dict[str, Any] = {}
        for param in self._constructor_parameters(implementation):
            if param.annotation is None:
                continue
            key = ServiceKey(param.annotation)
            if param.has_default:
                binding = self._find(key)
                if binding is not None:
                    kwargs[param.name] = self._produce(key, binding)
            else:
                kwargs[param.name] = self.resolve_key(key)
        return implementation(**kwargs)

    def _constructor_parameters(self, implementation: type) -> List[ConstructorParameter]:
        parameters = self._parameters.get(implementation)
        if parameters is None:
            parameters = get_constructor_parameters(implementation)
            self._parameters[implementation] = parameters
        return parameters

    def _not_registered_message(self, key: ServiceKey) -> str:
        registered = ", ".join(sorted(k.display() for k in self.bindings.keys())) or "None"
        if key.name is None:
            hint = f"container.register({type_name(key.service)}, ...)"
        else:
            hint = f"container.register_named({type_name(key.service)}, '{key.name}', ...)"
        return (
            f"{key.display()} is not registered.\n"
            f"Registered services: {registered}\n"
            f"Hint: {hint}"
        )
