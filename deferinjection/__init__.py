import logging

# Public API
from .application import DeferInjectionApplication, PreRegisterTypes
from .binding import Binding, BindingHandle
from .container import ServiceContainer
from .exceptions import (
    AlreadyBoundError,
    AlreadyInitializedError,
    AlreadySetError,
    BuildError,
    CircularDependencyError,
    ConfigurationLockedError,
    ContainerDisposedError,
    DeferInjectionError,
    NotInitializedError,
    NotYetBoundError,
    ResolutionError,
    TypeInferenceError,
    UnregisteredServiceError,
)
from .gate import BuildGate, RebuildableBuildGate, StrictBuildGate
from .key import ServiceKey
from .ledger import RegistrationLedger
from .lifetime import ContainerState, Lifetime
from .mode import ContainerMode, ModeSelector, get_mode, set_mode
from .navigation import BindingState, NavigationService, register_for_navigation
from .resolver import FrozenResolver
from .sources import ConcreteTypeSource, RegistrationSource

__all__ = [
    "ServiceContainer",
    "ServiceKey",
    "Binding",
    "BindingHandle",
    "Lifetime",
    "ContainerState",
    "RegistrationLedger",
    "BuildGate",
    "StrictBuildGate",
    "RebuildableBuildGate",
    "FrozenResolver",
    "RegistrationSource",
    "ConcreteTypeSource",
    # Mode
    "ContainerMode",
    "ModeSelector",
    "set_mode",
    "get_mode",
    # Navigation
    "NavigationService",
    "BindingState",
    "register_for_navigation",
    # Application
    "DeferInjectionApplication",
    "PreRegisterTypes",
    # Exceptions
    "DeferInjectionError",
    "ConfigurationLockedError",
    "UnregisteredServiceError",
    "NotYetBoundError",
    "AlreadyBoundError",
    "AlreadySetError",
    "ContainerDisposedError",
    "BuildError",
    "ResolutionError",
    "CircularDependencyError",
    "TypeInferenceError",
    "AlreadyInitializedError",
    "NotInitializedError",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())

# _version.py is generated by the release build
try:
    from ._version import __version__
except ImportError:
    # Fallback for development
    __version__ = '0.0.0'
