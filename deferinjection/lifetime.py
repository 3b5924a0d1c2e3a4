"""
Lifetime and state enums

Defines the lifetime of bindings and the lifecycle state of a container
"""

from enum import Enum


class Lifetime(Enum):
    """Lifetime of a binding"""
    TRANSIENT = "TRANSIENT"
    SINGLE_INSTANCE = "SINGLE_INSTANCE"


class ContainerState(Enum):
    """Lifecycle state of a container"""
    OPEN = "OPEN"
    BUILT = "BUILT"
