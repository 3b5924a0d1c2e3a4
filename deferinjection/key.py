"""
ServiceKey

Identity used to look up a binding
"""

from dataclasses import dataclass
from typing import Any, Optional


def type_name(service: Any) -> str:
    """Readable name for a service type or forward reference."""
    return service.__name__ if hasattr(service, '__name__') else str(service)


@dataclass(frozen=True)
class ServiceKey:
    """A service type plus an optional name.

    The default binding of a service uses ``name=None``. Named bindings
    for the same service (for example pages keyed by route) are distinct
    keys.
    """
    service: Any
    name: Optional[str] = None

    def display(self) -> str:
        if self.name is None:
            return type_name(self.service)
        return f"{type_name(self.service)}['{self.name}']"

    def __str__(self) -> str:
        return self.display()
