"""
Mode Selector

Process-wide, set-once selection of the container lifecycle policy.

This module provides:
    - ContainerMode: The available lifecycle policies
    - ModeSelector: Singleton holding the process mode
    - set_mode / get_mode: Module-level shortcuts

The mode may be written once, at process start, before any container is
created. Creating a container freezes the selector, so a later write fails
even if nobody called set_mode() before.

Example::

    from deferinjection import ContainerMode, set_mode

    set_mode(ContainerMode.STRICT)
    container = ServiceContainer()
"""

import logging
import threading
from enum import Enum
from typing import Optional

from .exceptions import AlreadySetError

logger = logging.getLogger(__name__)


class ContainerMode(Enum):
    """Container lifecycle policy.

    STRICT: the container is immutable once built; every registration
        afterwards raises ConfigurationLockedError. Recommended.
    REBUILDABLE: registrations after build are accepted and the resolver
        is rebuilt. Kept for callers that update a running container.
    """
    STRICT = "STRICT"
    REBUILDABLE = "REBUILDABLE"


DEFAULT_MODE = ContainerMode.STRICT


class ModeSelector:
    """Process-wide holder of the container mode.

    Singleton pattern: every ``ModeSelector()`` returns the same object.
    All reads and writes go through one lock.

    Attributes:
        _mode: The current mode
        _explicit: Whether set_mode() has been called
        _locked: Whether further writes are rejected
    """

    _instance: Optional['ModeSelector'] = None
    _instance_lock = threading.Lock()

    _mode: ContainerMode
    _explicit: bool
    _locked: bool
    _lock: threading.Lock

    def __new__(cls) -> 'ModeSelector':
        with cls._instance_lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._lock = threading.Lock()
                instance._mode = DEFAULT_MODE
                instance._explicit = False
                instance._locked = False
                cls._instance = instance
        return cls._instance

    def set_mode(self, mode: ContainerMode) -> None:
        """Set the process mode.

        Raises:
            AlreadySetError: When the mode was set before, or a container
                has already been created
            TypeError: When ``mode`` is not a ContainerMode
        """
        if not isinstance(mode, ContainerMode):
            raise TypeError(f"Expected a ContainerMode, got {mode!r}")
        with self._lock:
            if self._locked:
                if self._explicit:
                    reason = f"it was already set to {self._mode.name}"
                else:
                    reason = (
                        f"a container was already created with the default "
                        f"{self._mode.name}"
                    )
                raise AlreadySetError(
                    f"The container mode can only be set once; {reason}. "
                    f"Set it early in application startup, before registering "
                    f"or resolving services."
                )
            self._mode = mode
            self._explicit = True
            self._locked = True
        logger.info("Container mode set to %s", mode.name)

    def get_mode(self) -> ContainerMode:
        with self._lock:
            return self._mode

    def freeze(self) -> ContainerMode:
        """Reject further writes and return the effective mode."""
        with self._lock:
            self._locked = True
            return self._mode

    @property
    def is_set(self) -> bool:
        with self._lock:
            return self._explicit

    @property
    def is_locked(self) -> bool:
        with self._lock:
            return self._locked

    def reset(self) -> None:
        """Return to the process-start state.

        Only for test teardown or a full process re-initialisation. Containers
        that already exist keep the mode they were created with.
        """
        with self._lock:
            self._mode = DEFAULT_MODE
            self._explicit = False
            self._locked = False


def set_mode(mode: ContainerMode) -> None:
    ModeSelector().set_mode(mode)


def get_mode() -> ContainerMode:
    return ModeSelector().get_mode()
