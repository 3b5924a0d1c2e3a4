"""
Build Gate

This module provides the one-time Open -> Built transition of a container.

The gate owns the container's lock. Every mutation of the registration set
and the build itself run under that lock, so a registration can never land
between the snapshot taken by the build and the publication of its result.
Readers of a published resolver never take the lock.

Two variants exist, selected by ContainerMode:
    - StrictBuildGate: mutation after build raises ConfigurationLockedError
    - RebuildableBuildGate: mutation after build republishes a new resolver
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

from .exceptions import ConfigurationLockedError, ContainerDisposedError
from .lifetime import ContainerState
from .mode import ContainerMode
from .resolver import FrozenResolver

logger = logging.getLogger(__name__)


class Mutation:
    """One guarded change to the registration set.

    Attributes:
        after_build: Whether the container was already built when the
            change started
    """

    def __init__(self, after_build: bool):
        self.after_build = after_build
        self._undo: List[Callable[[], None]] = []

    def on_failure(self, undo: Callable[[], None]) -> None:
        """Register a callback reverting part of the change."""
        self._undo.append(undo)

    def rollback(self) -> None:
        while self._undo:
            self._undo.pop()()


class BuildGate(ABC):
    """Double-checked, lock-guarded build state machine.

    Args:
        build: Produces a validated FrozenResolver from the current
            registrations. Called with the gate lock held; it must not
            register or resolve through the container.

    Attributes:
        build_count: Number of resolvers successfully published
    """

    mode: ContainerMode

    def __init__(self, build: Callable[[], FrozenResolver]):
        self._build = build
        self._lock = threading.Lock()
        self._resolver: Optional[FrozenResolver] = None
        self._closed = False
        self.build_count = 0

    @property
    def resolver(self) -> Optional[FrozenResolver]:
        return self._resolver

    @property
    def state(self) -> ContainerState:
        return ContainerState.BUILT if self._resolver is not None else ContainerState.OPEN

    @property
    def is_built(self) -> bool:
        return self._resolver is not None

    @property
    def is_closed(self) -> bool:
        return self._closed

    def ensure_built(self) -> FrozenResolver:
        """Build once and return the published resolver.

        The first caller performs the build; callers arriving meanwhile block
        on the lock and then return the same resolver. A build that raises
        publishes nothing and leaves the gate open for a retry.

        Raises:
            ContainerDisposedError: When the gate has been closed
            BuildError: Propagated from the build callable
        """
        resolver = self._resolver
        if resolver is not None:
            return resolver

        with self._lock:
            self._ensure_not_closed()
            if self._resolver is None:
                self._publish(self._build_timed())
            return self._resolver

    @contextmanager
    def mutation(self, description: str) -> Iterator['Mutation']:
        """Guard a change to the registration set.

        Yields a Mutation telling whether the change lands after the
        container was built. If the change fails, including a failed
        rebuild, its undo callbacks run before the lock is released.

        Raises:
            ContainerDisposedError: When the gate has been closed
            ConfigurationLockedError: When the variant forbids the change
        """
        with self._lock:
            self._ensure_not_closed()
            change = Mutation(self._resolver is not None)
            if change.after_build:
                self._check_mutable_after_build(description)
            try:
                yield change
                if change.after_build:
                    self._after_build_mutation(description)
            except Exception:
                change.rollback()
                raise

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._resolver = None

    @abstractmethod
    def _check_mutable_after_build(self, description: str) -> None:
        pass

    @abstractmethod
    def _after_build_mutation(self, description: str) -> None:
        pass

    def _ensure_not_closed(self) -> None:
        if self._closed:
            raise ContainerDisposedError("This container has been disposed")

    def _build_timed(self) -> FrozenResolver:
        started = time.perf_counter()
        resolver = self._build()
        logger.info(
            "Container built: %d bindings, %d keys in %.1f ms",
            len(resolver), len(resolver.keys()), (time.perf_counter() - started) * 1000,
        )
        return resolver

    def _publish(self, resolver: FrozenResolver) -> None:
        self._resolver = resolver
        self.build_count += 1


class StrictBuildGate(BuildGate):
    """Gate for ContainerMode.STRICT: the first build freezes the container."""

    mode = ContainerMode.STRICT

    def _check_mutable_after_build(self, description: str) -> None:
        raise ConfigurationLockedError(
            f"Cannot {description}: the container has already been built. "
            f"Registrations must be completed before the first resolution."
        )

    def _after_build_mutation(self, description: str) -> None:
        pass


class RebuildableBuildGate(BuildGate):
    """Gate for ContainerMode.REBUILDABLE.

    A mutation after build is accepted and the resolver is rebuilt and
    replaced wholesale before the lock is released. If the rebuild fails the
    previous resolver stays published and the change is reverted.
    """

    mode = ContainerMode.REBUILDABLE

    def _check_mutable_after_build(self, description: str) -> None:
        logger.warning("Updating a built container: %s", description)

    def _after_build_mutation(self, description: str) -> None:
        self._publish(self._build_timed())


def create_gate(mode: ContainerMode, build: Callable[[], FrozenResolver]) -> BuildGate:
    if mode is ContainerMode.STRICT:
        return StrictBuildGate(build)
    if mode is ContainerMode.REBUILDABLE:
        return RebuildableBuildGate(build)
    raise ValueError(f"'{mode}' is an unknown container mode")
