"""
Test Configuration and Utilities

Common base classes and helper functions for DeferInjection tests
"""

import unittest
from typing import Optional, Type

from deferinjection import ContainerMode, ModeSelector, ServiceContainer


class DeferInjectionTestCase(unittest.TestCase):
    """
    Base test case class for DeferInjection tests.

    Resets the process-wide mode selector before and after each test,
    since creating any container freezes it.
    """

    def setUp(self):
        """Reset the mode selector before each test"""
        ModeSelector().reset()

    def tearDown(self):
        """Reset the mode selector after each test"""
        ModeSelector().reset()


def create_simple_container(
    *service_classes: Type,
    mode: Optional[ContainerMode] = None,
) -> ServiceContainer:
    """
    Create a container with singleton registrations for the given classes.

    Each class is bound to itself.

    Example:
        >>> container = create_simple_container(Database, CacheService)
        >>> container.resolve(Database)
    """
    container = ServiceContainer(mode=mode)
    for cls in service_classes:
        container.register_type(cls).as_singleton()
    return container
