"""
Application Startup Tests

Tests for the startup orchestrator in both container modes:
- Registration order and the final build
- Navigation proxy pending during configuration, bound afterwards
- Built-in services and the concrete fallback
"""

import logging
import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from deferinjection import (
    AlreadyInitializedError,
    AlreadySetError,
    ConfigurationLockedError,
    ContainerMode,
    DeferInjectionApplication,
    NavigationService,
    NotInitializedError,
    NotYetBoundError,
    PreRegisterTypes,
    ServiceContainer,
    UnregisteredServiceError,
    get_mode,
    set_mode,
)
from conftest import DeferInjectionTestCase
from fixtures import (
    AboutPage,
    CacheService,
    Database,
    HomePage,
    IDatabase,
    Level3,
    Page,
    PostgresDatabase,
    UserRepository,
)


class PlatformRegistrations(PreRegisterTypes):
    def __init__(self):
        self.saw_built = None

    def register_types(self, container: ServiceContainer) -> None:
        self.saw_built = container.is_built
        container.register(IDatabase, PostgresDatabase).as_singleton()


class SampleApplication(DeferInjectionApplication):
    unit_type = Page

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.events = []
        self.pending_during_registration = None
        self.early_routing_error = None

    def register_types(self) -> None:
        self.events.append("register_types")
        self.container.register_type(Database).as_singleton()
        self.container.register_type(CacheService)
        self.container.register_type(UserRepository)
        self.register_for_navigation(HomePage, "home")
        self.register_for_navigation(AboutPage)

        navigation = self.navigation_service
        self.pending_during_registration = not navigation.is_bound
        try:
            navigation.create_routable_unit("home")
        except NotYetBoundError as e:
            self.early_routing_error = e

    def on_initialized(self) -> None:
        self.events.append("on_initialized")


class FlakyApplication(SampleApplication):
    """Fails the first startup from inside register_types()"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.containers = []

    def register_types(self) -> None:
        self.containers.append(self.container)
        if len(self.containers) == 1:
            raise RuntimeError("configuration source unavailable")
        super().register_types()


class TestStartupSequence(DeferInjectionTestCase):
    """Tests for initialize()"""

    def test_initialize_builds_container(self):
        app = SampleApplication().initialize()

        self.assertTrue(app.container.is_built)
        self.assertEqual(app.events, ["register_types", "on_initialized"])

    def test_navigation_pending_during_registration(self):
        app = SampleApplication().initialize()

        self.assertTrue(app.pending_during_registration)
        self.assertIsInstance(app.early_routing_error, NotYetBoundError)

    def test_navigation_bound_after_initialize(self):
        app = SampleApplication().initialize()

        navigation = app.navigation_service

        self.assertTrue(navigation.is_bound)
        self.assertIsInstance(navigation.create_routable_unit("home"), HomePage)
        self.assertIsInstance(navigation.create_routable_unit("AboutPage"), AboutPage)

    def test_navigation_missing_route(self):
        app = SampleApplication().initialize()

        with self.assertRaises(UnregisteredServiceError):
            app.navigation_service.create_routable_unit("missing")

    def test_pre_registrations_run_before_register_types(self):
        platform = PlatformRegistrations()
        app = SampleApplication(pre_registrations=[platform]).initialize()

        self.assertFalse(platform.saw_built)
        self.assertIsInstance(app.container.resolve(IDatabase), PostgresDatabase)

    def test_builtin_logger_registered(self):
        app = SampleApplication().initialize()

        self.assertIsInstance(app.container.resolve(logging.Logger), logging.Logger)

    def test_concrete_fallback_enabled(self):
        app = SampleApplication().initialize()

        self.assertIsNotNone(app.container.resolve(Level3).l2.l1)

    def test_initialize_twice_raises(self):
        app = SampleApplication().initialize()

        with self.assertRaises(AlreadyInitializedError):
            app.initialize()

    def test_container_before_initialize_raises(self):
        app = SampleApplication()

        with self.assertRaises(NotInitializedError):
            app.container

    def test_failed_startup_can_be_retried(self):
        app = FlakyApplication()

        with self.assertRaises(RuntimeError):
            app.initialize()

        with self.assertRaises(NotInitializedError):
            app.container
        self.assertTrue(app.containers[0].is_disposed)

        app.initialize()

        self.assertIsNot(app.container, app.containers[0])
        self.assertTrue(app.container.is_built)
        self.assertIsInstance(app.navigation_service.create_routable_unit("home"), HomePage)

    def test_retry_does_not_set_mode_twice(self):
        app = FlakyApplication(mode=ContainerMode.REBUILDABLE)

        with self.assertRaises(RuntimeError):
            app.initialize()
        app.initialize()

        self.assertEqual(app.container.mode, ContainerMode.REBUILDABLE)

    def test_shutdown_disposes_container(self):
        app = SampleApplication().initialize()

        app.shutdown()

        self.assertTrue(app.container.is_disposed)


class TestStrictApplication(DeferInjectionTestCase):
    """Tests for an application in ContainerMode.STRICT"""

    def test_mode_applied(self):
        app = SampleApplication(mode=ContainerMode.STRICT).initialize()

        self.assertEqual(app.container.mode, ContainerMode.STRICT)
        self.assertEqual(get_mode(), ContainerMode.STRICT)

    def test_navigation_service_is_the_rebound_proxy(self):
        app = SampleApplication(mode=ContainerMode.STRICT)
        app.initialize()

        first = app.navigation_service
        second = app.container.resolve(NavigationService)

        self.assertIs(first, second)
        self.assertIs(first, app._initial_navigation)

    def test_registration_after_startup_rejected(self):
        app = SampleApplication(mode=ContainerMode.STRICT).initialize()

        with self.assertRaises(ConfigurationLockedError):
            app.container.register_type(Level3)

    def test_mode_already_set_fails_startup(self):
        set_mode(ContainerMode.REBUILDABLE)

        with self.assertRaises(AlreadySetError):
            SampleApplication(mode=ContainerMode.STRICT).initialize()


class TestRebuildableApplication(DeferInjectionTestCase):
    """Tests for an application in ContainerMode.REBUILDABLE"""

    def test_navigation_service_resolved_bound(self):
        app = SampleApplication(mode=ContainerMode.REBUILDABLE).initialize()

        navigation = app.navigation_service

        self.assertIsNot(navigation, app._initial_navigation)
        self.assertTrue(navigation.is_bound)
        self.assertTrue(app._initial_navigation.is_bound)
        self.assertIsInstance(navigation.create_routable_unit("home"), HomePage)

    def test_late_route_registration_is_routable(self):
        app = SampleApplication(mode=ContainerMode.REBUILDABLE).initialize()

        app.register_for_navigation(HomePage, "start")

        self.assertIsInstance(app.navigation_service.create_routable_unit("start"), HomePage)


if __name__ == '__main__':
    unittest.main()
