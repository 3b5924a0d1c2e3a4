"""
Thread Safety Tests

Tests for concurrent use of the container:
- Exactly one build when many threads trigger it at once
- Singletons constructed once across threads
- Concurrent registration during the open phase
- Registrations racing the build are either included or rejected
"""

import concurrent.futures
import os
import sys
import threading
import time
import unittest
from typing import List

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from deferinjection import (
    ConfigurationLockedError,
    ContainerState,
    RegistrationLedger,
    ServiceContainer,
    ServiceKey,
)
from conftest import DeferInjectionTestCase
from fixtures import CounterService, Database

THREADS = 16


def _make_service(index: int) -> type:
    return type(f"Service{index}", (), {})


class TestConcurrentBuild(DeferInjectionTestCase):
    """Tests for the build gate under contention"""

    def test_concurrent_ensure_built_builds_once(self):
        container = ServiceContainer()
        container.register_type(Database)
        barrier = threading.Barrier(THREADS)

        def build():
            barrier.wait()
            return container.ensure_built()

        with concurrent.futures.ThreadPoolExecutor(max_workers=THREADS) as executor:
            resolvers = list(executor.map(lambda _: build(), range(THREADS)))

        self.assertEqual(container.build_count, 1)
        for resolver in resolvers:
            self.assertIs(resolver, resolvers[0])

    def test_slow_build_blocks_other_callers(self):
        container = ServiceContainer()
        container.register_type(Database)
        original_build = container._build_resolver
        builds: List[int] = []

        def slow_build():
            builds.append(1)
            time.sleep(0.05)
            return original_build()

        container._gate._build = slow_build
        barrier = threading.Barrier(THREADS)
        states: List[ContainerState] = []
        lock = threading.Lock()

        def resolve():
            barrier.wait()
            container.resolve(Database)
            with lock:
                states.append(container.state)

        threads = [threading.Thread(target=resolve) for _ in range(THREADS)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(builds), 1)
        self.assertEqual(states, [ContainerState.BUILT] * THREADS)

    def test_two_threads_resolve_singleton_before_build(self):
        container = ServiceContainer()
        container.register_type(CounterService).as_singleton()
        barrier = threading.Barrier(2)
        results: List[CounterService] = []
        lock = threading.Lock()

        def resolve():
            barrier.wait()
            service = container.resolve(CounterService)
            with lock:
                results.append(service)

        threads = [threading.Thread(target=resolve) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(results), 2)
        self.assertIs(results[0], results[1])
        self.assertEqual(container.state, ContainerState.BUILT)


class TestConcurrentSingleton(DeferInjectionTestCase):
    """Tests for singleton construction across threads"""

    def test_singleton_factory_runs_once(self):
        container = ServiceContainer()
        calls: List[int] = []
        barrier = threading.Barrier(THREADS)

        def factory(ctx):
            calls.append(1)
            time.sleep(0.01)
            return CounterService()

        container.register_factory(CounterService, factory).as_singleton()
        container.ensure_built()

        def resolve():
            barrier.wait()
            return container.resolve(CounterService)

        with concurrent.futures.ThreadPoolExecutor(max_workers=THREADS) as executor:
            futures = [executor.submit(resolve) for _ in range(THREADS)]
            results = [f.result() for f in futures]

        self.assertEqual(len(calls), 1)
        self.assertTrue(all(r is results[0] for r in results))

    def test_transient_distinct_across_threads(self):
        container = ServiceContainer()
        container.register_type(Database)

        with concurrent.futures.ThreadPoolExecutor(max_workers=4) as executor:
            results = list(executor.map(lambda _: container.resolve(Database), range(8)))

        self.assertEqual(len({id(r) for r in results}), 8)


class TestConcurrentRegistration(DeferInjectionTestCase):
    """Tests for registration from several threads during the open phase"""

    def test_ledger_concurrent_record(self):
        ledger = RegistrationLedger()
        keys = [ServiceKey(_make_service(i)) for i in range(200)]

        with concurrent.futures.ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(ledger.record, keys + keys))

        self.assertEqual(len(ledger), 200)
        self.assertEqual(results.count(True), 200)

    def test_concurrent_registrations_all_visible(self):
        container = ServiceContainer()
        services = [_make_service(i) for i in range(100)]

        with concurrent.futures.ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(container.register_type, services))

        container.ensure_built()
        for service in services:
            self.assertTrue(container.is_registered(service))
            self.assertIsInstance(container.resolve(service), service)

    def test_registration_racing_build_is_included_or_rejected(self):
        container = ServiceContainer()
        services = [_make_service(i) for i in range(50)]
        accepted: List[type] = []
        lock = threading.Lock()
        barrier = threading.Barrier(2)

        def register_all():
            barrier.wait()
            for service in services:
                try:
                    container.register_type(service)
                except ConfigurationLockedError:
                    continue
                with lock:
                    accepted.append(service)

        def build():
            barrier.wait()
            container.ensure_built()

        threads = [threading.Thread(target=register_all), threading.Thread(target=build)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for service in accepted:
            self.assertTrue(container.is_registered(service))
        for service in set(services) - set(accepted):
            self.assertFalse(container.is_registered(service))


if __name__ == '__main__':
    unittest.main()
