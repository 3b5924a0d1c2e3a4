"""
Test Fixtures

Common test classes used across test modules
"""

import threading
from abc import ABC, abstractmethod


class Database:
    """Test database class"""

    def __init__(self):
        self.name = "TestDB"
        self.thread_id = threading.current_thread().ident


class CacheService:
    """Test cache service"""

    def __init__(self):
        self.cache = {}


class UserRepository:
    """Test repository with dependencies"""

    def __init__(self, db: Database, cache: CacheService):
        self.db = db
        self.cache = cache


class CounterService:
    """Service with mutable state for testing singleton behavior"""

    def __init__(self):
        self.counter = 0

    def increment(self):
        self.counter += 1
        return self.counter


class IDatabase(ABC):
    """Abstract database interface"""

    @abstractmethod
    def connect(self) -> str:
        pass


class PostgresDatabase(IDatabase):
    def connect(self) -> str:
        return "Connected to PostgreSQL"


class MySQLDatabase(IDatabase):
    def connect(self) -> str:
        return "Connected to MySQL"


class ReportService:
    """Depends on an interface"""

    def __init__(self, db: IDatabase):
        self.db = db


class ServiceWithoutHint:
    """Service with missing type hint - for error testing"""

    def __init__(self, dependency):  # No type hint!
        self.dependency = dependency


class ServiceWithDefaults:
    """Optional collaborator falls back to its default"""

    def __init__(self, db: Database, retries: int = 3, label="default"):
        self.db = db
        self.retries = retries
        self.label = label


class Level1:
    """First level of nested dependencies"""
    pass


class Level2:
    """Second level of nested dependencies"""

    def __init__(self, l1: Level1):
        self.l1 = l1


class Level3:
    """Third level of nested dependencies"""

    def __init__(self, l2: Level2):
        self.l2 = l2


class Page:
    """Base class for routable units"""
    pass


class HomePage(Page):
    pass


class AboutPage(Page):
    def __init__(self, repo: UserRepository):
        self.repo = repo
