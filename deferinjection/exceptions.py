"""
DeferInjection Exceptions

Custom exception hierarchy for the deferred-build service container
"""


class DeferInjectionError(Exception):
    """
    Base exception for all DeferInjection errors.

    All DeferInjection-specific exceptions inherit from this class.
    You can catch this to handle any container error generically.

    Example:
        >>> try:
        ...     service = container.resolve(MyService)
        ... except DeferInjectionError as e:
        ...     print(f"DI error: {e}")
    """

    pass


class ConfigurationLockedError(DeferInjectionError):
    """
    Raised when a registration is attempted after the container was built.

    In ``ContainerMode.STRICT`` the set of bindings is frozen by the first
    build. Every registration entry point, including ``BindingHandle``
    chaining and ``register_source()``, fails fast afterwards.

    Common causes:
        - Registering types from a module initializer that runs after startup
        - Calling ``container.resolve()`` before all registrations are done,
          which triggers the build early

    Solution:
        Move the registration before the first resolution, or select
        ``ContainerMode.REBUILDABLE`` for legacy code that updates the
        container at runtime::

            set_mode(ContainerMode.REBUILDABLE)
    """

    pass


class UnregisteredServiceError(DeferInjectionError, LookupError):
    """
    Raised when a requested service key has no binding.

    This error occurs when calling ``resolve()`` for a key that has not been
    registered and that no registration source (such as the concrete type
    fallback) can supply.

    Common causes:
        - Forgetting to register the type
        - Resolving by name with a typo in the name
        - Resolving an interface while only the implementation was registered

    Note:
        The error message includes the list of registered keys
        to help identify available services.
    """

    pass


class NotYetBoundError(DeferInjectionError):
    """
    Raised when a deferred-binding proxy is used before it was rebound.

    This indicates a startup ordering bug: an operation that needs the
    container ran before the application finished configuring it.

    Solution:
        Only call ``create_routable_unit()`` after the application's
        ``initialize()`` has completed, or check ``is_bound`` first.
    """

    pass


class AlreadyBoundError(DeferInjectionError):
    """
    Raised when a deferred-binding proxy is rebound a second time.

    Rebinding is a single-use operation owned by the startup sequence.
    A second rebind could point live callers at a stale container.
    """

    pass


class AlreadySetError(DeferInjectionError):
    """
    Raised when the process-wide container mode is written twice.

    The mode may be set once, early in application startup, before
    any container is created.

    Solution:
        Set the mode exactly once at process start::

            set_mode(ContainerMode.STRICT)
            container = ServiceContainer()
    """

    pass


class ContainerDisposedError(DeferInjectionError):
    """
    Raised when attempting to use a disposed container.

    Common causes:
        - Using a container after calling ``container.dispose()``
        - Using a container after exiting a ``with`` block
        - A navigation proxy outliving the container it was bound to

    Solution:
        Create a new ``ServiceContainer`` instead of reusing a disposed one.
    """

    pass


class BuildError(DeferInjectionError):
    """
    Raised when building the container fails validation.

    The container stays open after this error, so the registrations
    can be corrected and the build retried. The underlying cause is
    available as ``__cause__``.
    """

    pass


class ResolutionError(DeferInjectionError):
    """
    Raised when a factory or constructor fails while producing a service.

    The original exception is chained as ``__cause__``.
    """

    pass


class CircularDependencyError(DeferInjectionError):
    """
    Raised when circular dependency is detected during resolution.

    This error occurs when type A depends on type B, and type B
    (directly or indirectly) depends on type A.

    Example of circular dependency::

        class ServiceA:
            def __init__(self, b: ServiceB): ...

        class ServiceB:
            def __init__(self, a: ServiceA): ...  # Circular!

    Solution:
        Refactor to remove the cycle, or resolve one side lazily
        through a factory that receives the component context.
    """

    pass


class TypeInferenceError(DeferInjectionError):
    """
    Raised when a constructor cannot be analysed for reflective construction.

    Common causes:
        - Missing type hints on ``__init__`` parameters without defaults
        - Built-in types or C extensions without accessible signatures
        - Forward references that cannot be resolved

    Solution:
        Ensure all ``__init__`` parameters have type hints::

            class UserRepository:
                def __init__(self, db: Database, cache: CacheService):
                    self.db = db
                    self.cache = cache
    """

    pass


class AlreadyInitializedError(DeferInjectionError):
    """
    Raised when ``DeferInjectionApplication.initialize()`` runs twice.
    """

    pass


class NotInitializedError(DeferInjectionError):
    """
    Raised when the application's container is used before startup.

    Common causes:
        - Accessing ``DeferInjectionApplication.container`` before calling
          ``initialize()``
        - Accessing it after ``initialize()`` failed partway

    Solution:
        Call ``initialize()`` first::

            app = MyApp().initialize()
            app.container.resolve(MyService)
    """

    pass
