"""Exception hierarchy for directory-to-route composition errors."""


class RoutifyError(Exception):
    """Base exception for all routify errors.

    Every error raised while building routes derives from this class. Any
    of them means that no usable router was produced.

    Example:
        try:
            router = create_router_from_path("routes")
        except RoutifyError as e:
            logger.error(f"Failed to create router: {e}")
    """


class ConfigurationError(RoutifyError):
    """Raised when the composer is configured incorrectly.

    Examples:
        - routify() called without a routes directory
        - methods allow-list naming an unsupported HTTP verb

    Example:
        ConfigurationError("A routes directory is required")
    """


class RouteDiscoveryError(RoutifyError):
    """Raised when a directory doesn't exist or can't be scanned.

    Example:
        RouteDiscoveryError("Directory does not exist: /app/routes")
    """


class FilenameGrammarError(RoutifyError):
    """Raised when a route filename combines markers that cannot coexist.

    Filenames that simply don't match the route grammar are ignored; this
    error is only raised for names that match but carry an invalid
    combination, such as a middleware prefix together with a wildcard.

    Example:
        FilenameGrammarError("'^get.star.py' combines '^' with '.star'")
    """


class ModuleContractError(RoutifyError):
    """Raised when a route or middleware module breaks its contract.

    This exception is raised when:
        - The module has no ``factory`` attribute
        - ``factory`` is not callable
        - The factory returns something other than a callable or a
          list/tuple of callables
        - Middleware handed to the FastAPI router is not async

    Example:
        ModuleContractError(
            "Factory in /routes/users/get.py returned int, "
            "expected a callable or a list of callables"
        )
    """


class ModuleLoadError(RoutifyError):
    """Raised when a route or middleware module cannot be loaded.

    This covers syntax errors, import errors and exceptions raised by the
    module body or by its factory.

    Example:
        ModuleLoadError(
            "Failed to import module: /routes/users/get.py\\n"
            "Error: NameError: name 'foo' is not defined"
        )
    """
