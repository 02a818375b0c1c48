"""
Error taxonomy for crawler lambda composition.

Three families are kept apart so callers can tell them from one another:
configuration mistakes, handles that failed to resolve, and backends that
refused a declaration.
"""


class CrawlerLambdasError(Exception):
    """Base error for everything raised by crawler_lambdas."""

    pass


class CompositionConfigError(CrawlerLambdasError, ValueError):
    """Raised for invalid configuration: duplicate names, unknown tier,
    malformed schedule expressions or a second execution identity."""

    pass


class ResolutionError(CrawlerLambdasError, RuntimeError):
    """Raised when an upstream handle failed or was resolved twice."""

    pass


class CompositionIncompleteError(ResolutionError):
    """Raised when a composition outcome is requested while still waiting."""

    pass


class ProvisioningError(CrawlerLambdasError, RuntimeError):
    """Raised when a resource backend refuses a declaration."""

    pass
