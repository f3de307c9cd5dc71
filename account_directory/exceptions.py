"""Exceptions."""


class InternalError(RuntimeError):
    """An account could not be serialized for the cache."""


class CacheUnavailable(RuntimeError):
    """The cache cluster failed while evicting an account."""


class StoreUnavailable(RuntimeError):
    """A backing store could not be reached or rejected the request."""


class NoSuchAccount(RuntimeError):
    """Account does not exist."""


class ConditionalConflict(RuntimeError):
    """A conditional write was rejected by the target store."""


class ConfigurationError(ValueError):
    """Dynamic configuration is invalid."""
