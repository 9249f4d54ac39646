"""Errors raised by retry policies."""


class ConfigurationError(Exception):
    """Invalid retry policy configuration."""

    pass


class InvalidTransitionError(RuntimeError):
    """A retry sequence was driven in a way its current state does not allow."""

    pass
