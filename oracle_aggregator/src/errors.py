"""Exceptions raised by the aggregation engine.

Provider-level failures never surface through these classes; they are
absorbed by the orchestrator and only affect circuit breaker state. The one
failure a caller has to handle for a normal aggregation attempt is
:class:`InsufficientSourcesError`.
"""

from __future__ import annotations


class OracleError(Exception):
    """Base exception for aggregation engine errors."""

    pass


class DuplicateSourceError(OracleError):
    """Raised when a source name is registered twice."""

    def __init__(self, name: str):
        """Initialize the error.

        :param name: Name of the already registered source.
        """
        self.name = name
        super().__init__(f"Source {name} is already registered")


class UnknownSourceError(OracleError):
    """Raised when an operation refers to a source that is not registered."""

    def __init__(self, name: str):
        """Initialize the error.

        :param name: Name of the unknown source.
        """
        self.name = name
        super().__init__(f"Source {name} is not registered")


class NoSourcesRegisteredError(OracleError):
    """Raised when an aggregation is requested with zero sources configured."""

    def __init__(self) -> None:
        super().__init__("No price sources registered")


class InsufficientSourcesError(OracleError):
    """Raised when too few valid observations remain and no fallback exists.

    :ivar symbol: Symbol that could not be aggregated.
    :ivar available: Number of valid observations left.
    :ivar required: Configured minimum number of sources.
    """

    def __init__(self, symbol: str, available: int, required: int):
        """Initialize the error.

        :param symbol: Symbol that could not be aggregated.
        :param available: Number of valid observations left.
        :param required: Configured minimum number of sources.
        """
        self.symbol = symbol
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient sources for {symbol}: got {available}, required {required}"
        )


class EmptyObservationSetError(OracleError, ValueError):
    """Raised when a strategy is asked to aggregate zero observations."""

    def __init__(self) -> None:
        super().__init__("Cannot aggregate empty observation set")
