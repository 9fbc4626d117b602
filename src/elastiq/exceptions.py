"""Exceptions raised by elastiq.

Errors fall into three groups:

- building and compiling a query: ParameterError, SequencingError,
  UnsupportedOperationError
- executing a compiled request: ExecutionError
- configuring the client: ConfigurationError, MissingConfigError

Every error keeps its context (field, operator, index, ...) in `details`.
"""

from typing import Any, Dict, Optional


class ElastiqError(Exception):
    """Base class of every elastiq error.

    Attributes:
        message: Human-readable message
        details: Request context such as field, operator or index
    """

    def __init__(self, message: str = "", **details: Any) -> None:
        self.message = message
        self.details: Dict[str, Any] = details
        super().__init__(str(self))

    def __str__(self) -> str:
        context = ", ".join(f"{key}={value!r}" for key, value in self.details.items())
        if not context:
            return self.message
        return f"{self.message} ({context})" if self.message else context

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


# Compilation exceptions
class ParameterError(ElastiqError):
    """Raised when an option, operator or field cannot be compiled.

    Example:
        >>> raise ParameterError("Field is not a keyword field", field="status", operator="exact")
    """


class UnsupportedOperationError(ElastiqError):
    """Raised for relational features that have no search engine equivalent.

    Example:
        >>> raise UnsupportedOperationError("whereRaw clause is not available", operation="where_raw")
    """


class SequencingError(ElastiqError):
    """Raised when predicates or search terms are chained in an invalid order.

    Example:
        >>> raise SequencingError("Cannot start a query with an OR statement")
    """


# Execution exceptions
class ExecutionError(ElastiqError):
    """Raised when the transport reports a failed execution.

    Example:
        >>> raise ExecutionError("index_not_found_exception", operation="search", index="users")
    """

    @classmethod
    def from_response(cls, response: Any, index: Optional[str] = None) -> "ExecutionError":
        """Build the error of a failed TransportResponse, keeping its operation and index."""
        meta = response.meta
        return cls(response.error_message, operation=meta.query, index=meta.index or index)


# Configuration exceptions
class ConfigurationError(ElastiqError):
    """Raised when configuration is invalid or missing.

    Example:
        >>> raise ConfigurationError("Invalid configuration", setting="ES_REFRESH", value="sometimes")
    """


class MissingConfigError(ConfigurationError):
    """Raised when required configuration values are not set.

    Example:
        >>> raise MissingConfigError("Configuration not set", config_key="ES_HOSTS")
    """
