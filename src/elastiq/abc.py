"""Abstract collaborator interfaces.

The compilers never talk to the network. They produce request params that a
`Transport` executes, and they consult a `MappingLookup` for field types.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

from .constants import Operation
from .schema import TransportResponse


class Transport(ABC):
    """Executes compiled requests and reports success/failure with metadata."""

    @abstractmethod
    def execute(self, operation: Operation, params: Dict[str, Any]) -> TransportResponse:
        """Execute `params` as `operation`.

        `data` of the returned response holds the raw engine response body;
        normalization happens in `elastiq.results`. Implementations must not
        raise for engine-side failures; they return
        `TransportResponse(is_successful=False, error_message=...)` instead.
        """
        raise NotImplementedError


class MappingLookup(ABC):
    """Provides the field -> type mapping of an index."""

    @abstractmethod
    def get_field_mapping(self, index: str, field_pattern: str = "*") -> Dict[str, str]:
        """Return a flat `{field_name: type}` map, multi-fields as `field.sub`."""
        raise NotImplementedError
