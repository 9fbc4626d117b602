"""Type aliases for the elastiq package.

This module provides reusable type definitions to ensure consistency
across the codebase and improve code readability.
"""

from typing import Any, Dict, Sequence, Union

# A document payload as sent to or returned from the engine
Doc = Dict[str, Any]
Docs = Sequence[Doc]

# Columns accepted by select()/get()
Columns = Union[str, Sequence[str], None]
