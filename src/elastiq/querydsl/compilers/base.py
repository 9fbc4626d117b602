"""Base compiler interface.

Defines the abstract contract for compilers turning a WhereTree into a
query DSL expression.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

__all__ = ("BaseWhere",)


class BaseWhere(ABC):
    """Abstract base class for where clause compilers.

    Subclasses implement `compile`; `to_expr` renders the compiled query as
    a JSON string for debugging.
    """

    @abstractmethod
    def compile(self, tree: Any, ctx: Any, parent: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Convert a WhereTree into a query DSL expression.
        Returns None for an empty tree; callers substitute match_all.
        """
        raise NotImplementedError

    def to_expr(self, tree: Any, ctx: Any) -> str:
        """Render the compiled query as a JSON string."""
        return json.dumps(self.compile(tree, ctx), default=str, sort_keys=True)
