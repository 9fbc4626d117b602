"""Query DSL module.

Exports the `WhereTree` builder, the `Clause` record and `QueryOptions`.
Compilation into Elasticsearch requests is handled by the `compilers`
subpackage.
"""

from .clause import Clause
from .options import QueryOptions, SortSpec
from .where import WhereTree

__all__ = ("Clause", "QueryOptions", "SortSpec", "WhereTree")
