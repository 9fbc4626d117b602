"""Compiler utility functions.

Provides helpers for normalizing compiler input and building the small
query DSL fragments shared by the clause, option and request compilers.
"""

from typing import Any, Dict, List

from ..clause import Clause
from ..where import WhereTree


def normalize_where_input(where: Any) -> WhereTree:
    """Normalize a WhereTree, a clause list or a builder callable to a WhereTree.

    Args:
        where: WhereTree, sequence of Clause, callable receiving a fresh builder, or None

    Returns:
        WhereTree ready for compilation

    Raises:
        TypeError: If input is none of the supported forms
    """
    if where is None:
        return WhereTree()
    if isinstance(where, WhereTree):
        return where
    if isinstance(where, (list, tuple)) and all(isinstance(c, Clause) for c in where):
        return WhereTree(where)
    if callable(where):
        tree = WhereTree()
        where(tree)
        return tree
    raise TypeError(f"where parameter must be a WhereTree, a list of clauses or a callable, got {type(where).__name__}")


def negate(query: Dict[str, Any]) -> Dict[str, Any]:
    return {"bool": {"must_not": [query]}}


def bool_must(queries: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"bool": {"must": queries}}


def merge_params(params: Dict[str, Any], fragments: Dict[str, Any]) -> Dict[str, Any]:
    """Merge option fragments into request params, merging nested dicts key-wise."""
    for key, value in fragments.items():
        if isinstance(value, dict) and isinstance(params.get(key), dict):
            params[key] = {**params[key], **value}
        else:
            params[key] = value
    return params
