"""Option compiler.

Translates QueryOptions into request fragments: ``size``, ``from`` and the
``body`` keys ``sort``, ``search_after``, ``min_score`` and ``highlight``.
Private values that must never reach the engine (cursor, previous
search_after token) are returned under ``_meta``.

Geo filters and the random-score modifier wrap the whole query, so they are
staged on the CompilationContext instead of being returned.
"""

from typing import Any, Dict, List, Optional

from ...logger import Logger
from ...utils import prefix_field
from ..options import QueryOptions, SortSpec
from .context import CompilationContext

__all__ = (
    "OptionCompiler",
    "option_compiler",
)


class OptionCompiler:
    """Compile QueryOptions into request fragments."""

    def __init__(self) -> None:
        self.logger = Logger(self.__class__.__name__)

    def compile(
        self, options: Optional[QueryOptions], ctx: CompilationContext, nested_path: Optional[str] = None
    ) -> Dict[str, Any]:
        """Compile `options` into a fragment dict.

        Args:
            options: Options to compile (None compiles to an empty dict)
            ctx: Compilation context receiving staged filters / scoring
            nested_path: Prefix applied to every sort field

        Returns:
            Dict with any of ``size``, ``from``, ``body`` and ``_meta``
        """
        fragments: Dict[str, Any] = {}
        if options is None:
            return fragments

        body: Dict[str, Any] = {}
        meta: Dict[str, Any] = {}

        if options.limit is not None:
            fragments["size"] = options.limit
        if options.offset is not None:
            fragments["from"] = options.offset

        if options.sort:
            body["sort"] = self.compile_sort(options.sort, ctx, nested_path)

        if options.cursor is not None:
            meta["cursor"] = options.cursor
            if options.cursor.next_sort is not None:
                body["search_after"] = list(options.cursor.next_sort)
        if options.search_after is not None:
            body["search_after"] = list(options.search_after)
        if options.prev_search_after is not None:
            meta["prev_search_after"] = list(options.prev_search_after)

        if options.min_score is not None:
            body["min_score"] = options.min_score
        if options.highlight:
            body["highlight"] = options.highlight

        self._stage_modifiers(options, ctx)

        if body:
            fragments["body"] = body
        if meta:
            fragments["_meta"] = meta
        return fragments

    def compile_inner_hits(
        self, options: Optional[QueryOptions], ctx: CompilationContext, path: str
    ) -> Dict[str, Any]:
        """Compile sub-query options into a flat ``inner_hits`` spec.

        Body keys are hoisted to the top level and every sort field is
        prefixed with `path`. The private ``_meta`` bucket is dropped.
        """
        fragments = self.compile(options, ctx, nested_path=path)
        fragments.pop("_meta", None)
        body = fragments.pop("body", {})
        fragments.update(body)
        return fragments

    # ------------------------------------------------------------------
    # Sort
    # ------------------------------------------------------------------
    def compile_sort(
        self, sort: Dict[str, SortSpec], ctx: CompilationContext, nested_path: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        compiled = []
        for column, spec in sort.items():
            if column == "_id" and not ctx.allow_id_sort:
                self.logger.debug("Skipping _id sort, ES_ALLOW_ID_SORT is disabled")
                continue
            field = prefix_field(column, nested_path)
            if spec.is_geo:
                compiled.append(self._geo_sort(field, spec))
            elif spec.is_nested:
                compiled.append(self._nested_sort(field, spec))
            else:
                payload: Dict[str, Any] = {"order": spec.order.value}
                if spec.mode:
                    payload["mode"] = spec.mode
                if spec.unit != "km":
                    payload["unit"] = spec.unit
                if spec.type:
                    payload["type"] = spec.type
                if spec.pin is not None:
                    payload["pin"] = spec.pin
                payload.update(spec.extra)
                compiled.append({field: payload})
        return compiled

    def _geo_sort(self, field: str, spec: SortSpec) -> Dict[str, Any]:
        payload: Dict[str, Any] = {field: spec.pin, "order": spec.order.value, "unit": spec.unit}
        if spec.mode:
            payload["mode"] = spec.mode
        if spec.type:
            payload["distance_type"] = spec.type
        payload.update(spec.extra)
        return {"_geo_distance": payload}

    def _nested_sort(self, field: str, spec: SortSpec) -> Dict[str, Any]:
        path = field.rsplit(".", 1)[0] if "." in field else field
        payload: Dict[str, Any] = {"order": spec.order.value, "nested": {"path": path}}
        if spec.mode:
            payload["mode"] = spec.mode
        payload.update(spec.extra)
        return {field: payload}

    # ------------------------------------------------------------------
    # Staged modifiers
    # ------------------------------------------------------------------
    def _stage_modifiers(self, options: QueryOptions, ctx: CompilationContext) -> None:
        if options.geo_box is not None:
            box = options.geo_box
            ctx.stage_filter(
                "geo_bounding_box",
                {box.field: {"top_left": box.top_left, "bottom_right": box.bottom_right}},
            )
        if options.geo_distance is not None:
            geo = options.geo_distance
            lat, lon = list(geo.geo_point)[:2]
            ctx.stage_filter("geo_distance", {"distance": geo.distance, geo.field: {"lat": lat, "lon": lon}})
        if options.random_score is not None:
            ctx.stage_random_score(options.random_score.column, options.random_score.seed)


option_compiler = OptionCompiler()
