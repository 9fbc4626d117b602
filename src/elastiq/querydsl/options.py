"""Query options: sorting, paging, scoring, highlighting and geo filters.

`QueryOptions` is owned by the query object and handed to the option
compiler as an immutable input.
"""

from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from ..constants import GEO_UNITS, SortOrder
from ..cursor import CursorState
from ..exceptions import ParameterError


class SortSpec(BaseModel):
    order: SortOrder = SortOrder.ASC
    # Geo-distance sort
    is_geo: bool = False
    pin: Any = None
    unit: str = "km"
    type: Optional[str] = None  # arc | plane
    # Nested-path sort
    is_nested: bool = False
    mode: Optional[str] = None  # min | max | avg | sum | median
    # Raw sort parameters added through with_sort(), e.g. missing / unmapped_type
    extra: Dict[str, Any] = Field(default_factory=dict)


class GeoBoxFilter(BaseModel):
    field: str
    top_left: Any
    bottom_right: Any


class GeoDistanceFilter(BaseModel):
    field: str
    distance: str
    geo_point: Sequence[float]  # (lat, lon)


class RandomScore(BaseModel):
    column: str
    seed: Any


class QueryOptions(BaseModel):
    sort: Dict[str, SortSpec] = Field(default_factory=dict)
    limit: Optional[int] = None
    offset: Optional[int] = None
    min_score: Optional[float] = None
    highlight: Optional[Dict[str, Any]] = None
    geo_box: Optional[GeoBoxFilter] = None
    geo_distance: Optional[GeoDistanceFilter] = None
    random_score: Optional[RandomScore] = None
    cursor: Optional[CursorState] = None
    search_after: Optional[List[Any]] = None
    prev_search_after: Optional[List[Any]] = None
    columns: List[str] = Field(default_factory=lambda: ["*"])

    # ------------------------------------------------------------------
    # Mutators used by the fluent query API
    # ------------------------------------------------------------------
    def order_by(self, column: str, direction: str = "asc") -> None:
        self.sort[column] = SortSpec(order=_direction(direction))

    def with_sort(self, column: str, key: str, value: Any) -> None:
        spec = self.sort.get(column) or SortSpec()
        if key in ("order", "mode", "unit", "type", "pin"):
            setattr(spec, key, _direction(value) if key == "order" else value)
        else:
            spec.extra[key] = value
        self.sort[column] = spec

    def order_by_geo(
        self,
        column: str,
        pin: Any,
        direction: str = "asc",
        unit: str = "km",
        mode: Optional[str] = None,
        type: Optional[str] = None,
    ) -> None:
        if unit not in GEO_UNITS:
            raise ParameterError("Unsupported distance unit", unit=unit, supported=GEO_UNITS)
        if type is not None and type not in ("arc", "plane"):
            raise ParameterError("Unsupported distance type", type=type)
        self.sort[column] = SortSpec(
            order=_direction(direction), is_geo=True, pin=pin, unit=unit, mode=mode, type=type
        )

    def order_by_nested(self, column: str, direction: str = "asc", mode: Optional[str] = None) -> None:
        self.sort[column] = SortSpec(order=_direction(direction), is_nested=True, mode=mode)

    # ------------------------------------------------------------------
    # Construction from loose dicts
    # ------------------------------------------------------------------
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueryOptions":
        """Build options from a plain dict.

        Accepts both the field names of this model and the camelCase keys used
        by option payloads (`skip`, `minScore`, `highlights`, `filters`).

        Raises:
            ParameterError: On any unexpected option key
        """
        opts = cls()
        for key, value in data.items():
            if key == "sort":
                for column, payload in value.items():
                    if isinstance(payload, str):
                        opts.order_by(column, payload)
                    else:
                        opts.sort[column] = SortSpec.model_validate(payload)
            elif key == "limit":
                opts.limit = value
            elif key in ("skip", "offset"):
                opts.offset = value
            elif key in ("minScore", "min_score"):
                opts.min_score = value
            elif key in ("highlights", "highlight"):
                opts.highlight = value
            elif key == "filters":
                for filter_type, payload in value.items():
                    opts._apply_filter(filter_type, payload)
            elif key == "random_score":
                opts.random_score = RandomScore.model_validate(value)
            elif key == "cursor":
                opts.cursor = CursorState.init(value)
            elif key == "search_after":
                opts.search_after = value
            elif key == "prev_search_after":
                opts.prev_search_after = value
            elif key == "columns":
                opts.columns = list(value)
            else:
                raise ParameterError(f"Unexpected option: {key}", option=key)
        return opts

    def _apply_filter(self, filter_type: str, payload: Dict[str, Any]) -> None:
        if filter_type in ("filterGeoBox", "geo_box"):
            self.geo_box = GeoBoxFilter(
                field=payload["field"],
                top_left=payload.get("topLeft", payload.get("top_left")),
                bottom_right=payload.get("bottomRight", payload.get("bottom_right")),
            )
        elif filter_type in ("filterGeoPoint", "geo_distance"):
            self.geo_distance = GeoDistanceFilter(
                field=payload["field"],
                distance=payload["distance"],
                geo_point=payload.get("geoPoint", payload.get("geo_point")),
            )
        else:
            raise ParameterError(f"Unexpected filter: {filter_type}", option="filters")


def _direction(direction: Any) -> SortOrder:
    if isinstance(direction, SortOrder):
        return direction
    return SortOrder.ASC if str(direction).lower() == "asc" else SortOrder.DESC
