"""
Translate list-endpoint query strings into MongoDB queries.

    ?careers[in]=Business,UI/UX&average_cost[lte]=10000&select=name,careers&sort=-name&page=2&limit=10

becomes a filter ``{"careers": {"$in": [...]}, "average_cost": {"$lte": 10000}}``,
a projection on ``name`` and ``careers``, a descending sort on ``name`` and a
window of ten documents starting at the eleventh.
"""
import re
from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, Iterable, List, Optional, Tuple, Type, Union, get_args, get_origin

from pydantic import BaseModel
from pymongo.collection import Collection

RESERVED_PARAMS = ("select", "sort", "page", "limit")
OPERATORS = ("gt", "gte", "lt", "lte", "in")
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 25

_BRACKETED = re.compile(r"^(?P<field>[^\[\]]+)\[(?P<op>[^\[\]]*)\]$")
_INT = re.compile(r"^-?\d+$")
_FLOAT = re.compile(r"^-?\d+\.\d+$")


@dataclass
class QueryOptions:
    filter: Dict[str, Any] = field(default_factory=dict)
    projection: Optional[Dict[str, int]] = None
    sort: Optional[List[Tuple[str, int]]] = None
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


FieldTypes = Dict[str, type]


def field_types(model: Type[BaseModel]) -> FieldTypes:
    """Map the boolean and numeric fields of ``model`` to their Python type.

    Every other field is compared as the string it arrived as.
    """
    types: FieldTypes = {}
    for name, info in model.model_fields.items():
        annotation = info.annotation
        if get_origin(annotation) is Union:
            args = [arg for arg in get_args(annotation) if arg is not type(None)]
            if len(args) == 1:
                annotation = args[0]
        if get_origin(annotation) is Annotated:
            annotation = get_args(annotation)[0]
        if annotation in (bool, int, float):
            types[name] = annotation
    return types


def coerce_value(value: str, kind: Optional[type] = None) -> Any:
    if kind is bool:
        if value in ("true", "false"):
            return value == "true"
        return value
    if kind in (int, float):
        if _INT.match(value):
            return kind(int(value))
        if _FLOAT.match(value):
            return float(value)
    return value


def _split_fields(value: str) -> List[str]:
    return [part for part in re.split(r"[,\s]+", value) if part]


def _positive_int(value: Optional[str], default: int, allow_zero: bool = False) -> int:
    if value is None or not _INT.match(value.strip()):
        return default
    number = int(value)
    if number > 0 or (allow_zero and number == 0):
        return number
    return default


def parse_projection(value: Optional[str]) -> Optional[Dict[str, int]]:
    if not value:
        return None
    fields = _split_fields(value)
    return {name: 1 for name in fields} or None


def parse_sort(value: Optional[str]) -> Optional[List[Tuple[str, int]]]:
    if not value:
        return None
    keys = []
    for name in _split_fields(value):
        if name.startswith("-"):
            keys.append((name[1:], -1))
        else:
            keys.append((name.lstrip("+"), 1))
    return keys or None


def parse_filter(params: Iterable[Tuple[str, str]], types: Optional[FieldTypes] = None) -> Dict[str, Any]:
    """Build a Mongo filter from the non-reserved query parameters.

    Values are converted only for fields listed in ``types``. Raises
    ValueError for operators outside ``OPERATORS`` and for field names that
    would smuggle in a ``$`` operator.
    """
    types = types or {}
    result: Dict[str, Any] = {}
    for key, raw in params:
        match = _BRACKETED.match(key)
        name, op = (match.group("field"), match.group("op")) if match else (key, None)
        if name.startswith("$") or "[" in name or "]" in name:
            raise ValueError(f"Invalid query parameter: {key}")

        if op is None:
            if isinstance(result.get(name), dict):
                raise ValueError(f"Cannot combine equality and operators on field: {name}")
            result[name] = coerce_value(raw, types.get(name))
            continue

        if op not in OPERATORS:
            raise ValueError(f"Unsupported query operator: {op}")
        existing = result.setdefault(name, {})
        if not isinstance(existing, dict):
            raise ValueError(f"Cannot combine equality and operators on field: {name}")
        if op == "in":
            existing["$in"] = [coerce_value(v, types.get(name)) for v in raw.split(",") if v != ""]
        else:
            existing[f"${op}"] = coerce_value(raw, types.get(name))
    return result


def parse_query(params: Iterable[Tuple[str, str]], types: Optional[FieldTypes] = None) -> QueryOptions:
    params = list(params)
    reserved = {k: v for k, v in params if k in RESERVED_PARAMS}
    return QueryOptions(
        filter=parse_filter(((k, v) for k, v in params if k not in RESERVED_PARAMS), types),
        projection=parse_projection(reserved.get("select")),
        sort=parse_sort(reserved.get("sort")),
        page=_positive_int(reserved.get("page"), DEFAULT_PAGE),
        limit=_positive_int(reserved.get("limit"), DEFAULT_LIMIT, allow_zero=True),
    )


def pagination_meta(page: int, limit: int, total: int) -> Dict[str, Dict[str, int]]:
    """``next``/``prev`` links; a key is omitted when there is nothing on that side."""
    meta: Dict[str, Dict[str, int]] = {}
    if limit == 0:
        return meta
    skip = (page - 1) * limit
    if page * limit < total:
        meta["next"] = {"page": page + 1, "limit": limit}
    if skip > 0:
        meta["prev"] = {"page": page - 1, "limit": limit}
    return meta


def paginate(
    collection: Collection,
    options: QueryOptions,
    extra_filter: Optional[Dict[str, Any]] = None,
) -> Tuple[List[Dict[str, Any]], Dict[str, Dict[str, int]]]:
    """Run the count and the windowed fetch against the same filter."""
    filt = {**options.filter, **(extra_filter or {})}
    total = collection.count_documents(filt)

    cursor = collection.find(filt, options.projection)
    if options.sort:
        cursor = cursor.sort(options.sort)
    if options.limit:
        cursor = cursor.skip(options.skip).limit(options.limit)
    return list(cursor), pagination_meta(options.page, options.limit, total)
