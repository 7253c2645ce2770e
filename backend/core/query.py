# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Query shaping for list endpoints: filter, sort, field projection, paging.

Query-string grammar
--------------------
* ``country=Portugal``          equality
* ``date[gte]=2024-01-01``      comparison (gte, gt, lte, lt)
* ``sort=-date,cityName``       comma separated, ``-`` for descending
* ``fields=cityName,country``   projection (``id`` is always returned)
* ``page=2&limit=10``           1-based paging, limit capped at 100

Field names are the public (camelCase) names; each maps to a column.
Filter keys that name no field are ignored.  Unknown ``sort`` or ``fields``
names, uncoercible filter values and bad paging raise ``InvalidInputError``.
"""

import re
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.orm import Query

from core.errors import InvalidInputError

RESERVED_PARAMS = frozenset({"page", "sort", "limit", "fields"})
MAX_LIMIT = 100

_OPERATOR_RE = re.compile(r"^(\w+)\[(gte|gt|lte|lt)\]$")


class QueryShaper:
    def __init__(
        self,
        query: Query,
        columns: Mapping[str, object],
        params: Sequence[Tuple[str, str]],
        projectable: Sequence[str] = (),
        default_sort: str = "-createdAt",
    ):
        """
        *columns* maps public field names to ORM columns usable for
        filtering and sorting; *projectable* lists the names accepted by
        ``fields`` (defaults to the column names).
        """
        self.query = query
        self.columns = dict(columns)
        self.params = list(params)
        self.projectable = list(projectable) or list(self.columns)
        self.default_sort = default_sort

    def _param(self, name: str) -> Optional[str]:
        for key, value in self.params:
            if key == name:
                return value
        return None

    def _column(self, name: str):
        column = self.columns.get(name)
        if column is None:
            raise InvalidInputError(f"Invalid field: {name}")
        return column

    @staticmethod
    def _coerce(name: str, column, raw: str):
        try:
            python_type = column.type.python_type
        except NotImplementedError:
            return raw
        try:
            if python_type is datetime:
                return datetime.fromisoformat(raw)
            if python_type is bool:
                return raw.lower() in ("1", "true", "yes")
            return python_type(raw)
        except ValueError:
            raise InvalidInputError(f"Invalid {name}: {raw}")

    # -- stages ------------------------------------------------------------

    def filter(self) -> "QueryShaper":
        for key, raw in self.params:
            if key in RESERVED_PARAMS:
                continue
            match = _OPERATOR_RE.match(key)
            name, op = (match.group(1), match.group(2)) if match else (key, "eq")
            column = self.columns.get(name)
            if column is None:
                # not a field (cache-busters such as ``_=<ts>``)
                continue
            value = self._coerce(name, column, raw)
            if op == "eq":
                self.query = self.query.filter(column == value)
            elif op == "gte":
                self.query = self.query.filter(column >= value)
            elif op == "gt":
                self.query = self.query.filter(column > value)
            elif op == "lte":
                self.query = self.query.filter(column <= value)
            else:
                self.query = self.query.filter(column < value)
        return self

    def sort(self) -> "QueryShaper":
        order = self._param("sort") or self.default_sort
        clauses = []
        for part in (p.strip() for p in order.split(",")):
            if not part:
                continue
            descending = part.startswith("-")
            column = self._column(part.lstrip("-"))
            clauses.append(column.desc() if descending else column.asc())
        if clauses:
            self.query = self.query.order_by(*clauses)
        return self

    def paginate(self) -> "QueryShaper":
        page = self._positive_int("page", 1)
        limit = min(self._positive_int("limit", MAX_LIMIT), MAX_LIMIT)
        self.query = self.query.offset((page - 1) * limit).limit(limit)
        return self

    def _positive_int(self, name: str, default: int) -> int:
        raw = self._param(name)
        if raw is None:
            return default
        if not raw.isdigit() or int(raw) < 1:
            raise InvalidInputError(f"Invalid {name}: {raw}")
        return int(raw)

    @property
    def fields(self) -> Optional[List[str]]:
        """Requested projection, or ``None`` for every field."""
        raw = self._param("fields")
        if not raw:
            return None
        names = [f.strip() for f in raw.split(",") if f.strip()]
        unknown = [f for f in names if f not in self.projectable]
        if unknown:
            raise InvalidInputError(f"Invalid field: {unknown[0]}")
        return ["id"] + [f for f in names if f != "id"]

    def all(self) -> list:
        return self.query.all()


def project(row: Dict[str, object], fields: Optional[List[str]]) -> Dict[str, object]:
    if fields is None:
        return row
    return {key: value for key, value in row.items() if key in fields}
