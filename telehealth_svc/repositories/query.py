"""
Query composition for the document store.

QueryOptions describes a filtered, sorted, cursor-paginated read of one
collection. The repository turns it into SQL over the `documents` table;
nothing outside the repository layer builds SQL.

Usage:
    options = QueryOptions(
        filters=[Filter("status", "==", "active")],
        order_by="lastName",
        direction="asc",
        page_size=10,
    )
    page = repo.get_all(options)
    next_page = repo.get_all(options.next(page))
"""
import json
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence

from telehealth_svc.core.config import DEFAULT_PAGE_SIZE
from telehealth_svc.core.exceptions import InvalidQueryError

OPERATORS = (
    "==", "!=", "<", "<=", ">", ">=",
    "in", "not-in", "array-contains", "array-contains-any",
)
LIST_OPERATORS = {"in", "not-in", "array-contains-any"}
DIRECTIONS = ("asc", "desc")

DEFAULT_ORDER_BY = "createdAt"
DEFAULT_DIRECTION = "desc"

# Dotted JSON paths only; field names are interpolated into json_extract paths
FIELD_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$')


def validate_field_name(name: str) -> str:
    """
    Ensure a field name is a safe dotted path.

    Raises:
        InvalidQueryError: If the name contains anything but identifiers and dots.
    """
    if not isinstance(name, str) or not FIELD_PATTERN.match(name):
        raise InvalidQueryError(detail=f"Invalid field name: '{name}'", field=str(name))
    return name


@dataclass(frozen=True)
class Filter:
    """A single `field op value` predicate."""
    field: str
    op: str
    value: Any

    def __post_init__(self):
        validate_field_name(self.field)
        if self.op not in OPERATORS:
            raise InvalidQueryError(
                detail=f"Unsupported filter operator: '{self.op}'",
                operator=self.op,
                supported=list(OPERATORS),
            )
        if self.value is not None and self.op in LIST_OPERATORS and not isinstance(self.value, (list, tuple)):
            raise InvalidQueryError(
                detail=f"Operator '{self.op}' needs a list value",
                field=self.field,
            )

    @classmethod
    def parse(cls, expression: str) -> "Filter":
        """
        Parse a `field:op:value` query-string filter.

        The value is decoded as JSON when possible ("5", "true", '["a","b"]'),
        otherwise kept as a plain string. `null` decodes to None, which makes
        the filter a no-op.

        Raises:
            InvalidQueryError: If the expression does not have three parts.
        """
        parts = expression.split(":", 2)
        if len(parts) != 3 or not parts[0] or not parts[1]:
            raise InvalidQueryError(
                detail=f"Filter must look like field:op:value, got '{expression}'",
            )
        field_name, op, raw_value = parts
        try:
            value = json.loads(raw_value)
        except ValueError:
            value = raw_value
        return cls(field=field_name, op=op, value=value)


@dataclass(frozen=True)
class QueryOptions:
    """Filter, sort and pagination options for a collection read."""
    filters: Sequence[Filter] = field(default_factory=tuple)
    order_by: str = DEFAULT_ORDER_BY
    direction: str = DEFAULT_DIRECTION
    page_size: int = DEFAULT_PAGE_SIZE
    start_after: Optional[str] = None

    def __post_init__(self):
        validate_field_name(self.order_by)
        if self.direction not in DIRECTIONS:
            raise InvalidQueryError(detail=f"Invalid sort direction: '{self.direction}'")
        if self.page_size < 1:
            raise InvalidQueryError(detail="pageSize must be at least 1")
        object.__setattr__(self, "filters", tuple(self.filters))

    @property
    def active_filters(self) -> List[Filter]:
        """Filters with a value; None-valued filters are ignored."""
        return [f for f in self.filters if f.value is not None]

    def next(self, page: "Page") -> "QueryOptions":
        """Options for the page after `page`."""
        return replace(self, start_after=page.last_id)

    def cache_key(self) -> str:
        return json.dumps(
            {
                "filters": [[f.field, f.op, f.value] for f in self.active_filters],
                "order_by": self.order_by,
                "direction": self.direction,
                "page_size": self.page_size,
                "start_after": self.start_after,
            },
            sort_keys=True,
            default=str,
        )


@dataclass
class Page:
    """
    One page of documents.

    Attributes:
        items: Documents in sort order
        has_more: True when at least one more document follows
        last_id: Cursor for the next page (id of the last item), None when empty
        total: Number of documents matching the filters, ignoring pagination
    """
    items: List[Dict[str, Any]]
    has_more: bool
    last_id: Optional[str]
    total: int
