"""
Shared query-string parameters for list endpoints.

    GET /api/v1/patients?orderBy=lastName&direction=asc&pageSize=50
        &filter=status:==:"active"&filter=age:>=:18&startAfter=<last id>

`filter` is repeatable and has the form `field:op:value`; the value is JSON
decoded when possible, otherwise taken as a string.
"""
from typing import List, Literal, Optional

from fastapi import Query

from telehealth_svc.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from telehealth_svc.repositories.query import DEFAULT_ORDER_BY, Filter, QueryOptions


def get_query_options(
    order_by: str = Query(DEFAULT_ORDER_BY, alias="orderBy", description="Field to sort by"),
    direction: Literal["asc", "desc"] = Query("desc", description="Sort direction"),
    page_size: int = Query(
        min(DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE),
        alias="pageSize",
        ge=1,
        le=MAX_PAGE_SIZE,
        description=f"Documents per page (1-{MAX_PAGE_SIZE})",
    ),
    start_after: Optional[str] = Query(None, alias="startAfter", description="Id of the last document of the previous page"),
    filters: List[str] = Query(
        [],
        alias="filter",
        description="Repeatable `field:op:value` filter; ops: ==, !=, <, <=, >, >=, in, not-in, array-contains, array-contains-any",
    ),
) -> QueryOptions:
    """
    Raises:
        InvalidQueryError: 400 for malformed filters or field names.
    """
    return QueryOptions(
        filters=[Filter.parse(expression) for expression in filters],
        order_by=order_by,
        direction=direction,
        page_size=page_size,
        start_after=start_after,
    )
