"""Row helpers over the Supabase table query builder.

Every call goes through ``_run`` so that client errors surface as
``BackendError`` and nothing above this module needs to know about
postgrest or httpx.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx
from postgrest.exceptions import APIError

from storefront.core.errors import BackendError

logger = logging.getLogger(__name__)


def _run(query, operation: str) -> List[Dict[str, Any]]:
    try:
        res = query.execute()
    except (APIError, httpx.HTTPError) as e:
        logger.error(f"{operation} failed: {e}")
        raise BackendError(operation, str(e)) from e
    return res.data or []


def _filtered(query, filters: Dict[str, Any]):
    for column, value in filters.items():
        if value is None:
            query = query.is_(column, "null")
        else:
            query = query.eq(column, value)
    return query


def select_rows(
    client,
    table: str,
    columns: str = "*",
    order_by: Optional[str] = None,
    desc: bool = False,
    limit: Optional[int] = None,
    in_: Optional[Dict[str, Iterable[Any]]] = None,
    **filters,
) -> List[Dict[str, Any]]:
    query = _filtered(client.table(table).select(columns), filters)
    for column, values in (in_ or {}).items():
        query = query.in_(column, list(values))
    if order_by:
        query = query.order(order_by, desc=desc)
    if limit is not None:
        query = query.limit(limit)
    return _run(query, f"select {table}")


def select_one(client, table: str, columns: str = "*", **filters) -> Optional[Dict[str, Any]]:
    rows = select_rows(client, table, columns, limit=1, **filters)
    return rows[0] if rows else None


def insert_rows(client, table: str, rows) -> List[Dict[str, Any]]:
    return _run(client.table(table).insert(rows), f"insert {table}")


def update_rows(client, table: str, values: Dict[str, Any], **filters) -> List[Dict[str, Any]]:
    # extra filters beyond the id act as a guard: nothing matches, nothing changes
    if not filters:
        raise ValueError("update_rows needs at least one filter")
    query = _filtered(client.table(table).update(values), filters)
    return _run(query, f"update {table}")


def delete_rows(client, table: str, **filters) -> List[Dict[str, Any]]:
    if not filters:
        raise ValueError("delete_rows needs at least one filter")
    query = _filtered(client.table(table).delete(), filters)
    return _run(query, f"delete {table}")
