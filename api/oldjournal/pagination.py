from __future__ import annotations

import base64
import json
from datetime import datetime
from typing import Any

from sqlalchemy import and_, or_

# Cursor format: base64-encoded JSON with {id: last_record_id, sort: sort_field_value}.
# Keyset pagination avoids OFFSET, which is slow for large journals.


def encode_cursor(last_id: Any, sort_value: datetime | None = None) -> str:
    """
    Encode a pagination cursor from the last record's ID and sort value.

    Example:
        cursor = encode_cursor(42, datetime(2003, 5, 1, 12, 0))
    """
    cursor_data: dict[str, Any] = {"id": last_id}
    if sort_value is not None:
        cursor_data["sort"] = sort_value.isoformat()

    json_str = json.dumps(cursor_data, default=str)
    return base64.urlsafe_b64encode(json_str.encode()).decode()


def decode_cursor(cursor: str | None) -> tuple[Any, datetime | None] | None:
    """
    Decode a pagination cursor to extract the last record's ID and sort value.

    Returns:
        Tuple of (last_id, sort_value) if cursor is valid, None otherwise
    """
    if not cursor:
        return None

    try:
        decoded = base64.urlsafe_b64decode(cursor.encode()).decode()
        cursor_data = json.loads(decoded)
        last_id = cursor_data.get("id")
        sort_raw = cursor_data.get("sort")

        if last_id is None:
            return None

        sort_value = datetime.fromisoformat(sort_raw) if sort_raw else None
        return (last_id, sort_value)
    except (ValueError, TypeError, AttributeError, json.JSONDecodeError):
        # Invalid cursor format
        return None


def apply_cursor_filter(query, model_class, cursor: str | None, sort_field: str = "created_at"):
    """
    Restrict a newest-first query to rows after the cursor.

    Adds: WHERE sort < :sort OR (sort = :sort AND id < :id)
    Invalid cursors are ignored and the first page is returned.
    """
    cursor_data = decode_cursor(cursor)
    if not cursor_data:
        return query

    last_id, sort_value = cursor_data
    id_column = model_class.id
    if sort_value is None:
        return query.filter(id_column < last_id)

    sort_column = getattr(model_class, sort_field)
    return query.filter(
        or_(
            sort_column < sort_value,
            and_(sort_column == sort_value, id_column < last_id),
        )
    )


def paginate(query, model_class, cursor: str | None, limit: int, sort_field: str = "created_at"):
    """
    Run a newest-first query one page at a time.

    Returns:
        (items, next_cursor); next_cursor is None on the last page
    """
    sort_column = getattr(model_class, sort_field)
    query = apply_cursor_filter(query, model_class, cursor, sort_field)
    rows = query.order_by(sort_column.desc(), model_class.id.desc()).limit(limit + 1).all()

    if len(rows) <= limit:
        return rows, None

    items = rows[:limit]
    last = items[-1]
    return items, encode_cursor(last.id, getattr(last, sort_field))
