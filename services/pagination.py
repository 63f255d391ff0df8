"""
Cursor-based pagination for SQLAlchemy queries.

A cursor encodes the sort value and id of the row at a page edge, so pages
stay stable while rows are inserted. Used by the deal list and the
kanban board.
"""

import base64
import json
import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import and_, or_

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
DEFAULT_KANBAN_LIMIT = 10
MAX_KANBAN_LIMIT = 50

ISO_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}')


# =============================================================================
# CURSOR ENCODING
# =============================================================================

def encode_cursor(sort_value: Any, item_id: Any, sort_by: str, sort_order: str) -> str:
    """Encode cursor data as URL-safe base64 JSON: {v, i, s, o}."""
    if isinstance(sort_value, datetime):
        sort_value = sort_value.isoformat()
    payload = json.dumps({'v': sort_value, 'i': item_id, 's': sort_by, 'o': sort_order})
    return base64.urlsafe_b64encode(payload.encode('utf-8')).decode('ascii').rstrip('=')


def decode_cursor(cursor: str) -> Optional[Dict[str, Any]]:
    """Decode a cursor string; returns None for anything malformed."""
    if not cursor:
        return None
    try:
        padded = cursor + '=' * (-len(cursor) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode('ascii')).decode('utf-8'))
        if not isinstance(data, dict) or 'i' not in data:
            return None
        return {
            'sortValue': data.get('v'),
            'id': data['i'],
            'sortBy': data.get('s'),
            'sortOrder': data.get('o'),
        }
    except (ValueError, TypeError, UnicodeError):
        return None


# =============================================================================
# PARAMETERS
# =============================================================================

def clamp_limit(value, default=DEFAULT_LIMIT, maximum=MAX_LIMIT) -> int:
    try:
        limit = int(value) if value not in (None, '') else default
    except (TypeError, ValueError):
        limit = default
    if limit == 0:
        limit = default
    return min(max(limit, 1), maximum)


def normalize_pagination_params(params: Dict[str, Any], sort_fields: Dict[str, Any] = None,
                                default_sort: str = 'createdAt') -> Dict[str, Any]:
    """
    Apply defaults and limits to raw pagination parameters.

    Unknown sort fields fall back to ``default_sort``; unknown directions
    and orders fall back to ``next`` and ``desc``.
    """
    sort_by = params.get('sortBy') or default_sort
    if sort_fields is not None and sort_by not in sort_fields:
        sort_by = default_sort
    sort_order = params.get('sortOrder') if params.get('sortOrder') in ('asc', 'desc') else 'desc'
    direction = params.get('direction') if params.get('direction') in ('next', 'prev') else 'next'
    return {
        'limit': clamp_limit(params.get('limit')),
        'cursor': params.get('cursor') or '',
        'direction': direction,
        'sortBy': sort_by,
        'sortOrder': sort_order,
    }


# =============================================================================
# QUERY HELPERS
# =============================================================================

def coerce_sort_value(value):
    """ISO date strings come back out of the cursor as datetimes."""
    if isinstance(value, str) and ISO_DATE_PATTERN.match(value):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return value
    return value


def _moves_down(sort_order: str, direction: str) -> bool:
    return (sort_order == 'desc' and direction == 'next') or (sort_order == 'asc' and direction == 'prev')


def build_cursor_condition(cursor: Dict[str, Any], direction: str, sort_order: str, sort_column, id_column):
    """
    (sort < v) OR (sort == v AND id < i) when walking downwards,
    the same with ``>`` when walking upwards.
    """
    sort_value = coerce_sort_value(cursor['sortValue'])
    if _moves_down(sort_order, direction):
        return or_(sort_column < sort_value, and_(sort_column == sort_value, id_column < cursor['id']))
    return or_(sort_column > sort_value, and_(sort_column == sort_value, id_column > cursor['id']))


def paginate(query, params: Dict[str, Any], sort_column, id_column,
             get_sort_value: Callable[[Any], Any], include_total_count: bool = False) -> Dict[str, Any]:
    """
    Apply cursor pagination to an ORM query.

    Args:
        query: Filtered SQLAlchemy query (no ordering or limit yet)
        params: Normalized pagination params
        sort_column: Column the page is ordered by
        id_column: Tie-breaking unique column
        get_sort_value: Reads the sort value off a result row

    Returns:
        {'items': [rows], 'pagination': {...}}
    """
    limit = params['limit']
    cursor = params.get('cursor') or ''
    direction = params['direction']
    sort_by = params['sortBy']
    sort_order = params['sortOrder']

    total_count = query.count() if include_total_count else None

    cursor_data = decode_cursor(cursor) if cursor else None
    if cursor_data:
        query = query.filter(build_cursor_condition(cursor_data, direction, sort_order, sort_column, id_column))
    elif cursor:
        logger.warning("Ignoring malformed pagination cursor")

    # Walking backwards reads rows nearest the cursor first, then flips them
    descending = _moves_down(sort_order, direction)
    if descending:
        query = query.order_by(sort_column.desc(), id_column.desc())
    else:
        query = query.order_by(sort_column.asc(), id_column.asc())

    rows = query.limit(limit + 1).all()
    has_more = len(rows) > limit
    items = rows[:limit]
    if direction == 'prev':
        items.reverse()

    def cursor_for(row):
        return encode_cursor(get_sort_value(row), row.id, sort_by, sort_order)

    pagination = {
        'nextCursor': cursor_for(items[-1]) if has_more and items else None,
        'prevCursor': cursor_for(items[0]) if cursor and items else None,
        'hasMore': has_more,
        'hasPrev': bool(cursor),
        'count': len(items),
    }
    if total_count is not None:
        pagination['totalCount'] = total_count

    return {'items': items, 'pagination': pagination}


def paginate_by_stage(query_for_stage: Callable[[str], Any], stages: List[str], params: Dict[str, Any],
                      sort_column, id_column, get_sort_value) -> Dict[str, Dict[str, Any]]:
    """
    Paginate each kanban column independently.

    ``params`` holds ``limitPerStage``, a ``cursors`` dict keyed by stage,
    ``sortBy`` and ``sortOrder``.
    """
    limit = clamp_limit(params.get('limitPerStage'), DEFAULT_KANBAN_LIMIT, MAX_KANBAN_LIMIT)
    cursors = params.get('cursors') or {}
    results = {}
    for stage in stages:
        page = paginate(
            query_for_stage(stage),
            {
                'limit': limit,
                'cursor': cursors.get(stage, ''),
                'direction': 'next',
                'sortBy': params.get('sortBy', 'updatedAt'),
                'sortOrder': params.get('sortOrder', 'desc'),
            },
            sort_column,
            id_column,
            get_sort_value,
        )
        results[stage] = {
            'items': page['items'],
            'nextCursor': page['pagination']['nextCursor'],
            'hasMore': page['pagination']['hasMore'],
        }
    return results
