"""
Tests for cursor pagination helpers
"""
import pytest
from datetime import datetime
from services.pagination import (
    encode_cursor,
    decode_cursor,
    clamp_limit,
    normalize_pagination_params,
    coerce_sort_value,
    DEFAULT_LIMIT,
    MAX_LIMIT,
)


@pytest.mark.unit
class TestCursorEncoding:
    """Tests for opaque cursor strings"""

    def test_decode_reads_back_fields(self):
        """Test that a cursor carries sort value, id and ordering"""
        cursor = encode_cursor(42, 'abc', 'createdAt', 'desc')
        assert decode_cursor(cursor) == {
            'sortValue': 42, 'id': 'abc', 'sortBy': 'createdAt', 'sortOrder': 'desc'
        }

    def test_cursor_is_url_safe(self):
        """Test cursors have no padding or URL-unsafe characters"""
        cursor = encode_cursor('a?b/c+d', 'x' * 37, 'businessName', 'asc')
        assert '=' not in cursor
        assert '+' not in cursor
        assert '/' not in cursor

    def test_datetime_sort_value_encoded_as_iso(self):
        """Test datetimes are stored as ISO strings"""
        cursor = encode_cursor(datetime(2026, 1, 2, 3, 4, 5), 1, 'updatedAt', 'desc')
        assert decode_cursor(cursor)['sortValue'] == '2026-01-02T03:04:05'

    def test_malformed_cursor_is_none(self):
        """Test garbage and empty cursors decode to None"""
        assert decode_cursor('') is None
        assert decode_cursor('not-a-cursor!!') is None
        assert decode_cursor(encode_cursor(1, 2, 'a', 'b')[:-4]) is None

    def test_coerce_iso_string(self):
        """Test ISO strings come back as datetimes"""
        assert coerce_sort_value('2026-01-02T03:04:05') == datetime(2026, 1, 2, 3, 4, 5)
        assert coerce_sort_value('Corner Cafe') == 'Corner Cafe'
        assert coerce_sort_value(5) == 5


@pytest.mark.unit
class TestParameters:
    """Tests for limit clamping and defaults"""

    def test_clamp_limit(self):
        """Test limits are clamped to 1..MAX_LIMIT"""
        assert clamp_limit(None) == DEFAULT_LIMIT
        assert clamp_limit('abc') == DEFAULT_LIMIT
        assert clamp_limit(0) == DEFAULT_LIMIT
        assert clamp_limit(-5) == 1
        assert clamp_limit(1000) == MAX_LIMIT
        assert clamp_limit('15') == 15

    def test_normalize_defaults(self):
        """Test defaults for an empty query"""
        params = normalize_pagination_params({})
        assert params == {
            'limit': DEFAULT_LIMIT,
            'cursor': '',
            'direction': 'next',
            'sortBy': 'createdAt',
            'sortOrder': 'desc',
        }

    def test_normalize_rejects_unknown_values(self):
        """Test unknown sort fields, orders and directions fall back"""
        params = normalize_pagination_params(
            {'sortBy': 'password', 'sortOrder': 'sideways', 'direction': 'up'},
            sort_fields={'createdAt': None, 'businessName': None},
        )
        assert params['sortBy'] == 'createdAt'
        assert params['sortOrder'] == 'desc'
        assert params['direction'] == 'next'

    def test_normalize_keeps_known_values(self):
        """Test known values pass through"""
        params = normalize_pagination_params(
            {'sortBy': 'businessName', 'sortOrder': 'asc', 'direction': 'prev', 'limit': '5'},
            sort_fields={'businessName': None},
        )
        assert params['sortBy'] == 'businessName'
        assert params['sortOrder'] == 'asc'
        assert params['direction'] == 'prev'
        assert params['limit'] == 5
