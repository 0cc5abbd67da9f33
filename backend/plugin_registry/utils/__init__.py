"""
Plugin Registry Utilities
Pagination cursors and the MongoDB query vocabulary
"""

from .cursor_codec import CursorPayload, decode_cursor, encode_cursor  # noqa: F401
from .mongo_query_builder import MongoQueryBuilder  # noqa: F401
