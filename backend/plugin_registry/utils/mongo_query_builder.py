"""
MongoQueryBuilder - Fluent Mongo Filter/Sort Construction
Private query vocabulary of the MongoDB plugin store

Keeps every MongoDB operator ($or, $gt, ...) out of the store contract.
Keyset pagination resumes strictly after the (sort value, _id) pair encoded
in a cursor, following the compound index that backs the ordering.

Usage:
    query = (MongoQueryBuilder()
        .order_by(STARS_ORDER)
        .after_cursor(payload)
        .limit(page_size + 1)
    )

    filter_doc, sort, limit = query.build()
    docs = await collection.find(filter_doc, sort=sort, limit=limit).to_list(length=limit)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING

from ..exceptions import InvalidCursorError
from .cursor_codec import CursorPayload

# Orderings materialized by the bootstrap indexes
STARS_ORDER: List[Tuple[str, int]] = [("stars", DESCENDING), ("_id", ASCENDING)]
DISPLAY_NAME_ORDER: List[Tuple[str, int]] = [("displayName", ASCENDING), ("_id", ASCENDING)]


def parse_object_id(value: str) -> Optional[ObjectId]:
    """
    Parse a plugin identifier.

    Returns:
        The ObjectId, or None if the value cannot be an identifier of this store
    """
    if not isinstance(value, str):
        return None

    try:
        return ObjectId(value)
    except InvalidId:
        return None


@dataclass
class MongoQueryBuilder:
    """
    Fluent builder for find() arguments

    Attributes:
        _conditions: Filter clauses combined with $and
        _sort: (field, direction) pairs, primary key first
        _limit: Maximum number of documents (None = unlimited)
    """

    _conditions: List[Dict[str, Any]] = field(default_factory=list)
    _sort: List[Tuple[str, int]] = field(default_factory=list)
    _limit: Optional[int] = None

    def where(self, condition: Dict[str, Any]) -> "MongoQueryBuilder":
        """
        Add a filter clause

        Example:
            builder.where({"name": "github.com/acme/plugin"})
        """
        self._conditions.append(condition)
        return self

    def where_id(self, object_id: ObjectId) -> "MongoQueryBuilder":
        """Match a single document by _id"""
        return self.where({"_id": object_id})

    def order_by(self, sort: List[Tuple[str, int]]) -> "MongoQueryBuilder":
        """
        Set the ordering; the last key must be _id so the order is total

        Raises:
            ValueError: If the ordering is empty or not closed by _id
        """
        if not sort or sort[-1][0] != "_id":
            raise ValueError("Ordering must end with the _id tie-breaker")

        self._sort = list(sort)
        return self

    def after_cursor(self, cursor: Optional[CursorPayload]) -> "MongoQueryBuilder":
        """
        Resume strictly after the cursor position in the current ordering

        For STARS_ORDER and a cursor (42, id) this adds:
            {"$or": [{"stars": {"$lt": 42}}, {"stars": 42, "_id": {"$gt": id}}]}

        Raises:
            ValueError: If no ordering was set
            InvalidCursorError: If the cursor identifier is not an ObjectId
        """
        if cursor is None:
            return self

        if len(self._sort) != 2:
            raise ValueError("after_cursor requires an ordering of (field, _id)")

        last_id = parse_object_id(cursor.last_id)
        if last_id is None:
            raise InvalidCursorError("identifier is not a valid object id")

        sort_field, direction = self._sort[0]
        id_direction = self._sort[1][1]
        field_op = "$lt" if direction == DESCENDING else "$gt"
        id_op = "$lt" if id_direction == DESCENDING else "$gt"

        return self.where(
            {
                "$or": [
                    {sort_field: {field_op: cursor.sort_value}},
                    {sort_field: cursor.sort_value, "_id": {id_op: last_id}},
                ]
            }
        )

    def limit(self, limit: int) -> "MongoQueryBuilder":
        """
        Limit the number of documents returned

        Raises:
            ValueError: If limit is not positive
        """
        if limit < 1:
            raise ValueError("Limit must be positive")

        self._limit = limit
        return self

    def build_filter(self) -> Dict[str, Any]:
        """Combine the clauses into one filter document"""
        if not self._conditions:
            return {}
        if len(self._conditions) == 1:
            return dict(self._conditions[0])
        return {"$and": list(self._conditions)}

    def build(self) -> Tuple[Dict[str, Any], List[Tuple[str, int]], int]:
        """
        Build find() arguments

        Returns:
            Tuple of (filter, sort, limit); limit 0 means unlimited for pymongo
        """
        return self.build_filter(), list(self._sort), self._limit or 0
