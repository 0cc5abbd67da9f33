"""
Cursor Codec - Opaque Pagination Tokens

A token carries the sort-key value of the last item on the previous page and
that item's identifier, so a listing can resume a stable keyset traversal.

Wire format:
    URL-safe base64 (no padding) of compact JSON
    {"sortValue": <int stars | str display name>, "lastId": "<identifier>"}

Decoding never falls back to the first page: any malformed or tampered token
raises InvalidCursorError so clients see the problem explicitly.

Usage:
    token = encode_cursor(CursorPayload(sort_value=42, last_id=plugin.id))
    payload = decode_cursor(token, sort_type=int)
"""

import base64
import binascii
import json
from typing import Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

from ..exceptions import InvalidCursorError


class CursorPayload(BaseModel):
    """Decoded pagination token"""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    sort_value: Union[StrictInt, StrictStr] = Field(..., alias="sortValue")
    last_id: StrictStr = Field(..., alias="lastId", min_length=1)


def encode_cursor(payload: CursorPayload) -> str:
    """
    Encode a cursor payload into an opaque token.

    Args:
        payload: Sort value and identifier of the last item on the page

    Returns:
        URL-safe token without padding
    """
    raw = json.dumps(payload.model_dump(by_alias=True), separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).rstrip(b"=").decode("ascii")


def decode_cursor(token: str, sort_type: Optional[Type] = None) -> CursorPayload:
    """
    Decode a token produced by encode_cursor.

    Args:
        token: Opaque token from a previous page
        sort_type: Expected type of the sort value (int for the stars
                   listing, str for the display name search). None accepts both.

    Returns:
        The decoded CursorPayload

    Raises:
        InvalidCursorError: If the token is malformed, tampered, or was
                            produced by a different listing
    """
    if not token:
        raise InvalidCursorError("empty token")

    try:
        padded = token + "=" * (-len(token) % 4)
        raw = base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise InvalidCursorError(f"undecodable token ({type(e).__name__})") from e

    if not isinstance(data, dict):
        raise InvalidCursorError("token does not hold an object")

    try:
        payload = CursorPayload.model_validate(data)
    except ValidationError as e:
        raise InvalidCursorError(f"unexpected token shape ({e.error_count()} errors)") from e

    if sort_type is not None and not isinstance(payload.sort_value, sort_type):
        raise InvalidCursorError(
            f"sort value has type {type(payload.sort_value).__name__}, "
            f"expected {sort_type.__name__}"
        )

    # Anything that does not re-encode to the same token was altered in transit
    if encode_cursor(payload) != token.rstrip("="):
        raise InvalidCursorError("token is not in canonical form")

    return payload
