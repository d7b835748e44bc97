"""MD5 helpers for content checksums.

The stores compare the checksum of incoming content with the stored one to
report ``NO_CHANGE`` instead of rewriting identical content.  They are
**not** used for security purposes.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from blocsync.content import remove_update_time_state


def md5_hash(data: str) -> str:
    """Return the hex-encoded MD5 digest of *data*.

    The string is encoded as UTF-8 before hashing.

    Examples
    --------
    >>> md5_hash("hello")
    '5d41402abc4b2a76b9719d911017c592'
    """
    return hashlib.md5(data.encode("utf-8")).hexdigest()


def content_checksum(content: str) -> str:
    """Checksum of serialized bloc content, ignoring key order and ``updateAt``.

    Two serializations of the same node compare equal even when the
    editor wrote their keys in a different order or only the update
    timestamp moved.  Content that is not a JSON object is hashed as-is.

    Examples
    --------
    >>> a = '{"type": "paragraph", "$": {"id": "x", "updateAt": "1"}}'
    >>> b = '{"$": {"updateAt": "2", "id": "x"}, "type": "paragraph"}'
    >>> content_checksum(a) == content_checksum(b)
    True
    """
    try:
        data: Any = json.loads(content)
    except ValueError:
        return md5_hash(content)
    if not isinstance(data, dict):
        return md5_hash(content)
    remove_update_time_state(data)
    return md5_hash(json.dumps(data, sort_keys=True, ensure_ascii=False))
