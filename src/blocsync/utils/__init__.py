from .clock import now_ms
from .hashing import content_checksum, md5_hash
from .redact import redact

__all__ = [
    "content_checksum",
    "md5_hash",
    "now_ms",
    "redact",
]
