"""
Encoding helpers — base64 and orjson envelopes.

Every encrypted envelope travels as base64(orjson(dict)), with binary
fields base64-encoded inside the dict.
"""
import time
import base64
from typing import Any

import orjson


def b64e(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64d(data: str) -> bytes:
    return base64.b64decode(data.encode("ascii"))


def b64url(data: bytes) -> str:
    """Unpadded base64url, used for addresses."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def canonical_json(obj: Any) -> bytes:
    """Deterministic JSON for signing."""
    return orjson.dumps(obj, option=orjson.OPT_SORT_KEYS)


def json_to_base64(obj: Any) -> str:
    return b64e(orjson.dumps(obj))


def base64_to_json(data: str) -> Any:
    return orjson.loads(b64d(data))


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)
