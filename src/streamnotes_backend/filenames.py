from __future__ import annotations

import re
import secrets
import string
import time

_WHITESPACE_RE = re.compile(r"\s+")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits
_TOKEN_LENGTH = 11


def sanitize_filename(filename: str | None, *, fallback: str = "file") -> str:
    """Make a client filename safe to embed in an object key.

    Whitespace runs collapse to a single underscore, so "a b.txt" becomes "a_b.txt".
    """
    v = (filename or "").strip()
    # Defend against client-supplied paths.
    v = v.split("/")[-1].split("\\")[-1]
    # Tabs and newlines are whitespace: collapse them before dropping other control chars.
    v = _WHITESPACE_RE.sub("_", v)
    v = _CONTROL_RE.sub("", v)
    if not v or v in {".", ".."}:
        v = fallback
    # S3 keys are limited to 1024 bytes; leave room for the prefix.
    if len(v) > 200:
        v = v[-200:]
    return v


def random_token(length: int = _TOKEN_LENGTH) -> str:
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


def build_attachment_storage_key(filename: str | None, *, now_ms: int | None = None) -> str:
    # Layout: {epoch_ms}_{token}_{sanitized_name}. The token keeps keys unique even
    # for identical names uploaded within the same millisecond.
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{ts}_{random_token()}_{sanitize_filename(filename)}"
