"""Content keys: digests used both as dedup keys and as file name stems."""

from __future__ import annotations

import base64
import hashlib
import re

from . import constants

_WHITESPACE_RE = re.compile(r"\s+")


def content_key(data: bytes | str) -> str:
    """Return the hex digest of ``data`` (strings are UTF-8 encoded first)."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.new(constants.HASH_ALGORITHM, data).hexdigest()


def normalize_base64(text: str) -> str:
    """Strip every whitespace character and line break from base64 text."""
    return _WHITESPACE_RE.sub("", text)


def attachment_key(encoded: str) -> str:
    """Key of an attachment, computed over its encoded (base64) form."""
    return content_key(normalize_base64(encoded))


def file_key(data: bytes) -> str:
    """Key of decoded attachment bytes as found on disk.

    Re-encodes ``data`` canonically, so for any canonically encoded payload
    ``file_key(decoded) == attachment_key(encoded)``.
    """
    return content_key(base64.b64encode(data))
