"""
Value codec — values travel as base64 of their UTF-8 bytes.

decode_value(encode_value(v)) == v for every str, including "" and
multi-byte text.
"""

from __future__ import annotations

import base64
import binascii

from recall.core.errors import MemoryOperationError, Validation


def encode_value(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def decode_value(encoded: str, key: str = "") -> str:
    """Decode a base64 value received from the server.

    Raises MemoryOperationError(Validation) when the payload is not valid
    base64 or not valid UTF-8 once decoded.
    """
    if not isinstance(encoded, str):
        raise MemoryOperationError(
            Validation(f"Expected base64 string for '{key}', got {type(encoded).__name__}"),
            operation="decode",
        )
    try:
        return base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise MemoryOperationError(
            Validation(f"Invalid stored value for '{key}': {e}", details=encoded),
            operation="decode",
        ) from e
