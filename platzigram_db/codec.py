"""Public identifiers for records.

Internal keys are UUID strings generated on insert. Callers only ever see
the base62 form of the key's 128-bit value, which is shorter and does not
expose the raw key.
"""
import uuid

import base62


def encode(key: str) -> str:
    """Encodes an internal UUID key as a base62 public id."""
    return base62.encode(uuid.UUID(key).int)


def decode(public_id: str) -> str:
    """Decodes a public id back to the internal UUID key.

    Raises ValueError when ``public_id`` is not a valid base62 string or
    does not fit in 128 bits.
    """
    return str(uuid.UUID(int=base62.decode(public_id)))
