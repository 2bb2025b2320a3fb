"""Random token generation for owner identifiers and entity versions."""

from uuid import uuid4


def new_token() -> str:
    """
    Return a fresh unpredictable 128-bit token as 32 lowercase hex characters.

    Used both for lock owner identifiers (one per client instance) and for
    entity versions (one per persisted change).
    """
    return uuid4().hex
