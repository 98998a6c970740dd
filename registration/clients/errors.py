"""Errors shared by the persistence clients."""


class StoreUnavailableError(Exception):
    """Raised when the persistence backend cannot be reached or read."""


__all__ = ["StoreUnavailableError"]
