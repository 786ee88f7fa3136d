"""Coordination errors."""


class StorageError(Exception):
    """Scratch namespace cannot be created, read or written."""

    def __init__(self, message: str = "Scratch storage unavailable"):
        self.message = message
        super().__init__(self.message)
