"""
Exceptions raised by retailstar.
"""


class RetailStarError(Exception):
    """Base class for all retailstar errors."""


class StagingSchemaError(RetailStarError, ValueError):
    """The staging input is missing required columns or cannot be read."""


class SchemaInvariantError(RetailStarError):
    """A cleaned star-schema table violates one of its key or value invariants."""

    def __init__(self, table: str, message: str):
        self.table = table
        super().__init__(f"{table}: {message}")
