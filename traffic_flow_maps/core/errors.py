# traffic_flow_maps/core/errors.py
from __future__ import annotations


class TableFormatError(ValueError):
    """Base class for a page whose stretch table cannot be turned into records."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class MissingTableError(TableFormatError):
    pass


class MalformedStretchError(TableFormatError):
    pass


class MalformedYearError(TableFormatError):
    pass


class TableShapeError(TableFormatError):
    pass
