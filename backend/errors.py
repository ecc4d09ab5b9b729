from __future__ import annotations


class HeatgridError(Exception):
    """
    Base class for errors raised while fetching data for a layer.

    Raised inside the source/engine/agg stages and caught at the layer sync boundary.
    """


class NotFoundError(HeatgridError):
    """A referenced data source (or field) no longer exists."""


class SchemaError(HeatgridError):
    """The data source schema does not fit the request (missing/mistyped field)."""


class BackendError(HeatgridError):
    """Query execution failed (network or server side)."""


class MalformedResponseError(HeatgridError):
    """The aggregation response does not have the expected shape."""
