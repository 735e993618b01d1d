from __future__ import annotations


class OffsetSearchError(RuntimeError):
    exit_code = 2


class InputError(OffsetSearchError, ValueError):
    """Model/space inputs that cannot be searched (raised before any work)."""

    exit_code = 2


class PointSetFormatError(OffsetSearchError, ValueError):
    exit_code = 2
