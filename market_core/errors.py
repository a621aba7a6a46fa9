from __future__ import annotations

from enum import Enum


class DatasetError(ValueError):
    """The data-source envelope could not be validated."""


class ResultNote(str, Enum):
    """Non-fatal conditions reported alongside a computed payload."""

    EMPTY_RESULT = "empty_result"
    AMBIGUOUS_MATCH = "ambiguous_match"
    DEGENERATE_INDEX = "degenerate_index"
    MISSING_YEAR_VALUE = "missing_year_value"
