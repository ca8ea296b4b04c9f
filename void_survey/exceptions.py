"""Survey error types.

Numeric parsing, catalog loading and remote submission never raise; these
exceptions cover the few places a caller has to be told something went wrong.
"""

from __future__ import annotations


class SurveyError(Exception):
    """Base class for survey errors."""


class SurveyValidationError(SurveyError):
    """A blank name or address on the start screen, or a field value the record cannot hold."""


class ItemNotFoundError(SurveyError):
    """An update addressed a line item that does not exist."""

    def __init__(self, section: str, ref):
        super().__init__(f"No item {ref!r} in section {section!r}")
        self.section = section
        self.ref = ref


class SurveyImportError(SurveyError):
    """The uploaded workbook could not be read at all."""


class DraftVersionError(SurveyError):
    """A saved draft carries a schema version this code does not know."""


class DraftLoadError(SurveyError):
    """A saved draft is unreadable: corrupt JSON or items that do not validate."""
