"""
Error Taxonomy
==============
Exceptions raised by the composition pipeline and the batch processor.

Batch-level (nothing is processed):
    - MissingCapability: a required renderer/encoder was not provided
    - AlreadyRunning: a batch is already in flight
    - PageCountMismatch: raised by the pre-run verification

Item-level (caught at the item boundary, the batch continues):
    - DecodeError, PageCountMismatch, EncodingError

Recoverable:
    - ArchiveBuildError: triggers the individual-download fallback
"""

from __future__ import annotations

from typing import Optional


class LabelSheetError(RuntimeError):
    """Base class for every error raised by this package."""


class DecodeError(LabelSheetError):
    """The byte buffer is not a parseable PDF document."""


class PageCountMismatch(LabelSheetError):
    """A document does not have the expected number of pages."""

    def __init__(
        self,
        found: int,
        expected: int = 2,
        files: Optional[list[str]] = None,
        message: Optional[str] = None,
    ):
        self.found = found
        self.expected = expected
        self.files = list(files or [])
        super().__init__(
            message or f"Expected {expected} pages, found {found}"
        )


class MissingCapability(LabelSheetError):
    """One or more required capabilities were not injected."""

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(
            f"Missing capabilities: {', '.join(self.missing)}"
        )


class AlreadyRunning(LabelSheetError):
    """A batch is already being processed."""

    def __init__(self):
        super().__init__("A batch is already being processed")


class EncodingError(LabelSheetError):
    """The output PDF could not be generated."""


class ArchiveBuildError(LabelSheetError):
    """The ZIP archive could not be built."""


__all__ = [
    "LabelSheetError",
    "DecodeError",
    "PageCountMismatch",
    "MissingCapability",
    "AlreadyRunning",
    "EncodingError",
    "ArchiveBuildError",
]
