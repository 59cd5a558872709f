"""
File Selection
==============
Validation performed when files are picked, before a batch is started.

Checks, in order:
    - Batch size: at most MAX_FILES files selected
    - Extension: must end in .pdf
    - Size: non-empty and at most 1 MiB
    - Pages: exactly two (via the renderer)

Files that pass are added once; a file with the same name and size as an
already selected one is ignored.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Union

from .callbacks import ProcessingCallbacks, StatusReporter
from .errors import DecodeError
from .models import BatchMode, Severity, SourceDocument
from .renderer import PageRenderer
from .session import DownloadSession

logger = logging.getLogger(__name__)

MAX_FILES = 10
MAX_FILE_SIZE = 1 * 1024 * 1024  # 1 MiB
ALLOWED_EXTENSION = ".pdf"


@dataclass(frozen=True)
class SourceCheck:
    """Outcome of checking one file."""
    valid: bool
    reason: str
    page_count: Optional[int] = None


@dataclass
class SelectionReport:
    """What happened to one batch of added files."""
    accepted: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    rejected: list[tuple[str, str]] = field(default_factory=list)
    remaining: int = 0


def validate_source(
    document: SourceDocument,
    max_size: int = MAX_FILE_SIZE,
) -> SourceCheck:
    """Extension and size checks that need no decoding."""
    if not document.name.lower().endswith(ALLOWED_EXTENSION):
        return SourceCheck(False, "File must be a .pdf")

    if document.size > max_size:
        return SourceCheck(
            False, f"File is too large (max {max_size / (1024 * 1024):g} MB)"
        )

    if document.size == 0:
        return SourceCheck(False, "Empty file")

    return SourceCheck(True, "Valid PDF file")


class FileSelection:
    """The set of files the user has picked for the next batch."""

    def __init__(
        self,
        renderer: PageRenderer,
        callbacks: Optional[ProcessingCallbacks] = None,
        session: Optional[DownloadSession] = None,
        max_files: int = MAX_FILES,
        max_file_size: int = MAX_FILE_SIZE,
    ):
        self.renderer = renderer
        self.reporter = StatusReporter(callbacks)
        self.session = session
        self.max_files = max_files
        self.max_file_size = max_file_size
        self._documents: list[SourceDocument] = []

    @property
    def documents(self) -> list[SourceDocument]:
        return list(self._documents)

    @property
    def is_full(self) -> bool:
        return len(self._documents) >= self.max_files

    def __len__(self) -> int:
        return len(self._documents)

    def check_pages(self, document: SourceDocument) -> SourceCheck:
        expected = self.renderer.expected_pages
        try:
            count = self.renderer.page_count(document)
        except DecodeError:
            return SourceCheck(False, "Invalid PDF format or corrupt file", 0)

        if count != expected:
            return SourceCheck(
                False, f"Expected {expected} pages, found {count}", count
            )
        return SourceCheck(True, f"Valid ({expected} pages)", count)

    def add(self, documents: list[SourceDocument]) -> SelectionReport:
        """Validate and add files. Nothing is added if the limit would be exceeded."""
        report = SelectionReport()
        if not documents:
            report.remaining = self.max_files - len(self._documents)
            return report

        total_after = len(self._documents) + len(documents)
        if total_after > self.max_files:
            excess = total_after - self.max_files
            report.rejected = [
                (d.name, f"Limit of {self.max_files} files exceeded")
                for d in documents
            ]
            report.remaining = self.max_files - len(self._documents)
            self.reporter.status(
                f"Cannot add {len(documents)} file(s). Maximum {self.max_files} "
                f"allowed. Over by {excess} file(s).",
                Severity.ERROR,
            )
            return report

        self.reporter.status(
            f"Checking {len(documents)} file(s)...", Severity.PROCESSING
        )

        candidates = []
        for document in documents:
            check = validate_source(document, self.max_file_size)
            if check.valid:
                candidates.append(document)
            else:
                report.rejected.append((document.name, check.reason))

        for document in candidates:
            check = self.check_pages(document)
            if not check.valid:
                report.rejected.append((document.name, check.reason))
                continue

            if self._contains(document):
                report.duplicates.append(document.name)
                continue

            self._documents.append(document)
            report.accepted.append(document.name)

        report.remaining = self.max_files - len(self._documents)
        self._report(report)
        return report

    def _contains(self, document: SourceDocument) -> bool:
        return any(
            d.name == document.name and d.size == document.size
            for d in self._documents
        )

    def _report(self, report: SelectionReport):
        parts = []
        if report.accepted:
            parts.append(
                f"{len(report.accepted)} valid PDF file(s) with exactly "
                f"{self.renderer.expected_pages} pages."
            )
        if report.rejected:
            parts.append(
                f"{len(report.rejected)} file(s) skipped: "
                + ", ".join(f"{name} ({reason})" for name, reason in report.rejected)
            )

        if parts:
            severity = Severity.ERROR if report.rejected else Severity.SUCCESS
            self.reporter.status(" ".join(parts), severity)
        elif report.duplicates:
            self.reporter.status(
                f"{len(report.duplicates)} file(s) already selected", Severity.INFO
            )

        if self.is_full:
            self.reporter.status(
                f"Maximum of {self.max_files} files reached", Severity.PROCESSING
            )
        elif report.remaining <= 2:
            self.reporter.status(
                f"You can add {report.remaining} more file(s) "
                f"(maximum {self.max_files})",
                Severity.PROCESSING,
            )

    def remove(self, index: int) -> SourceDocument:
        removed = self._documents.pop(index)
        if self._documents:
            self.reporter.status(
                f"Removed: {removed.name}. {len(self._documents)} file(s) left",
                Severity.INFO,
            )
        else:
            self.reporter.status(
                "Please select PDF files to start", Severity.INFO
            )
        return removed

    def clear(self):
        """Drop every selected file and release exposed downloads."""
        self._documents.clear()
        if self.session is not None:
            self.session.release_all()
        self.reporter.status("Please select PDF files to start", Severity.INFO)

    def expected_outputs(self, mode: Union[BatchMode, str]) -> int:
        """How many PDFs a batch in this mode would produce."""
        count = len(self._documents)
        if BatchMode(mode) == BatchMode.PAIRS:
            return math.ceil(count / 2)
        return count
