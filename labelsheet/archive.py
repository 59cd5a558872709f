"""
Archive Builder
===============
Bundles every generated PDF into one ZIP archive.

If the archive cannot be built, delivery falls back to handing out the
results one by one, spaced apart so the receiving side does not throttle
a burst of downloads.
"""

from __future__ import annotations

import asyncio
import io
import logging
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from .callbacks import ProcessingCallbacks, StatusReporter
from .errors import ArchiveBuildError
from .models import ProcessedResult, Severity
from .session import DownloadSession, DownloadSink

logger = logging.getLogger(__name__)

ARCHIVE_PREFIX = "pdfs-procesados"
ARCHIVE_EXTENSION = "zip"

# Fixed entry date so identical results give identical archive bytes
ZIP_ENTRY_DATE = (1980, 1, 1, 0, 0, 0)


@dataclass(frozen=True)
class Archive:
    """A built archive ready to be downloaded."""
    name: str
    data: bytes
    entry_count: int

    @property
    def size(self) -> int:
        return len(self.data)


class ArchiveBuilder:
    """Builds a DEFLATE-compressed ZIP from processed results."""

    def __init__(
        self,
        prefix: str = ARCHIVE_PREFIX,
        compresslevel: int = 6,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.prefix = prefix
        self.compresslevel = compresslevel
        self.now = now

    def archive_name(self, when: Optional[datetime] = None) -> str:
        when = when or self.now()
        return f"{self.prefix}-{when.strftime('%Y-%m-%d-%H-%M-%S')}.{ARCHIVE_EXTENSION}"

    def build(self, results: list[ProcessedResult]) -> Archive:
        """
        Raises:
            ArchiveBuildError: If there is nothing to archive or compression fails.
        """
        if not results:
            raise ArchiveBuildError("No results to archive")

        buffer = io.BytesIO()
        try:
            with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                for result in results:
                    info = zipfile.ZipInfo(result.filename, date_time=ZIP_ENTRY_DATE)
                    info.compress_type = zipfile.ZIP_DEFLATED
                    zf.writestr(info, result.data, compresslevel=self.compresslevel)
        except (OSError, RuntimeError, ValueError) as e:
            raise ArchiveBuildError(f"Failed to build ZIP archive: {e}") from e

        archive = Archive(
            name=self.archive_name(),
            data=buffer.getvalue(),
            entry_count=len(results),
        )
        logger.info(
            f"Built {archive.name} with {archive.entry_count} file(s) "
            f"({archive.size / (1024 * 1024):.2f} MB)"
        )
        return archive


class ArchiveDelivery:
    """Hands results to a download sink, as one ZIP or one by one."""

    def __init__(
        self,
        session: DownloadSession,
        sink: DownloadSink,
        builder: Optional[ArchiveBuilder] = None,
        callbacks: Optional[ProcessingCallbacks] = None,
        download_spacing: float = 1.0,
    ):
        self.session = session
        self.sink = sink
        self.builder = builder
        self.reporter = StatusReporter(callbacks)
        self.download_spacing = download_spacing

    def download(self, result: ProcessedResult):
        """Hand a single result to the sink. Safe to repeat."""
        path = self.session.expose(result.filename, result.data)
        self.sink(path, result.filename)

    async def deliver(self, results: list[ProcessedResult]) -> Optional[Archive]:
        """
        Deliver every result as one archive.

        Returns the archive, or None when the individual-download fallback
        was used instead.
        """
        if not results:
            self.reporter.status("No files to download", Severity.ERROR)
            return None

        self.reporter.status("Creating ZIP archive...", Severity.PROCESSING)

        try:
            if self.builder is None:
                raise ArchiveBuildError("ZIP support is not available")
            archive = await asyncio.to_thread(self.builder.build, results)
        except ArchiveBuildError as e:
            logger.error(f"Error creating ZIP: {e}")
            self.reporter.status("Error creating ZIP archive", Severity.ERROR)
            await self.download_individually(results)
            return None

        path = self.session.expose(archive.name, archive.data)
        self.sink(path, archive.name)
        self.reporter.status(
            f"ZIP downloaded with {archive.entry_count} files!",
            Severity.SUCCESS,
        )
        return archive

    async def download_individually(self, results: list[ProcessedResult]):
        """Fallback: one download per result, spaced apart."""
        self.reporter.status("Downloading files one by one...", Severity.INFO)

        for index, result in enumerate(results):
            if index:
                await asyncio.sleep(self.download_spacing)
            self.download(result)

        self.reporter.status(
            f"Downloaded {len(results)} files individually",
            Severity.SUCCESS,
        )
