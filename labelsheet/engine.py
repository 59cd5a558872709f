"""
Batch Processor
===============
Main orchestrator that drives rendering, page transforms, layout and
encoding across a list of label PDFs.

Usage:
    processor = create_processor(config, callbacks)
    report = await processor.process_files(documents, BatchMode.PAIRS)
    # report.results is a list of ProcessedResult

Architecture:
    SourceDocument → PageRenderer → RasterPages → LayoutCompositor
    (PageTransform on page 2) → ComposedCanvas → DocumentEncoder →
    ProcessedResult → BatchReport

Items run strictly one after another. Every decode/encode stage is
awaited in a worker thread, but no two items are ever in flight at the
same time: a 300 DPI A4 canvas is large and peak memory stays bounded.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Union

from .callbacks import ProcessingCallbacks, StatusReporter
from .compositor import LayoutCompositor, LayoutConfig
from .encoder import DocumentEncoder
from .errors import (
    AlreadyRunning,
    DecodeError,
    LabelSheetError,
    MissingCapability,
    PageCountMismatch,
)
from .models import (
    BatchItemError,
    BatchMode,
    BatchReport,
    BatchRun,
    BatchState,
    ItemOutcome,
    ProcessedResult,
    RasterPage,
    ResultKind,
    Severity,
    SourceDocument,
)
from .renderer import PageRenderer

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# ─── Process-wide batch guard ────────────────────────────────────────────────

_batch_guard = threading.Lock()


def is_batch_running() -> bool:
    """True while any BatchProcessor is inside process_files."""
    return _batch_guard.locked()


@dataclass
class ProcessorConfig:
    """Configuration for the batch processor."""

    layout: LayoutConfig = field(default_factory=LayoutConfig)

    # Output filename patterns
    pair_prefix: str = "pair"
    single_prefix: str = "single"
    leftover_tag: str = "restante"
    output_extension: str = "pdf"

    # Share of the progress bar used by the pre-run page check
    verification_share: float = 30.0

    # Archive / downloads
    archive_prefix: str = "pdfs-procesados"
    download_spacing: float = 1.0

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """Configure the package logger (console, plus an optional file)."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    package_logger = logging.getLogger("labelsheet")
    package_logger.setLevel(level)

    # Console handler
    if not package_logger.handlers:
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        package_logger.addHandler(console)
    else:
        for handler in package_logger.handlers:
            handler.setLevel(level)

    # File handler
    if log_file:
        log_path = Path(log_file).absolute()
        already_attached = any(
            isinstance(h, logging.FileHandler) and Path(h.baseFilename) == log_path
            for h in package_logger.handlers
        )
        if not already_attached:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
            file_handler.setLevel(level)
            file_handler.setFormatter(
                logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
            )
            package_logger.addHandler(file_handler)


class MonotonicClock:
    """Epoch milliseconds that strictly increase on every call."""

    def __init__(self, source: Callable[[], float] = time.time):
        self.source = source
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            now = int(self.source() * 1000)
            if now <= self._last:
                now = self._last + 1
            self._last = now
            return now


generation_clock = MonotonicClock()


class BatchProcessor:
    """
    Runs a batch of label documents through the composition pipeline.

    Capabilities (renderer, encoder, compositor) are injected; a missing
    required capability fails the batch before anything is processed.

    State machine:
        IDLE → RUNNING → IDLE   (at least one output)
                       → FAILED (no output, or a batch-level precondition)
    """

    REQUIRED_CAPABILITIES = ("renderer", "encoder")

    def __init__(
        self,
        renderer: Optional[PageRenderer] = None,
        encoder: Optional[DocumentEncoder] = None,
        compositor: Optional[LayoutCompositor] = None,
        callbacks: Optional[ProcessingCallbacks] = None,
        config: Optional[ProcessorConfig] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.config = config or ProcessorConfig()
        self.renderer = renderer
        self.encoder = encoder
        self.compositor = compositor or LayoutCompositor(self.config.layout)
        self.run = BatchRun()
        self.reporter = StatusReporter(callbacks, self.run)
        self.clock = clock or generation_clock

    @property
    def is_running(self) -> bool:
        return self.run.state == BatchState.RUNNING

    # ─── Preconditions ────────────────────────────────────────────────────

    def check_capabilities(self):
        """
        Raises:
            MissingCapability: Listing every required capability not provided.
        """
        missing = [
            name for name in self.REQUIRED_CAPABILITIES
            if getattr(self, name) is None
        ]
        if missing:
            raise MissingCapability(missing)

    async def verify_documents(self, documents: list[SourceDocument]):
        """
        Re-check page counts right before the run. Time may have passed
        since the files were selected.

        Documents that cannot be decoded are left to fail at their own
        item boundary.

        Raises:
            PageCountMismatch: Naming every file without exactly two pages.
        """
        expected = self.config.layout.expected_pages
        share = self.config.verification_share
        total = len(documents)

        self.reporter.status(
            f"Final check: {expected} pages per file...", Severity.PROCESSING
        )

        invalid: list[tuple[str, int]] = []
        for index, document in enumerate(documents):
            try:
                count = await asyncio.to_thread(self.renderer.page_count, document)
            except DecodeError as e:
                logger.warning(f"Page check skipped for {document.name}: {e}")
            else:
                if count != expected:
                    invalid.append((document.name, count))

            self.reporter.progress((index + 1) / total * share)

        if invalid:
            details = ", ".join(
                f"{name} (expected {expected} pages, found {count})"
                for name, count in invalid
            )
            message = (
                f"Cannot process: {len(invalid)} file(s) do not have "
                f"exactly {expected} pages: {details}"
            )
            self.reporter.status(message, Severity.ERROR)
            self.reporter.reset_progress()
            raise PageCountMismatch(
                found=invalid[0][1],
                expected=expected,
                files=[name for name, _ in invalid],
                message=message,
            )

    # ─── Batch entry point ────────────────────────────────────────────────

    async def process_files(
        self,
        documents: list[SourceDocument],
        mode: Union[BatchMode, str] = BatchMode.PAIRS,
    ) -> BatchReport:
        """
        Process every document once, in pairs or as singles.

        Item failures are recorded in the report and never stop the batch.

        Raises:
            MissingCapability: A required capability was not injected.
            AlreadyRunning: Another batch is in flight.
            PageCountMismatch: A file failed the pre-run page check.
        """
        mode = BatchMode(mode)

        try:
            self.check_capabilities()
        except MissingCapability as e:
            self.reporter.status(f"Processing error: {e}", Severity.ERROR)
            raise

        if not _batch_guard.acquire(blocking=False):
            error = AlreadyRunning()
            # The in-flight batch owns self.run; only the listener hears this
            self.reporter.notify(f"Processing error: {error}", Severity.ERROR)
            raise error

        try:
            self.run.reset()
            self.run.state = BatchState.RUNNING
            self.reporter.reset_progress()

            report = BatchReport(mode=mode)
            documents = list(documents)

            if not documents:
                self.reporter.status("No files selected", Severity.ERROR)
                self.run.state = BatchState.FAILED
                return report

            await self.verify_documents(documents)

            logger.info(
                f"Starting batch: {len(documents)} file(s), mode={mode.value}"
            )
            self.reporter.status("Starting processing...", Severity.PROCESSING)

            if mode == BatchMode.PAIRS:
                await self._process_pairs(documents, report)
            else:
                await self._process_singles(documents, report)

            self.reporter.progress(100)
            self._finish(report)
            return report

        except Exception:
            self.run.state = BatchState.FAILED
            raise
        finally:
            # Cancellation and interrupts bypass the handler above
            if self.run.state == BatchState.RUNNING:
                self.run.state = BatchState.FAILED
            _batch_guard.release()

    # ─── Modes ────────────────────────────────────────────────────────────

    async def _process_pairs(self, documents: list[SourceDocument], report: BatchReport):
        total = len(documents)
        pair_total = math.ceil(total / 2)

        for index in range(0, total, 2):
            self._advance(index, total)

            if index + 1 < total:
                number = index // 2 + 1
                self.reporter.status(
                    f"Processing pair {number} of {pair_total}...",
                    Severity.PROCESSING,
                )
                outcome = await self._run_item(
                    label=f"pair {number}",
                    sources=documents[index:index + 2],
                    kind=ResultKind.PAIR,
                    ordinal=number,
                )
            else:
                self.reporter.status(
                    "Processing leftover file...", Severity.PROCESSING
                )
                outcome = await self._run_item(
                    label="leftover file",
                    sources=[documents[index]],
                    kind=ResultKind.SINGLE,
                    is_leftover=True,
                )

            report.add(outcome)

    async def _process_singles(self, documents: list[SourceDocument], report: BatchReport):
        total = len(documents)

        for index, document in enumerate(documents):
            self._advance(index, total)
            self.reporter.status(
                f"Processing file {index + 1} of {total}...",
                Severity.PROCESSING,
            )
            outcome = await self._run_item(
                label=document.name,
                sources=[document],
                kind=ResultKind.SINGLE,
                ordinal=index + 1,
            )
            report.add(outcome)

    def _advance(self, consumed: int, total: int):
        share = self.config.verification_share
        self.reporter.progress(share + (100 - share) * consumed / total)

    # ─── Item boundary ────────────────────────────────────────────────────

    async def _run_item(
        self,
        label: str,
        sources: list[SourceDocument],
        kind: ResultKind,
        ordinal: Optional[int] = None,
        is_leftover: bool = False,
    ) -> ItemOutcome:
        names = [d.name for d in sources]

        try:
            if len(sources) == 2:
                data = await self._compose_pair(sources[0], sources[1])
            else:
                data = await self._compose_single(sources[0])
        except Exception as e:
            if not isinstance(e, LabelSheetError):
                logger.exception(f"Unexpected failure in {label}")
            self.reporter.status(
                f"Error processing {label} ({', '.join(names)}): {e}",
                Severity.ERROR,
            )
            return ItemOutcome(error=BatchItemError(
                label=label,
                source_files=names,
                error_type=type(e).__name__,
                message=str(e),
            ))

        filename = self.output_filename(kind, ordinal, is_leftover)
        logger.info(f"Generated {filename} ({len(data) / 1024:.0f} KB)")

        return ItemOutcome(result=ProcessedResult(
            filename=filename,
            data=data,
            size=len(data),
            source_files=names,
            kind=kind,
            is_leftover=is_leftover,
            ordinal=ordinal,
        ))

    def output_filename(
        self,
        kind: ResultKind,
        ordinal: Optional[int] = None,
        is_leftover: bool = False,
    ) -> str:
        cfg = self.config
        timestamp = self.clock()
        ext = cfg.output_extension

        if is_leftover:
            return f"{cfg.single_prefix}_{cfg.leftover_tag}_{timestamp}.{ext}"
        prefix = cfg.pair_prefix if kind == ResultKind.PAIR else cfg.single_prefix
        return f"{prefix}_{ordinal:02d}_{timestamp}.{ext}"

    # ─── Pipeline ─────────────────────────────────────────────────────────

    async def _compose_single(self, document: SourceDocument) -> bytes:
        pages = await asyncio.to_thread(self.renderer.render, document)
        try:
            canvas = await asyncio.to_thread(self.compositor.single_layout, pages)
        finally:
            _release(pages)

        return await self._encode(canvas)

    async def _compose_pair(self, doc_a: SourceDocument, doc_b: SourceDocument) -> bytes:
        pages_a = await asyncio.to_thread(self.renderer.render, doc_a)
        try:
            pages_b = await asyncio.to_thread(self.renderer.render, doc_b)
        except Exception:
            _release(pages_a)
            raise

        try:
            canvas = await asyncio.to_thread(
                self.compositor.pair_layout, pages_a, pages_b
            )
        finally:
            _release(pages_a)
            _release(pages_b)

        return await self._encode(canvas)

    async def _encode(self, canvas: RasterPage) -> bytes:
        try:
            return await asyncio.to_thread(self.encoder.encode, canvas)
        finally:
            canvas.release()

    # ─── Completion ───────────────────────────────────────────────────────

    def _finish(self, report: BatchReport):
        if report.results:
            self.run.state = BatchState.IDLE
            self.reporter.status(
                f"Processing complete! {len(report.results)} PDF file(s) "
                f"generated ({report.total_size_mb:.2f} MB)",
                Severity.SUCCESS,
            )
        else:
            self.run.state = BatchState.FAILED
            self.reporter.status(
                "No file was processed successfully", Severity.ERROR
            )

        logger.info(
            f"Batch finished: {len(report.results)} output(s), "
            f"{len(report.failures)} failure(s)"
        )


def _release(pages: list[RasterPage]):
    for page in pages:
        page.release()


def create_processor(
    config: Optional[ProcessorConfig] = None,
    callbacks: Optional[ProcessingCallbacks] = None,
) -> BatchProcessor:
    """Build a processor wired with the PyMuPDF/Pillow capabilities."""
    config = config or ProcessorConfig()
    setup_logging(config.log_level, config.log_file)

    return BatchProcessor(
        renderer=PageRenderer(
            dpi=config.layout.dpi,
            expected_pages=config.layout.expected_pages,
        ),
        encoder=DocumentEncoder(),
        compositor=LayoutCompositor(config.layout),
        callbacks=callbacks,
        config=config,
    )
