"""
Data Models
===========
Pydantic models shared by the composition pipeline and the batch processor.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field, computed_field


# ─── Enums ────────────────────────────────────────────────────────────────────


class BatchMode(str, Enum):
    """How a file list is turned into outputs."""
    PAIRS = "pairs"
    SINGLES = "singles"


class ResultKind(str, Enum):
    """Classification of a processed output."""
    PAIR = "pair"
    SINGLE = "single"


class Severity(str, Enum):
    """Severity of a status message sent to the UI collaborator."""
    INFO = "info"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"


class BatchState(str, Enum):
    """Lifecycle of one batch run."""
    IDLE = "idle"
    RUNNING = "running"
    FAILED = "failed"


# ─── Inputs ───────────────────────────────────────────────────────────────────


class SourceDocument(BaseModel):
    """An input PDF: raw bytes plus its display name."""
    model_config = ConfigDict(frozen=True)

    name: str
    data: bytes = Field(repr=False)

    @computed_field
    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: str | Path) -> "SourceDocument":
        path = Path(path)
        return cls(name=path.name, data=path.read_bytes())


# ─── Raster / Geometry ────────────────────────────────────────────────────────


class RasterPage(BaseModel):
    """
    A rendered page (or composed canvas) in device pixels.
    Owned by the stage that created it until the next stage consumes it.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    image: Image.Image

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size

    def release(self):
        """Drop the underlying pixel buffer."""
        self.image.close()


class Placement(BaseModel):
    """Destination rectangle on a target canvas."""
    model_config = ConfigDict(frozen=True)

    x: int
    y: int
    width: int = Field(ge=0)
    height: int = Field(ge=0)

    @property
    def origin(self) -> tuple[int, int]:
        return (self.x, self.y)

    @property
    def box(self) -> tuple[int, int, int, int]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)


# ─── Results ──────────────────────────────────────────────────────────────────


class ProcessedResult(BaseModel):
    """One generated output PDF and where it came from."""
    model_config = ConfigDict(frozen=True)

    filename: str
    data: bytes = Field(repr=False)
    size: int = Field(ge=0)
    source_files: list[str]
    kind: ResultKind
    is_leftover: bool = False
    ordinal: Optional[int] = Field(
        default=None,
        description="Pair number or file number (1-based); None for a leftover"
    )


class BatchItemError(BaseModel):
    """A batch item that could not be processed."""
    label: str
    source_files: list[str]
    error_type: str
    message: str


class ItemOutcome(BaseModel):
    """Result of one batch item: either a result or an error."""
    result: Optional[ProcessedResult] = None
    error: Optional[BatchItemError] = None

    @property
    def ok(self) -> bool:
        return self.result is not None


class BatchReport(BaseModel):
    """Everything produced by one batch run."""
    mode: BatchMode
    results: list[ProcessedResult] = Field(default_factory=list)
    failures: list[BatchItemError] = Field(default_factory=list)

    @computed_field
    @property
    def total_size(self) -> int:
        return sum(r.size for r in self.results)

    @computed_field
    @property
    def total_size_mb(self) -> float:
        return round(self.total_size / (1024 * 1024), 2)

    @property
    def succeeded(self) -> bool:
        return bool(self.results)

    def add(self, outcome: ItemOutcome):
        if outcome.ok:
            self.results.append(outcome.result)
        else:
            self.failures.append(outcome.error)


class BatchRun(BaseModel):
    """Process-wide state of the current (or last) batch run."""
    state: BatchState = BatchState.IDLE
    progress: float = Field(default=0.0, ge=0, le=100)
    status_message: str = ""
    severity: Severity = Severity.INFO

    def reset(self):
        self.state = BatchState.IDLE
        self.progress = 0.0
        self.status_message = ""
        self.severity = Severity.INFO


def sort_results(results: list[ProcessedResult]) -> list[ProcessedResult]:
    """Pairs first by pair number, then singles by file number."""
    def key(r: ProcessedResult):
        return (
            0 if r.kind == ResultKind.PAIR else 1,
            1 if r.is_leftover else 0,
            r.ordinal or 0,
        )
    return sorted(results, key=key)
