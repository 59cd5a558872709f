"""
Test Suite for Archive Delivery and Download Sessions
=====================================================
"""

from __future__ import annotations

import io
import zipfile
from datetime import datetime, timezone

import pytest

from labelsheet.archive import ArchiveBuilder, ArchiveDelivery
from labelsheet.callbacks import ProcessingCallbacks
from labelsheet.errors import ArchiveBuildError
from labelsheet.models import ProcessedResult, ResultKind, Severity
from labelsheet.session import DirectorySink, DownloadSession

FIXED_NOW = datetime(2026, 10, 19, 16, 56, 0, tzinfo=timezone.utc)


def make_result(index: int, kind: ResultKind = ResultKind.SINGLE) -> ProcessedResult:
    data = f"%PDF-1.7 fake output {index}".encode() * 20
    return ProcessedResult(
        filename=f"{kind.value}_{index:02d}_17000000000{index:02d}.pdf",
        data=data,
        size=len(data),
        source_files=[f"label_{index}.pdf"],
        kind=kind,
        ordinal=index,
    )


class FailingBuilder(ArchiveBuilder):
    def build(self, results):
        raise ArchiveBuildError("disk full")


class RecordingSink:
    def __init__(self):
        self.calls = []

    def __call__(self, path, filename):
        self.calls.append((filename, path.read_bytes()))


@pytest.fixture
def results():
    return [make_result(i) for i in range(1, 6)]


@pytest.fixture
def statuses():
    return []


@pytest.fixture
def callbacks(statuses):
    return ProcessingCallbacks(
        on_status=lambda message, severity: statuses.append((message, severity))
    )


@pytest.fixture
def no_sleep(monkeypatch):
    """Record download spacing instead of waiting."""
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr("labelsheet.archive.asyncio.sleep", fake_sleep)
    return delays


# ═══════════════════════════════════════════════════════════════════════════════
# ARCHIVE BUILDER
# ═══════════════════════════════════════════════════════════════════════════════


class TestArchiveBuilder:
    """ZIP construction."""

    def test_one_entry_per_result(self, results):
        archive = ArchiveBuilder(now=lambda: FIXED_NOW).build(results)

        assert archive.entry_count == 5
        with zipfile.ZipFile(io.BytesIO(archive.data)) as zf:
            assert zf.namelist() == [r.filename for r in results]
            for info in zf.infolist():
                assert info.compress_type == zipfile.ZIP_DEFLATED
            for result in results:
                assert zf.read(result.filename) == result.data

    def test_archive_name(self):
        builder = ArchiveBuilder(now=lambda: FIXED_NOW)
        assert builder.archive_name() == "pdfs-procesados-2026-10-19-16-56-00.zip"

    def test_custom_prefix(self):
        builder = ArchiveBuilder(prefix="labels", now=lambda: FIXED_NOW)
        assert builder.archive_name().startswith("labels-2026-10-19-")

    def test_identical_input_gives_identical_bytes(self, results):
        builder = ArchiveBuilder(now=lambda: FIXED_NOW)
        assert builder.build(results).data == builder.build(results).data

    def test_empty_input_rejected(self):
        with pytest.raises(ArchiveBuildError):
            ArchiveBuilder().build([])


# ═══════════════════════════════════════════════════════════════════════════════
# DELIVERY
# ═══════════════════════════════════════════════════════════════════════════════


class TestArchiveDelivery:
    """Archive download and the one-by-one fallback."""

    @pytest.mark.asyncio
    async def test_archive_delivered_once(self, results, callbacks, statuses, tmp_path):
        sink = RecordingSink()
        with DownloadSession(base_dir=str(tmp_path)) as session:
            delivery = ArchiveDelivery(
                session, sink, ArchiveBuilder(now=lambda: FIXED_NOW), callbacks
            )
            archive = await delivery.deliver(results)

            assert archive is not None
            assert archive.name in session
            assert sink.calls == [(archive.name, archive.data)]

        assert statuses[-1] == ("ZIP downloaded with 5 files!", Severity.SUCCESS)

    @pytest.mark.asyncio
    async def test_build_failure_falls_back(
        self, results, callbacks, statuses, no_sleep, tmp_path
    ):
        sink = RecordingSink()
        with DownloadSession(base_dir=str(tmp_path)) as session:
            delivery = ArchiveDelivery(
                session, sink, FailingBuilder(), callbacks, download_spacing=1.0
            )
            archive = await delivery.deliver(results)

        assert archive is None
        assert [name for name, _ in sink.calls] == [r.filename for r in results]
        assert no_sleep == [1.0] * (len(results) - 1)

        messages = [m for m, _ in statuses]
        assert "Error creating ZIP archive" in messages
        assert statuses[-1] == ("Downloaded 5 files individually", Severity.SUCCESS)

    @pytest.mark.asyncio
    async def test_missing_builder_falls_back(self, results, no_sleep, tmp_path):
        sink = RecordingSink()
        with DownloadSession(base_dir=str(tmp_path)) as session:
            delivery = ArchiveDelivery(session, sink, builder=None)
            assert await delivery.deliver(results[:2]) is None

        assert len(sink.calls) == 2
        assert len(no_sleep) == 1

    @pytest.mark.asyncio
    async def test_nothing_to_deliver(self, callbacks, statuses, tmp_path):
        sink = RecordingSink()
        with DownloadSession(base_dir=str(tmp_path)) as session:
            delivery = ArchiveDelivery(session, sink, ArchiveBuilder(), callbacks)
            assert await delivery.deliver([]) is None

        assert sink.calls == []
        assert statuses == [("No files to download", Severity.ERROR)]

    def test_repeated_download_reuses_handle(self, tmp_path):
        sink = RecordingSink()
        result = make_result(1)
        with DownloadSession(base_dir=str(tmp_path)) as session:
            delivery = ArchiveDelivery(session, sink)
            delivery.download(result)
            delivery.download(result)

            assert len(session) == 1
            assert sink.calls == [(result.filename, result.data)] * 2


# ═══════════════════════════════════════════════════════════════════════════════
# DOWNLOAD SESSION
# ═══════════════════════════════════════════════════════════════════════════════


class TestDownloadSession:
    """Lifetime of exposed handles."""

    def test_expose_is_cached(self, tmp_path):
        session = DownloadSession(base_dir=str(tmp_path))
        first = session.expose("a.pdf", b"first")
        second = session.expose("a.pdf", b"second")

        assert first == second
        assert first.read_bytes() == b"first"
        session.release_all()

    def test_release_all_removes_files(self, tmp_path):
        session = DownloadSession(base_dir=str(tmp_path))
        paths = [session.expose(f"{i}.pdf", b"data") for i in range(3)]

        assert session.release_all() == 3
        assert len(session) == 0
        assert not any(p.exists() for p in paths)
        assert list(tmp_path.iterdir()) == []

    def test_context_manager_releases(self, tmp_path):
        with DownloadSession(base_dir=str(tmp_path)) as session:
            path = session.expose("a.pdf", b"data")
            assert path.exists()
        assert not path.exists()
        assert "a.pdf" not in session

    def test_register_external_handle(self, tmp_path):
        external = tmp_path / "external.pdf"
        external.write_bytes(b"data")

        session = DownloadSession(base_dir=str(tmp_path))
        session.register("external.pdf", external)
        assert session.handles == {"external.pdf": external}
        assert session.release_all() == 1
        assert not external.exists()

    def test_release_on_empty_session(self):
        assert DownloadSession().release_all() == 0


class TestDirectorySink:
    """Copying exposed files to an output directory."""

    def test_copies_into_directory(self, tmp_path):
        source = tmp_path / "exposed.pdf"
        source.write_bytes(b"%PDF")
        sink = DirectorySink(str(tmp_path / "out" / "nested"))

        sink(source, "pair_01_1.pdf")

        dest = tmp_path / "out" / "nested" / "pair_01_1.pdf"
        assert dest.read_bytes() == b"%PDF"
        assert sink.delivered == [dest]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
