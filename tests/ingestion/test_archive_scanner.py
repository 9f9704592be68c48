from __future__ import annotations

import logging
from pathlib import Path
from zipfile import ZipFile

from fb2index.ingestion import archives
from fb2index.ingestion.archives import ArchiveScanner, SharedArchive


class _KnownKeys:
    def __init__(self, keys: set[tuple[str, str]]) -> None:
        self._keys = keys
        self.queries: list[tuple[str, str]] = []

    def count_books(self, zip_filename: str, filename: str) -> int:
        self.queries.append((zip_filename, filename))
        return 1 if (zip_filename, filename) in self._keys else 0


def _write_archive(path: Path, names: list[str]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with ZipFile(path, "w") as archive:
        for name in names:
            archive.writestr(name, b"" if name.endswith("/") else b"<FictionBook/>")
    return path


def test_scanner_emits_only_new_fb2_entries_in_archive_order(tmp_path: Path) -> None:
    archive_path = _write_archive(
        tmp_path / "lib" / "fb2-000001.zip",
        ["1.fb2", "covers/", "covers/1.jpg", "nested/2.fb2", "3.FB2", "readme.txt", "4.fb2"],
    )
    lookup = _KnownKeys({("fb2-000001.zip", "4.fb2")})
    scanner = ArchiveScanner(lookup)

    tasks = list(scanner.scan([archive_path]))

    assert [task.filename for task in tasks] == ["1.fb2", "nested/2.fb2"]
    assert all(task.zip_filename == "fb2-000001.zip" for task in tasks)
    assert lookup.queries == [
        ("fb2-000001.zip", "1.fb2"),
        ("fb2-000001.zip", "nested/2.fb2"),
        ("fb2-000001.zip", "4.fb2"),
    ]
    assert scanner.stats.archives == 1
    assert scanner.stats.queued == 2
    assert scanner.stats.skipped_existing == 1


def test_scanner_skips_unreadable_archive_and_continues(tmp_path: Path, caplog) -> None:
    broken = tmp_path / "broken.zip"
    broken.write_bytes(b"definitely not a zip archive")
    missing = tmp_path / "missing.zip"
    good = _write_archive(tmp_path / "good.zip", ["a.fb2"])
    scanner = ArchiveScanner(_KnownKeys(set()))

    with caplog.at_level(logging.INFO):
        tasks = list(scanner.scan([broken, missing, good]))

    assert [task.filename for task in tasks] == ["a.fb2"]
    assert scanner.stats.archive_errors == 2
    assert scanner.stats.archives == 1
    assert "broken.zip" in caplog.text
    assert f"Processing {good}" in caplog.text


def test_archive_stays_open_until_every_task_is_released(tmp_path: Path) -> None:
    archive_path = _write_archive(tmp_path / "shared.zip", ["a.fb2", "b.fb2"])
    tasks = list(ArchiveScanner(_KnownKeys(set())).scan([archive_path]))
    archive = tasks[0].archive

    assert isinstance(archive, SharedArchive)
    assert not archive.closed
    tasks[0].release()
    assert not archive.closed
    with tasks[1].open() as stream:
        assert stream.read() == b"<FictionBook/>"
    tasks[1].release()
    assert archive.closed


def test_archive_without_documents_is_closed_after_scan(tmp_path: Path, monkeypatch) -> None:
    created: list[SharedArchive] = []

    class _RecordingArchive(SharedArchive):
        def __init__(self, path: Path) -> None:
            super().__init__(path)
            created.append(self)

    monkeypatch.setattr(archives, "SharedArchive", _RecordingArchive)
    archive_path = _write_archive(tmp_path / "images.zip", ["cover.jpg"])
    scanner = ArchiveScanner(_KnownKeys(set()))

    tasks = list(scanner.scan([archive_path]))

    assert tasks == []
    assert scanner.stats.archives == 1
    assert len(created) == 1
    assert created[0].closed
