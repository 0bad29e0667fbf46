"""Tests for directory scanning."""

import threading

import pytest

from offline_gallery.detection.scanner import scan_directory


@pytest.fixture
def photo_dir(tmp_path):
    (tmp_path / "a.jpg").write_bytes(b"x")
    (tmp_path / "b.PNG").write_bytes(b"x")
    (tmp_path / "notes.txt").write_text("not an image")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "d.jpeg").write_bytes(b"x")
    return tmp_path


class _CancelAfter:
    """Reports cancellation after ``checks`` calls to is_set."""

    def __init__(self, checks: int) -> None:
        self.checks = checks

    def is_set(self) -> bool:
        self.checks -= 1
        return self.checks < 0


def test_scan_recursive(photo_dir):
    found = scan_directory(photo_dir)
    assert [p.name for p in found] == ["a.jpg", "d.jpeg", "b.PNG"]


def test_scan_non_recursive(photo_dir):
    found = scan_directory(photo_dir, recursive=False)
    assert [p.name for p in found] == ["a.jpg", "b.PNG"]


def test_scan_cancelled_before_start(photo_dir):
    event = threading.Event()
    event.set()
    assert scan_directory(photo_dir, cancel_event=event) == []


def test_scan_cancelled_between_batches(photo_dir):
    found = scan_directory(photo_dir, cancel_event=_CancelAfter(1))
    assert [p.name for p in found] == ["a.jpg"]


def test_scan_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        scan_directory(tmp_path / "missing")
