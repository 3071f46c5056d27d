"""Tests for IO operations: fingerprint, backup, atomic write."""

from pathlib import Path

import pytest

from sheetgrid.io.fileops import atomic_write, backup, fingerprint, read_text_safe


def test_fingerprint(session_file: Path):
    fp = fingerprint(session_file)
    assert fp.startswith("sha256:")
    assert len(fp) == 71  # sha256: + 64 hex chars
    assert fingerprint(session_file) == fp


def test_fingerprint_tracks_content(tmp_path: Path):
    a, b = tmp_path / "a.json", tmp_path / "b.json"
    a.write_bytes(b"one")
    b.write_bytes(b"two")
    assert fingerprint(a) != fingerprint(b)


def test_backup(session_file: Path):
    bak_path = backup(session_file)
    assert Path(bak_path).exists()
    assert Path(bak_path).name.startswith("grid.")
    assert Path(bak_path).name.endswith(".bak.json")
    assert Path(bak_path).read_bytes() == session_file.read_bytes()


def test_atomic_write(tmp_path: Path):
    target = tmp_path / "grid.json"
    atomic_write(target, b"{}")
    assert target.read_bytes() == b"{}"


def test_atomic_write_overwrites(tmp_path: Path):
    target = tmp_path / "grid.json"
    target.write_bytes(b"old content")
    atomic_write(target, b"new content")
    assert target.read_bytes() == b"new content"


def test_atomic_write_leaves_no_temp_files(tmp_path: Path):
    atomic_write(tmp_path / "grid.json", b"data")
    assert [p.name for p in tmp_path.iterdir()] == ["grid.json"]


def test_atomic_write_missing_directory(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        atomic_write(tmp_path / "nope" / "grid.json", b"data")


def test_read_text_safe_strips_bom(tmp_path: Path):
    path = tmp_path / "s.yaml"
    path.write_bytes(b"\xef\xbb\xbfname: x\n")
    assert read_text_safe(path) == "name: x\n"
