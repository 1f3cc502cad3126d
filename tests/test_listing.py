# tests/test_listing.py
import os
from pathlib import Path

import pytest

from app.errors import NotFound
from app.models import Entry, EntryKind
from app.services.filters import ExtensionFilter
from app.services.listing import list_entries

PNG_ONLY = ExtensionFilter.from_spec("*.png")


def test_list_filters_files_but_not_directories(tmp_path: Path):
    (tmp_path / "a.png").write_bytes(b"123")
    (tmp_path / "b.exe").write_bytes(b"MZ")
    (tmp_path / "sub").mkdir()

    entries = list(list_entries(tmp_path, PNG_ONLY))
    assert entries == [
        Entry(name="a.png", kind=EntryKind.FILE, size=3),
        Entry(name="sub", kind=EntryKind.DIRECTORY, size=0),
    ]


def test_list_is_not_recursive(tmp_path: Path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "deep.png").write_bytes(b"x")
    assert [e.name for e in list_entries(tmp_path, PNG_ONLY)] == ["sub"]


def test_list_order_is_stable(tmp_path: Path):
    for name in ["B.png", "c", "a.png"]:
        if name == "c":
            (tmp_path / name).mkdir()
        else:
            (tmp_path / name).write_bytes(b"")
    first = [e.name for e in list_entries(tmp_path, PNG_ONLY)]
    second = [e.name for e in list_entries(tmp_path, PNG_ONLY)]
    assert first == second == ["a.png", "B.png", "c"]


def test_missing_directory_fails_eagerly(tmp_path: Path):
    with pytest.raises(NotFound):
        list_entries(tmp_path / "nope", PNG_ONLY)


def test_file_is_not_a_directory(tmp_path: Path):
    f = tmp_path / "a.png"
    f.write_bytes(b"")
    with pytest.raises(FileNotFoundError):
        list_entries(f, PNG_ONLY)


def test_entry_wire_format():
    e = Entry(name="sub", kind=EntryKind.DIRECTORY)
    assert e.to_wire() == {"name": "sub", "type": "d", "size": 0}


def _symlink_or_skip(link: Path, target: Path, is_dir: bool = False):
    try:
        link.symlink_to(target, target_is_directory=is_dir)
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not available")


def test_links_leaving_the_root_are_hidden(tmp_path: Path):
    root = tmp_path / "root"
    outside = tmp_path / "outside"
    root.mkdir()
    (outside / "d").mkdir(parents=True)
    (outside / "secret.png").write_bytes(b"x" * 1234)
    (root / "kept.png").write_bytes(b"ok")
    _symlink_or_skip(root / "leak.png", outside / "secret.png")
    _symlink_or_skip(root / "escape", outside / "d", is_dir=True)

    assert [e.name for e in list_entries(root, PNG_ONLY, root)] == ["kept.png"]
    # the listed directory is the default boundary
    assert [e.name for e in list_entries(root, PNG_ONLY)] == ["kept.png"]


def test_links_inside_the_root_are_listed(tmp_path: Path):
    (tmp_path / "real").mkdir()
    (tmp_path / "real" / "a.png").write_bytes(b"abc")
    (tmp_path / "real" / "tool.exe").write_bytes(b"MZ")
    sub = tmp_path / "sub"
    sub.mkdir()
    _symlink_or_skip(sub / "alias", tmp_path / "real", is_dir=True)
    _symlink_or_skip(sub / "pic.png", tmp_path / "real" / "a.png")
    _symlink_or_skip(sub / "disguised.png", tmp_path / "real" / "tool.exe")

    assert list(list_entries(sub, PNG_ONLY, tmp_path)) == [
        Entry(name="alias", kind=EntryKind.DIRECTORY, size=0),
        Entry(name="pic.png", kind=EntryKind.FILE, size=3),
    ]


def test_dangling_links_are_skipped(tmp_path: Path):
    (tmp_path / "a.png").write_bytes(b"")
    _symlink_or_skip(tmp_path / "broken.png", tmp_path / "gone.png")
    _symlink_or_skip(tmp_path / "broken-dir", tmp_path / "gone", is_dir=True)
    assert [e.name for e in list_entries(tmp_path, PNG_ONLY)] == ["a.png"]


@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="fifos not available")
def test_fifos_are_skipped(tmp_path: Path):
    os.mkfifo(tmp_path / "pipe.png")
    (tmp_path / "sub").mkdir()
    assert [e.name for e in list_entries(tmp_path, PNG_ONLY)] == ["sub"]
