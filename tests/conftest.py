"""Shared fixtures for the bookhost tests."""

from __future__ import annotations

import io
import stat
import struct
import zipfile
from pathlib import Path
from typing import Callable, Iterable, Tuple, Union

import pytest

from bookhost_backend.workspace import BookWorkspace, get_book_workspace

Entry = Union[Tuple[str, bytes], Tuple[str, bytes, int]]


def make_zip_bytes(entries: Iterable[Entry]) -> bytes:
    """Build a ZIP in memory. Names ending in '/' become directory entries.

    A third tuple item sets the Unix mode stored in external_attr.
    """
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
        for entry in entries:
            name, data = entry[0], entry[1]
            info = zipfile.ZipInfo(name)
            if name.endswith("/"):
                info.external_attr = (stat.S_IFDIR | 0o755) << 16 | 0x10
            else:
                info.external_attr = (stat.S_IFREG | 0o644) << 16
            if len(entry) > 2:
                info.external_attr = entry[2] << 16
            zf.writestr(info, data)
    return buf.getvalue()


def patch_zip_headers(data: bytes, *, flag_bits: int = 0, method=None) -> bytes:
    """Rewrite flag bits / compression method in every local and central header."""
    buf = bytearray(data)
    # (signature, offset of general purpose flags, offset of compression method)
    for sig, flag_off, method_off in ((b"PK\x03\x04", 6, 8), (b"PK\x01\x02", 8, 10)):
        pos = buf.find(sig)
        while pos != -1:
            (flags,) = struct.unpack_from("<H", buf, pos + flag_off)
            struct.pack_into("<H", buf, pos + flag_off, flags | flag_bits)
            if method is not None:
                struct.pack_into("<H", buf, pos + method_off, method)
            pos = buf.find(sig, pos + 4)
    return bytes(buf)


@pytest.fixture
def make_zip(tmp_path: Path) -> Callable[..., Path]:
    counter = {"n": 0}

    def _make(entries: Iterable[Entry]) -> Path:
        counter["n"] += 1
        path = tmp_path / f"upload-{counter['n']}.zip"
        path.write_bytes(make_zip_bytes(entries))
        return path

    return _make


@pytest.fixture
def books_roots(tmp_path: Path, monkeypatch) -> Tuple[Path, Path]:
    """Point the workspace module at per-test books/build roots."""
    books_root = tmp_path / "books"
    build_root = tmp_path / "build"
    books_root.mkdir()
    build_root.mkdir()
    monkeypatch.setattr("bookhost_backend.workspace.BOOKS_ROOT", books_root)
    monkeypatch.setattr("bookhost_backend.workspace.BOOKS_BUILD_ROOT", build_root)
    return books_root, build_root


@pytest.fixture
def book(books_roots) -> BookWorkspace:
    ws = get_book_workspace("guide")
    ws.source_dir.mkdir()
    ws.build_dir.mkdir()
    return ws
