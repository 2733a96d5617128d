from __future__ import annotations

import logging
import os
import shutil
import stat
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path

from .errors import ArchiveOpenError, FilesystemError
from .security import PathLike, safe_join


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractedArchive:
    destination_root: Path
    files: int
    directories: int


def _entry_kind(info: zipfile.ZipInfo) -> str:
    """Classify an entry as "dir", "file" or "other".

    Archives written on Unix carry the st_mode in the high bits of
    external_attr. When no file type is recorded (DOS-created archives, or
    permission bits only) fall back to the trailing-slash convention.
    """
    fmt = stat.S_IFMT(info.external_attr >> 16)
    if fmt:
        if fmt == stat.S_IFDIR:
            return "dir"
        if fmt == stat.S_IFREG:
            return "file"
        return "other"
    return "dir" if info.is_dir() else "file"


def _open_member(zf: zipfile.ZipFile, info: zipfile.ZipInfo):
    # zipfile raises RuntimeError for encrypted entries and NotImplementedError
    # for compression methods it can't decode (e.g. deflate64).
    try:
        return zf.open(info)
    except (RuntimeError, NotImplementedError, zipfile.BadZipFile, OSError) as exc:
        raise ArchiveOpenError(f"Unreadable entry in ZIP: {info.filename!r}") from exc


def _copy_member(zf: zipfile.ZipFile, info: zipfile.ZipInfo, dest: Path) -> None:
    with _open_member(zf, info) as src:
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with open(dest, "wb") as out:
                shutil.copyfileobj(src, out)
        except (OSError, zipfile.BadZipFile, zlib.error, EOFError) as exc:
            raise FilesystemError(f"Failed to extract {info.filename!r}") from exc


def extract_archive(archive_path: PathLike, destination_root: PathLike) -> ExtractedArchive:
    """Extract a ZIP archive into destination_root.

    Rules:
    - Entries are processed in archive order; the first failure aborts.
    - No Zip Slip: absolute names, drive letters and leading '..' segments
      raise TraversalViolation, and every joined path is re-checked against
      the root.
    - Only plain files and directories; symlinks and other special entries
      raise FilesystemError.
    - Entries zipfile can't read (encrypted, unsupported compression)
      raise ArchiveOpenError.

    Entries written before a failing entry stay on disk. The caller is
    expected to have cleared destination_root beforehand.
    """
    root = Path(os.path.normpath(os.fspath(destination_root)))
    files = 0
    directories = 0

    try:
        zf = zipfile.ZipFile(archive_path)
    except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
        raise ArchiveOpenError("Invalid ZIP") from exc

    with zf:
        for info in zf.infolist():
            dest = safe_join(root, info.filename)

            kind = _entry_kind(info)
            if kind == "other":
                raise FilesystemError(f"Unsupported entry type in ZIP: {info.filename!r}")

            if kind == "dir":
                try:
                    dest.mkdir(parents=True, exist_ok=True)
                except OSError as exc:
                    raise FilesystemError(f"Failed to create directory {info.filename!r}") from exc
                directories += 1
                continue

            _copy_member(zf, info, dest)
            files += 1

    logger.debug("Extracted %d files, %d directories", files, directories)
    return ExtractedArchive(destination_root=root, files=files, directories=directories)
