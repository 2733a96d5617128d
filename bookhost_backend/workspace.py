from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import BOOKS_BUILD_ROOT, BOOKS_ROOT
from .errors import FilesystemError
from .security import normalize_slug, slugify


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookWorkspace:
    slug: str
    source_dir: Path
    build_dir: Path

    @property
    def is_built(self) -> bool:
        return self.build_dir.is_dir()


def get_book_workspace(slug: str) -> BookWorkspace:
    s = normalize_slug(slug)
    return BookWorkspace(
        slug=s,
        source_dir=BOOKS_ROOT / s,
        build_dir=BOOKS_BUILD_ROOT / s,
    )


def remove_tree(path: Path) -> None:
    """Recursively delete path. A path that is already gone counts as success."""
    try:
        if path.is_symlink() or path.is_file():
            path.unlink()
        else:
            shutil.rmtree(path)
    except FileNotFoundError:
        return
    except OSError as exc:
        raise FilesystemError(f"Failed to remove {path.name!r}") from exc


def reset_for_upload(source_dir: Path, build_dir: Path) -> None:
    """Clear both trees of a book before a new archive is extracted.

    source_dir comes back as an empty directory; build_dir stays absent until
    the next successful build. Raises FilesystemError on the first failing
    step, before any new content has been written.
    """
    remove_tree(source_dir)
    try:
        source_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FilesystemError(f"Failed to recreate {source_dir.name!r}") from exc
    remove_tree(build_dir)


def create_book(title: str, slug: Optional[str] = None) -> BookWorkspace:
    """Create the directory pair for a new book.

    The slug is derived from the title when not given. Raises
    FileExistsError if a book with that slug already exists.
    """
    ws = get_book_workspace(slug if slug else slugify(title))
    if ws.source_dir.exists():
        raise FileExistsError("Book already exists")
    try:
        ws.source_dir.mkdir(parents=True)
        ws.build_dir.mkdir(parents=True, exist_ok=True)
    except FileExistsError:
        raise
    except OSError as exc:
        raise FilesystemError("Failed to create book directories") from exc
    logger.info("Created book %s", ws.slug)
    return ws


def delete_book(slug: str) -> None:
    ws = get_book_workspace(slug)
    remove_tree(ws.source_dir)
    remove_tree(ws.build_dir)
    logger.info("Deleted book %s", ws.slug)


def list_books() -> list[BookWorkspace]:
    """Return books found directly under BOOKS_ROOT, sorted by slug.

    Only directories whose name is a valid slug are included.
    """
    books: list[BookWorkspace] = []
    if not BOOKS_ROOT.exists():
        return books
    for child in sorted(BOOKS_ROOT.iterdir()):
        if not child.is_dir():
            continue
        try:
            books.append(get_book_workspace(child.name))
        except ValueError:
            continue
    return books
