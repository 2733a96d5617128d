from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .archive import ExtractedArchive, extract_archive
from .builder import GeneratorResult, GeneratorRunner, build_book
from .content import resolve_content_path
from .errors import BookPipelineError
from .locks import BookLocks
from .workspace import BookWorkspace, delete_book, reset_for_upload


logger = logging.getLogger(__name__)


class BookPipeline:
    """Upload, build and content lookup for books, serialized per book.

    upload() and build() each hold the book's lock for their whole run, so
    the two never overlap on the same book. resolve() is lock-free.
    """

    def __init__(self, runner: Optional[GeneratorRunner] = None, locks: Optional[BookLocks] = None) -> None:
        self.runner = runner
        self.locks = locks or BookLocks()

    def upload(self, book: BookWorkspace, archive_path: Path) -> ExtractedArchive:
        """Replace the book's source tree with the archive's contents.

        Both trees are cleared first; the build tree stays absent until the
        next build.
        """
        with self.locks.hold(book.slug):
            logger.info("Uploading book %s", book.slug)
            try:
                reset_for_upload(book.source_dir, book.build_dir)
                extracted = extract_archive(archive_path, book.source_dir)
            except BookPipelineError as exc:
                logger.warning("Upload of %s rejected: %s", book.slug, exc)
                raise
        logger.info(
            "Uploaded book %s (%d files, %d directories)",
            book.slug,
            extracted.files,
            extracted.directories,
        )
        return extracted

    def build(self, book: BookWorkspace) -> GeneratorResult:
        with self.locks.hold(book.slug):
            logger.info("Building book %s", book.slug)
            try:
                result = build_book(book.source_dir, book.build_dir, runner=self.runner)
            except BookPipelineError as exc:
                logger.warning("Build of %s failed: %s", book.slug, exc)
                raise
        logger.info("Built book %s", book.slug)
        return result

    def resolve(self, book: BookWorkspace, virtual_path: str) -> Path:
        return resolve_content_path(book.build_dir, virtual_path)

    def delete(self, book: BookWorkspace) -> None:
        """Remove both trees of a book once no upload or build holds it."""
        with self.locks.hold(book.slug):
            delete_book(book.slug)
