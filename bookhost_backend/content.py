from __future__ import annotations

import os
from pathlib import Path

from .config import DEFAULT_DOCUMENT
from .errors import TraversalViolation
from .security import PathLike, clean_relative, is_within


def resolve_content_path(build_dir: PathLike, virtual_path: str) -> Path:
    """Map a requested sub-path onto a file path inside build_dir.

    - one leading '/' is stripped; an empty path means DEFAULT_DOCUMENT
    - the path is cleaned as a string, whether or not it exists on disk
    - the joined result must be build_dir or lie beneath it, otherwise
      TraversalViolation is raised

    No URL decoding happens here. The HTTP layer decodes the path exactly
    once before calling; decoding again would let "%2e%2e%2f" through as "../".

    Never opens the file; serving it is the caller's job.
    """
    rel = virtual_path or ""
    if rel.startswith("/"):
        rel = rel[1:]
    if not rel:
        rel = DEFAULT_DOCUMENT

    root = os.path.normpath(os.fspath(build_dir))
    candidate = os.path.normpath(os.path.join(root, clean_relative(rel)))
    if not is_within(root, candidate):
        raise TraversalViolation(f"Content path escapes build root: {virtual_path!r}")
    return Path(candidate)
