from __future__ import annotations

import os
import posixpath
import re
from pathlib import Path
from typing import Union

from .errors import TraversalViolation


_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_DRIVE_RE = re.compile(r"^[A-Za-z]:")

PathLike = Union[str, os.PathLike]


def slugify(text: str) -> str:
    """Turn a book title into a directory-safe slug ("book" when nothing survives)."""
    s = (text or "").strip().lower()
    s = _NON_ALNUM_RE.sub("-", s).strip("-")
    return s or "book"


def normalize_slug(slug: str) -> str:
    """Validate a slug before it is used as a path component.

    Slugs name directories directly under the books roots, so only the
    canonical lowercase-and-dashes form is accepted.
    """
    if not isinstance(slug, str):
        raise ValueError("Invalid slug")
    slug = slug.strip()
    if not _SLUG_RE.match(slug):
        raise ValueError("Invalid slug")
    return slug


def clean_relative(name: str) -> str:
    """Normalize an untrusted relative name as a pure string operation.

    Backslashes count as separators, '.'/'..' segments are resolved and
    repeated separators collapse. Nothing on disk is consulted.
    """
    return posixpath.normpath((name or "").replace("\\", "/"))


def escapes_root(cleaned_name: str) -> bool:
    """True if a cleaned name is absolute or starts with a parent segment."""
    if cleaned_name.startswith("/") or _DRIVE_RE.match(cleaned_name):
        return True
    return cleaned_name == ".." or cleaned_name.startswith("../")


def is_within(root: PathLike, candidate: PathLike) -> bool:
    """Containment check on cleaned path strings.

    ``candidate`` must be ``root`` itself or have ``root`` plus a trailing
    separator as a prefix. Symlinks are not followed.
    """
    clean_root = os.path.normpath(os.fspath(root))
    clean_candidate = os.path.normpath(os.fspath(candidate))
    if clean_candidate == clean_root:
        return True
    root_prefix = clean_root if clean_root.endswith(os.sep) else clean_root + os.sep
    return (clean_candidate + os.sep).startswith(root_prefix)


def safe_join(base_dir: PathLike, name: str) -> Path:
    """Join an untrusted relative name onto base_dir, refusing any escape.

    This defends against path traversal when serving or extracting user-controlled paths.
    """
    cleaned = clean_relative(name)
    if escapes_root(cleaned):
        raise TraversalViolation(f"Path escapes its root: {name!r}")
    candidate = os.path.normpath(os.path.join(os.fspath(base_dir), cleaned))
    if not is_within(base_dir, candidate):
        raise TraversalViolation(f"Path escapes its root: {name!r}")
    return Path(candidate)
