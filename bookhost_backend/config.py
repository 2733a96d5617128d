from __future__ import annotations

import os
from pathlib import Path


_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _root_from_env(var_name: str, default: Path) -> Path:
    raw = os.environ.get(var_name)
    if raw and raw.strip():
        root = Path(raw)
    else:
        root = default
    root = root.resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


# Source trees: one directory per book, replaced wholesale on each upload.
# Override with env var BOOKHOST_BOOKS_ROOT.
BOOKS_ROOT = _root_from_env("BOOKHOST_BOOKS_ROOT", _PROJECT_ROOT / "data" / "books")

# Rendered output: one directory per book, written by the generator.
# Override with env var BOOKHOST_BOOKS_BUILD_ROOT.
BOOKS_BUILD_ROOT = _root_from_env("BOOKHOST_BOOKS_BUILD_ROOT", _PROJECT_ROOT / "data" / "build")

# External generator binary, invoked as: <bin> build <source> -d <build>
MDBOOK_BIN = os.environ.get("BOOKHOST_MDBOOK_BIN", "mdbook")

# Upper bound on a single build; 0 disables the deadline.
BUILD_TIMEOUT_SECONDS = float(os.environ.get("BOOKHOST_BUILD_TIMEOUT_SECONDS", "600"))

MAX_ZIP_UPLOAD_BYTES = int(os.environ.get("BOOKHOST_MAX_ZIP_UPLOAD_BYTES", str(50 * 1024 * 1024)))  # 50MB

# Mutating endpoints only answer requests from localhost unless disabled.
ADMIN_LOCAL_ONLY = os.environ.get("BOOKHOST_ADMIN_LOCAL_ONLY", "1").strip().lower() not in {"0", "false", "no", "off"}

LOG_LEVEL = os.environ.get("BOOKHOST_LOG_LEVEL", "INFO").strip().upper() or "INFO"

# Served when a content request names no file.
DEFAULT_DOCUMENT = "index.html"
ARCHIVE_SUFFIX = ".zip"
