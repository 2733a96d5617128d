from __future__ import annotations

import os
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response
from pydantic import BaseModel

from bookhost_backend.config import (
    ADMIN_LOCAL_ONLY,
    ARCHIVE_SUFFIX,
    BOOKS_BUILD_ROOT,
    BOOKS_ROOT,
    LOG_LEVEL,
    MAX_ZIP_UPLOAD_BYTES,
)
from bookhost_backend.errors import BookPipelineError, BuildProcessError
from bookhost_backend.logging_config import setup_logging
from bookhost_backend.pipeline import BookPipeline
from bookhost_backend.workspace import (
    BookWorkspace,
    create_book,
    get_book_workspace,
    list_books,
)


pipeline = BookPipeline()


class CreateBookRequest(BaseModel):
    title: str
    slug: Optional[str] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(LOG_LEVEL)
    BOOKS_ROOT.mkdir(parents=True, exist_ok=True)
    BOOKS_BUILD_ROOT.mkdir(parents=True, exist_ok=True)
    yield


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _require_localhost(request: Request) -> None:
    # Mutating endpoints; restrict to local use unless disabled in config.
    if not ADMIN_LOCAL_ONLY:
        return
    host = getattr(request.client, "host", "") if request.client else ""
    if host not in {"127.0.0.1", "::1", "localhost"}:
        raise HTTPException(status_code=403, detail="Forbidden")


def _book_or_404(slug: str) -> BookWorkspace:
    try:
        ws = get_book_workspace(slug)
    except ValueError:
        raise HTTPException(status_code=404, detail="Book not found")
    if not ws.source_dir.is_dir():
        raise HTTPException(status_code=404, detail="Book not found")
    return ws


def _pipeline_http_error(exc: BookPipelineError) -> HTTPException:
    # Client-caused failures are rejected as-is; anything else is an operation failure.
    if exc.client_error:
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, BuildProcessError):
        return HTTPException(
            status_code=500,
            detail={"error": exc.args[0], "output": exc.output, "timed_out": exc.timed_out},
        )
    return HTTPException(status_code=500, detail=str(exc))


def _book_json(ws: BookWorkspace) -> dict:
    return {"slug": ws.slug, "built": ws.is_built}


@app.get("/api/books")
async def get_books() -> JSONResponse:
    books = await run_in_threadpool(list_books)
    return JSONResponse([_book_json(ws) for ws in books])


@app.post("/api/books", status_code=201)
async def new_book(payload: CreateBookRequest, request: Request) -> JSONResponse:
    _require_localhost(request)
    if not payload.title.strip():
        raise HTTPException(status_code=400, detail="Title required")
    try:
        ws = await run_in_threadpool(create_book, payload.title, payload.slug)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid slug")
    except FileExistsError:
        raise HTTPException(status_code=409, detail="Slug already exists")
    except BookPipelineError as exc:
        raise _pipeline_http_error(exc)
    return JSONResponse(_book_json(ws), status_code=201)


@app.delete("/api/books/{slug}")
async def remove_book(slug: str, request: Request) -> JSONResponse:
    _require_localhost(request)
    ws = _book_or_404(slug)
    try:
        await run_in_threadpool(pipeline.delete, ws)
    except BookPipelineError as exc:
        raise _pipeline_http_error(exc)
    return JSONResponse({"ok": True})


@app.post("/api/books/{slug}/upload")
async def upload_book(slug: str, request: Request, file: UploadFile = File(...)) -> JSONResponse:
    """Replace a book's sources with the contents of an uploaded ZIP."""
    _require_localhost(request)
    ws = _book_or_404(slug)

    if not (file.filename or "").lower().endswith(ARCHIVE_SUFFIX):
        raise HTTPException(status_code=400, detail="Only .zip files are supported")

    zip_bytes = await file.read(MAX_ZIP_UPLOAD_BYTES + 1)
    if len(zip_bytes) > MAX_ZIP_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="ZIP too large")

    fd, tmp_name = tempfile.mkstemp(suffix=ARCHIVE_SUFFIX)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as tmp:
            tmp.write(zip_bytes)
        extracted = await run_in_threadpool(pipeline.upload, ws, tmp_path)
    except BookPipelineError as exc:
        raise _pipeline_http_error(exc)
    finally:
        tmp_path.unlink(missing_ok=True)

    return JSONResponse({"ok": True, "files": extracted.files, "directories": extracted.directories})


@app.post("/api/books/{slug}/build")
async def build(slug: str, request: Request) -> JSONResponse:
    _require_localhost(request)
    ws = _book_or_404(slug)
    try:
        await run_in_threadpool(pipeline.build, ws)
    except BookPipelineError as exc:
        raise _pipeline_http_error(exc)
    return JSONResponse({"ok": True})


@app.get("/api/books/{slug}/content")
@app.get("/api/books/{slug}/content/{virtual_path:path}")
async def book_content(slug: str, virtual_path: str = "") -> Response:
    """Serve a rendered file of a book.

    Starlette has already percent-decoded virtual_path; it is passed on as-is.
    """
    ws = _book_or_404(slug)
    try:
        path = pipeline.resolve(ws, virtual_path)
    except BookPipelineError as exc:
        raise _pipeline_http_error(exc)
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Not found")
    return FileResponse(path, headers={"X-Content-Type-Options": "nosniff"})


if __name__ == "__main__":
    # Convenience: python server.py
    import uvicorn

    port = int(os.environ.get("PORT", "8010"))
    uvicorn.run("server:app", host="127.0.0.1", port=port, reload=False)
