from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from .config import BUILD_TIMEOUT_SECONDS, MDBOOK_BIN
from .errors import BuildProcessError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratorResult:
    returncode: int
    output: str


class GeneratorRunner(Protocol):
    def run(self, source_dir: Path, build_dir: Path) -> GeneratorResult:
        ...


class MdbookRunner:
    """Run `<binary> build <source_dir> -d <build_dir>` and capture its output.

    stdout and stderr are merged into one stream. A timeout of None or 0
    waits forever; otherwise the process is killed at the deadline and
    subprocess.TimeoutExpired propagates.
    """

    def __init__(self, binary: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self.binary = binary or MDBOOK_BIN
        self.timeout = BUILD_TIMEOUT_SECONDS if timeout is None else timeout

    def command(self, source_dir: Path, build_dir: Path) -> list[str]:
        return [self.binary, "build", os.fspath(source_dir), "-d", os.fspath(build_dir)]

    def run(self, source_dir: Path, build_dir: Path) -> GeneratorResult:
        proc = subprocess.run(
            self.command(source_dir, build_dir),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=self.timeout if self.timeout and self.timeout > 0 else None,
            check=False,
        )
        return GeneratorResult(returncode=proc.returncode, output=proc.stdout or "")


def _decode_partial(output: object) -> str:
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return str(output or "")


def build_book(source_dir: Path, build_dir: Path, runner: Optional[GeneratorRunner] = None) -> GeneratorResult:
    """Render source_dir into build_dir with the external generator.

    Blocks until the generator exits. Raises BuildProcessError when it can't
    be launched, exceeds its deadline or exits non-zero; the captured output
    rides along on the exception. Whatever the generator left in build_dir
    on failure is kept as-is.
    """
    runner = runner or MdbookRunner()
    try:
        result = runner.run(source_dir, build_dir)
    except subprocess.TimeoutExpired as exc:
        raise BuildProcessError(
            f"Build timed out after {exc.timeout:g}s",
            output=_decode_partial(exc.output),
            timed_out=True,
        ) from exc
    except OSError as exc:
        raise BuildProcessError(f"Failed to launch generator: {exc.strerror or exc}") from exc

    if result.returncode != 0:
        raise BuildProcessError(
            f"Build failed with exit status {result.returncode}",
            returncode=result.returncode,
            output=result.output,
        )
    logger.debug("Generator output:\n%s", result.output)
    return result
