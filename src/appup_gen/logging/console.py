"""Human-readable progress lines for the error stream."""

from __future__ import annotations

from typing import TextIO

PROGRAM = "appup-gen"


class ConsoleReporter:
    """Writes prefixed progress and diagnostic lines to a text stream."""

    def __init__(self, stream: TextIO, verbose: bool = True) -> None:
        self._stream = stream
        self._verbose = verbose

    def info(self, message: str) -> None:
        if self._verbose:
            self._write(message)

    def warn(self, message: str) -> None:
        self._write(f"warning: {message}")

    def error(self, message: str) -> None:
        self._write(f"error: {message}")

    def _write(self, message: str) -> None:
        self._stream.write(f"{PROGRAM}: {message}\n")
        self._stream.flush()
