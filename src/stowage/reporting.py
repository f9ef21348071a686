"""Console reporting for CLI commands.

Commands report through a ``Reporter`` handed to them at startup instead of
printing directly; lower layers never report at all, they raise.
"""

import json
import sys
from dataclasses import dataclass
from typing import Any, NoReturn, Protocol, TextIO

from stowage.errors import StowageError


class Reporter(Protocol):
    """What a command may tell the user."""

    def info(self, message: str, **fields: Any) -> None: ...

    def error(self, message: str, error: Exception | None = None, **fields: Any) -> None: ...

    def fatal(self, message: str, error: Exception | None = None, **fields: Any) -> NoReturn: ...


@dataclass
class ReporterConfig:
    """Output settings, fixed for one process invocation.

    Attributes:
        json: Emit one JSON object per message instead of text.
        quiet: Suppress informational messages.
    """

    json: bool = False
    quiet: bool = False


def _error_fields(error: Exception | None) -> dict[str, Any]:
    if error is None:
        return {}
    if isinstance(error, StowageError):
        return {"error": error.context()}
    return {"error": {"code": type(error).__name__, "message": str(error)}}


class ConsoleReporter:
    """Reporter writing to stdout (info) and stderr (errors)."""

    def __init__(
        self,
        config: ReporterConfig | None = None,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ) -> None:
        self.config = config or ReporterConfig()
        self._out = out or sys.stdout
        self._err = err or sys.stderr

    def info(self, message: str, **fields: Any) -> None:
        if self.config.quiet:
            return
        if self.config.json:
            print(json.dumps({"status": "success", **fields}, default=str), file=self._out)
        else:
            print(message, file=self._out)

    def error(self, message: str, error: Exception | None = None, **fields: Any) -> None:
        if self.config.json:
            entry = {"status": "error", "message": message, **fields, **_error_fields(error)}
            print(json.dumps(entry, default=str), file=self._err)
            return
        if error is not None:
            detail = error.message if isinstance(error, StowageError) else str(error)
            message = f"{message} {detail}"
        print(f"stowage: <ERROR> {message}", file=self._err)

    def fatal(self, message: str, error: Exception | None = None, **fields: Any) -> NoReturn:
        self.error(message, error, **fields)
        raise SystemExit(1)
