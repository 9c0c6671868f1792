#!/usr/bin/env python3
"""Verbosity-gated progress output and CLI result payloads."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

from cli_runtime import write_json_private_default
from pack_errors import PackError

CLI_SCHEMA_VERSION = "sugar.packager.cli.v1"
TOOL_NAME = "sugar_packager"


class Reporter:
    """Prints ``message`` only when the configured verbosity reaches ``level``.

    Errors bypass verbosity entirely and always land on the error stream.
    """

    def __init__(self, verbosity: int = 1, stream: Optional[TextIO] = None, err_stream: Optional[TextIO] = None):
        self.verbosity = int(verbosity)
        self._stream = stream
        self._err_stream = err_stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    @property
    def err_stream(self) -> TextIO:
        return self._err_stream if self._err_stream is not None else sys.stderr

    def enabled(self, level: int) -> bool:
        return self.verbosity >= level

    def log(self, message: str, level: int = 1) -> None:
        if self.enabled(level):
            print(message, file=self.stream)

    def error(self, message: str) -> None:
        print(f"Error: {message}", file=self.err_stream)

    def warn(self, message: str) -> None:
        print(message, file=self.err_stream)

    def fail(self, exc: PackError) -> int:
        self.error(exc.message)
        return exc.exit_code


def build_payload(
    *,
    command: str,
    ok: bool,
    exit_code: int,
    result: Optional[Dict[str, Any]] = None,
    error: Optional[PackError] = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "schema_version": CLI_SCHEMA_VERSION,
        "tool": TOOL_NAME,
        "command": command,
        "ok": bool(ok),
        "exit_code": int(exit_code),
    }
    if result is not None:
        payload["result"] = result
    if error is not None:
        payload["error"] = error.to_payload()
    return payload


def emit_cli_json(payload: Dict[str, Any], enabled: bool, json_file: Optional[Path], stream: Optional[TextIO] = None) -> None:
    if json_file:
        write_json_private_default(json_file, payload)
    if enabled:
        print(json.dumps(payload, indent=2), file=stream if stream is not None else sys.stdout)
