"""Launching the external PlantUML command."""
from __future__ import annotations

import os
import shlex
import subprocess
from typing import Optional, Protocol, Sequence

from .logsetup import get_logger


class CommandExecutionError(RuntimeError):
    """Raised when the rendering command cannot be started or exits non-zero."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


def _quote_path(arg: str) -> str:
    if not arg or not any(ch.isspace() for ch in arg):
        return arg
    if os.name == "nt":
        return f'"{arg}"'
    return shlex.quote(arg)


def join_command_line(args: Sequence[str]) -> str:
    """Join *args* into one shell command line.

    Only the trailing file path is quoted, and only when it holds whitespace.
    Earlier arguments are left alone so a configured command such as
    ``java -jar plantuml.jar`` still splits into words.
    """
    if not args:
        return ""
    return " ".join([*args[:-1], _quote_path(args[-1])])


class CommandRunner(Protocol):
    def execute(self, args: Sequence[str]) -> None:
        ...


class ShellCommandRunner:
    """Runs the joined argument list through ``sh -c`` (``cmd /c`` on Windows).

    The arguments are handed over as one command line so flags embedded in a
    configured command such as ``java -jar plantuml.jar -charset UTF-8`` reach
    PlantUML intact.
    """

    def __init__(self, logger=None) -> None:
        self._log = logger if logger is not None else get_logger(__name__)

    def execute(self, args: Sequence[str]) -> None:
        command_line = join_command_line(args)
        self._log.debug("executing command", command=command_line, cwd=os.getcwd())
        try:
            proc = subprocess.run(
                command_line,
                shell=True,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                check=False,
            )
        except OSError as exc:
            raise CommandExecutionError(f"Failed to start PlantUML application: {exc}") from exc

        stderr = (proc.stderr or "").strip()
        if proc.returncode != 0:
            raise CommandExecutionError(
                f"Failed to generate PlantUML diagrams, PlantUML exited with code "
                f"{proc.returncode} ({stderr}).",
                returncode=proc.returncode,
                stderr=stderr,
            )

        self._log.info("generated PlantUML diagram")
        self._log.debug("command output", stdout=(proc.stdout or "").strip(), stderr=stderr)
