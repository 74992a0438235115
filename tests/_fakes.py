"""Stand-in for the PlantUML process used across the test suite."""
from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

from plantbook.runner import CommandExecutionError


class FakeCommandRunner:
    """Records calls; optionally fails or writes an "image" next to the source.

    With ``create_file`` the scratch source is copied byte for byte to the
    output name PlantUML would use, so callers can check the round trip.
    """

    def __init__(self, error: bool = False, create_file: bool = False, extension: str = "svg") -> None:
        self.error = error
        self.create_file = create_file
        self.extension = extension
        self.calls: List[List[str]] = []

    def execute(self, args: Sequence[str]) -> None:
        self.calls.append(list(args))
        if self.error:
            raise CommandExecutionError("Whoops", returncode=1, stderr="Whoops")
        if self.create_file:
            # Last argument is the scratch source file.
            source = Path(args[-1])
            source.with_suffix(f".{self.extension}").write_bytes(source.read_bytes())
