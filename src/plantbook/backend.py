"""Render PlantUML source to content-addressed image files."""
from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

from .identity import ImageIdentity, image_identity
from .logsetup import get_logger
from .runner import CommandExecutionError, CommandRunner, ShellCommandRunner, join_command_line

SOURCE_EXTENSION = "puml"


class RenderError(Exception):
    """Structured render failure with a stable code for CLI mapping."""

    code = "E_RENDER"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ScratchWriteFailed(RenderError):
    code = "E_SCRATCH_WRITE"


class CommandFailed(RenderError):
    code = "E_COMMAND_FAILED"


class NoOutputProduced(RenderError):
    code = "E_NO_OUTPUT"


class CopyFailed(RenderError):
    code = "E_COPY"


class RenderingBackend:
    """Invokes PlantUML as a shell program from a private working directory.

    Use as a context manager (or call :meth:`close`) so the working directory
    is removed once rendering is done. Rendered images are cached in
    ``output_root`` under a hash of their source; an existing image is never
    rendered again.
    """

    def __init__(
        self,
        plantuml_cmd: str,
        output_root: Path,
        image_format: str = "svg",
        *,
        runner: Optional[CommandRunner] = None,
        logger=None,
    ) -> None:
        self.plantuml_cmd = plantuml_cmd
        self.output_root = Path(output_root)
        self.image_format = image_format
        self._log = logger if logger is not None else get_logger(__name__)
        self._runner = runner if runner is not None else ShellCommandRunner(logger=self._log)
        self.output_root.mkdir(parents=True, exist_ok=True)
        self._workdir: Optional[tempfile.TemporaryDirectory] = tempfile.TemporaryDirectory(
            prefix="plantbook-"
        )

    def __enter__(self) -> "RenderingBackend":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def working_dir(self) -> Path:
        if self._workdir is None:
            raise RuntimeError("rendering backend has been closed")
        return Path(self._workdir.name)

    def close(self) -> None:
        if self._workdir is not None:
            self._workdir.cleanup()
            self._workdir = None

    def command_arguments(self, source_path: Path, image_format: str) -> List[str]:
        return [self.plantuml_cmd, f"-t{image_format}", "-nometadata", str(source_path)]

    def _scratch_paths(self, identity: ImageIdentity) -> Tuple[Path, Path]:
        workdir = self.working_dir
        return workdir / f"{identity.digest}.{SOURCE_EXTENSION}", workdir / identity.filename

    def render(self, source_text: str) -> Path:
        identity = image_identity(source_text, self.image_format)
        target = identity.under(self.output_root)

        if target.exists():
            self._log.info("skipping render, image already exists", image=str(target))
            return target

        source_path, image_path = self._scratch_paths(identity)
        try:
            source_path.write_bytes(source_text.encode("utf-8"))
        except OSError as exc:
            raise ScratchWriteFailed(f"Failed to create temp file for inline diagram ({exc}).") from exc

        # PlantUML writes the image next to the source, same stem, format extension.
        args = self.command_arguments(source_path, identity.image_format)
        try:
            self._runner.execute(args)
        except CommandExecutionError as exc:
            raise CommandFailed(f"Failed to render inline diagram ({exc}).") from exc

        if not image_path.exists():
            raise NoOutputProduced(
                "PlantUML did not generate an image, did you forget the @startuml, @enduml "
                f"block ({join_command_line(args)})?"
            )

        self._place(image_path, target)
        self._log.info("rendered diagram", image=str(target))
        return target

    def _place(self, image_path: Path, target: Path) -> None:
        """Copy into the output root under a temporary name, then rename onto *target*."""
        tmp_name: Optional[str] = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{target.name}.", suffix=".tmp", dir=str(self.output_root)
            )
            os.close(fd)
            shutil.copyfile(image_path, tmp_name)
            # mkstemp creates 0600 files
            shutil.copymode(image_path, tmp_name)
            os.replace(tmp_name, target)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise CopyFailed(
                f"Error copying the generated PlantUML image {image_path} to {target} ({exc})."
            ) from exc
