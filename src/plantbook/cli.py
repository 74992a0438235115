"""Command-line interface: mdBook preprocessor entry point and one-off rendering."""
from __future__ import annotations

import argparse
import json
import os
import sys
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from .backend import CommandFailed, NoOutputProduced, RenderError, RenderingBackend
from .config import default_plantuml_cmd, get_plantuml_config
from .logsetup import LoggingSetupError, configure_logging, get_logger
from .preprocessor import PlantUMLPreprocessor, ProtocolError, SUPPORTED_MDBOOK_SERIES, parse_input, version_is_supported


@dataclass
class CliError(Exception):
    code: str
    message: str
    hint: Optional[str] = None
    exit_code: int = 1
    file: Optional[str] = None


class UsageError(Exception):
    pass


class FriendlyArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # pragma: no cover - argparse callback
        raise UsageError(message)


def _build_parser() -> argparse.ArgumentParser:
    parser = FriendlyArgumentParser(
        prog="plantbook",
        description="An mdBook preprocessor which renders PlantUML code blocks to images.",
    )
    parser.add_argument("--error-format", choices=["text", "json"], default="text")
    parser.add_argument("--debug", action="store_true")

    subparsers = parser.add_subparsers(dest="command")

    supports_parser = subparsers.add_parser(
        "supports", help="Check whether a renderer is supported by this preprocessor"
    )
    supports_parser.add_argument("renderer")

    render_parser = subparsers.add_parser("render", help="Render a single PlantUML diagram")
    render_parser.add_argument("input", nargs="?", help="Input .puml file")
    render_parser.add_argument("--text", help="Raw PlantUML source")
    render_parser.add_argument("-o", "--output-dir", default=".", help="Directory for the rendered image")
    render_parser.add_argument("--format", default="svg", help="PlantUML output format (svg, png, ...)")
    render_parser.add_argument("--plantuml-cmd", help="PlantUML command line, e.g. 'java -jar plantuml.jar'")

    return parser


def _read_input(path: Optional[str], text: Optional[str]) -> str:
    if path and text is not None:
        raise CliError(
            "E_ARGS",
            "--text cannot be combined with file input",
            hint="Use either FILE or --text.",
            exit_code=2,
        )

    if text is not None:
        return text

    if path:
        input_path = Path(path)
        if not input_path.exists():
            raise CliError("E_IO_READ", f"input file not found: {input_path}", exit_code=2, file=str(input_path))
        try:
            return input_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CliError(
                "E_IO_READ",
                f"failed to read input file: {input_path}",
                hint=str(exc),
                exit_code=2,
                file=str(input_path),
            )

    if sys.stdin.isatty():
        raise CliError(
            "E_ARGS",
            "no input provided",
            hint="Pass FILE, --text, or pipe PlantUML source into stdin.",
            exit_code=2,
        )
    return sys.stdin.read()


def _error_from_exception(exc: Exception) -> CliError:
    if isinstance(exc, CliError):
        return exc
    if isinstance(exc, NoOutputProduced):
        return CliError(exc.code, exc.message, hint="Wrap the diagram in @startuml / @enduml.", exit_code=3)
    if isinstance(exc, CommandFailed):
        return CliError(
            exc.code,
            exc.message,
            hint="Check that plantuml-cmd points at a working PlantUML installation.",
            exit_code=3,
        )
    if isinstance(exc, RenderError):
        return CliError(exc.code, exc.message, exit_code=3)
    if isinstance(exc, LoggingSetupError):
        return CliError("E_LOGGING", str(exc), hint="Fix or remove logging-config in book.toml.", exit_code=2)
    if isinstance(exc, ProtocolError):
        return CliError("E_PROTOCOL", str(exc), hint="This command expects to be run by mdBook.", exit_code=1)
    return CliError(
        "E_INTERNAL",
        str(exc) or exc.__class__.__name__,
        hint="Re-run with --debug to see traceback.",
        exit_code=1,
    )


def _emit_error(err: CliError, *, error_format: str) -> None:
    if error_format == "json":
        payload = {
            "ok": False,
            "code": err.code,
            "message": err.message,
            "file": err.file,
            "hint": err.hint,
        }
        sys.stderr.write(json.dumps(payload) + "\n")
        return

    sys.stderr.write(f"error[{err.code}]: {err.message}\n")
    if err.hint:
        sys.stderr.write(f"hint: {err.hint}\n")


def _handle_preprocess(preprocessor: PlantUMLPreprocessor) -> int:
    context, book = parse_input(sys.stdin)
    config = get_plantuml_config(context)
    if config.logging_enabled:
        configure_logging(True, config.logging_config)

    mdbook_version = context.get("mdbook_version")
    if not version_is_supported(mdbook_version):
        sys.stderr.write(
            f"Warning: The {preprocessor.name} plugin was built against mdbook "
            f"{', '.join(SUPPORTED_MDBOOK_SERIES)}, but we're being called from version {mdbook_version}\n"
        )

    processed = preprocessor.run(context, book, config)
    json.dump(processed, sys.stdout)
    return 0


def _handle_render(args: argparse.Namespace) -> int:
    source = _read_input(args.input, args.text)
    command = args.plantuml_cmd or default_plantuml_cmd()
    with RenderingBackend(command, Path(args.output_dir), args.format, logger=get_logger(__name__)) as backend:
        image_path = backend.render(source)
    print(image_path)
    return 0


def main(argv: Optional[Iterable[str]] = None, preprocessor: Optional[PlantUMLPreprocessor] = None) -> int:
    raw_argv = list(argv) if argv is not None else sys.argv[1:]
    parser = _build_parser()

    debug_enabled = "--debug" in raw_argv or os.getenv("PLANTBOOK_DEBUG") == "1"
    error_format = "text"
    if "--error-format" in raw_argv:
        idx = raw_argv.index("--error-format")
        if idx + 1 < len(raw_argv):
            error_format = raw_argv[idx + 1]

    try:
        # stdout carries the book, keep log records away from it until config is known.
        configure_logging(False)
        args = parser.parse_args(raw_argv)
        error_format = args.error_format
        pre = preprocessor if preprocessor is not None else PlantUMLPreprocessor()

        if args.command == "supports":
            return 0 if pre.supports_renderer(args.renderer) else 1
        if args.command == "render":
            return _handle_render(args)
        return _handle_preprocess(pre)
    except UsageError as exc:
        err = CliError(
            "E_ARGS",
            str(exc),
            hint="Run without a subcommand from mdBook, or use: supports, render.",
            exit_code=2,
        )
        _emit_error(err, error_format=error_format)
        return err.exit_code
    except Exception as exc:  # pragma: no cover - exercised in integration tests
        err = _error_from_exception(exc)
        _emit_error(err, error_format=error_format)
        if debug_enabled:
            traceback.print_exc(file=sys.stderr)
        return err.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
