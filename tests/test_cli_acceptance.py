from __future__ import annotations

import io
import json
import os
import stat
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

TESTS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))
sys.path.insert(0, str(TESTS_DIR))

from _fakes import FakeCommandRunner
from plantbook import cli
from plantbook.identity import compute_image_path
from plantbook.preprocessor import IMAGE_DIR_NAME, PlantUMLPreprocessor

DIAGRAM = "@startuml\nA->B\n@enduml\n"

# Mimics PlantUML: writes <stem>.svg next to the source given as last argument.
FAKE_PLANTUML = """#!/bin/sh
for last; do :; done
cp "$last" "${last%.puml}.svg"
"""


def _payload(root: Path, chapters, version: str = "0.4.40") -> str:
    context = {
        "root": str(root),
        "config": {"book": {"src": "src"}, "preprocessor": {"plantuml": {"plantuml-cmd": "plantuml"}}},
        "renderer": "html",
        "mdbook_version": version,
    }
    return json.dumps([context, {"sections": chapters, "__non_exhaustive": None}])


def _chapter(path: str, content: str):
    return {"Chapter": {"name": path, "content": content, "number": None, "sub_items": [], "path": path, "parent_names": []}}


class CLIAcceptanceTests(unittest.TestCase):
    def run_cli(self, argv, stdin_text: str = "", preprocessor=None):
        stdout = io.StringIO()
        stderr = io.StringIO()
        stdin = io.StringIO(stdin_text)
        with mock.patch("sys.stdout", stdout), mock.patch("sys.stderr", stderr), mock.patch("sys.stdin", stdin):
            code = cli.main(argv, preprocessor=preprocessor)
        return code, stdout.getvalue(), stderr.getvalue()

    def test_supports(self) -> None:
        code, out, _err = self.run_cli(["supports", "html"])
        self.assertEqual(code, 0)
        self.assertEqual(out, "")
        code, _out, _err = self.run_cli(["supports", "not-supported"])
        self.assertEqual(code, 1)

    def test_supports_requires_renderer(self) -> None:
        code, _out, err = self.run_cli(["supports"])
        self.assertEqual(code, 2)
        self.assertIn("E_ARGS", err)

    def test_preprocess_round_trip(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            runner = FakeCommandRunner(create_file=True)
            stdin = _payload(root, [_chapter("intro.md", f"```plantuml\n{DIAGRAM}```\n")])
            code, out, err = self.run_cli([], stdin, preprocessor=PlantUMLPreprocessor(runner=runner))
            self.assertEqual(code, 0, err)
            book = json.loads(out)
            image = compute_image_path(root / "src" / IMAGE_DIR_NAME, DIAGRAM, "svg")
            self.assertEqual(book["sections"][0]["Chapter"]["content"], f"![]({IMAGE_DIR_NAME}/{image.name})\n\n")
            self.assertIn("__non_exhaustive", book)
            self.assertTrue(image.exists())
            self.assertEqual(runner.calls[0][0], "plantuml")

    def test_preprocess_warns_on_version_mismatch(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            stdin = _payload(Path(td), [], version="0.5.1")
            code, out, err = self.run_cli([], stdin, preprocessor=PlantUMLPreprocessor(runner=FakeCommandRunner()))
            self.assertEqual(code, 0, err)
            self.assertIn("Warning", err)
            self.assertIn("0.5.1", err)
            self.assertEqual(json.loads(out)["sections"], [])

    def test_preprocess_rejects_invalid_input(self) -> None:
        code, out, err = self.run_cli([], "this is not json")
        self.assertEqual(code, 1)
        self.assertEqual(out, "")
        self.assertIn("E_PROTOCOL", err)

    def test_json_error_format(self) -> None:
        code, _out, err = self.run_cli(["--error-format", "json"], "[]")
        self.assertEqual(code, 1)
        payload = json.loads(err)
        self.assertFalse(payload["ok"])
        self.assertEqual(payload["code"], "E_PROTOCOL")

    def test_render_rejects_file_and_text(self) -> None:
        code, _out, err = self.run_cli(["render", "a.puml", "--text", DIAGRAM])
        self.assertEqual(code, 2)
        self.assertIn("E_ARGS", err)

    def test_render_missing_file(self) -> None:
        code, _out, err = self.run_cli(["render", "does-not-exist.puml"])
        self.assertEqual(code, 2)
        self.assertIn("E_IO_READ", err)


@unittest.skipUnless(os.name == "posix", "uses a shell script as PlantUML")
class CLIRenderTests(unittest.TestCase):
    run_cli = CLIAcceptanceTests.run_cli

    def _script(self, td: str, body: str) -> str:
        path = Path(td) / "fake-plantuml"
        path.write_text(body)
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
        return str(path)

    def test_render_text_with_fake_plantuml(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cmd = self._script(td, FAKE_PLANTUML)
            out_dir = Path(td) / "images"
            code, out, err = self.run_cli(
                ["render", "--text", DIAGRAM, "-o", str(out_dir), "--plantuml-cmd", cmd]
            )
            self.assertEqual(code, 0, err)
            image = compute_image_path(out_dir, DIAGRAM, "svg")
            self.assertEqual(out.strip(), str(image))
            self.assertEqual(image.read_text(), DIAGRAM)

    def test_render_file_from_disk(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cmd = self._script(td, FAKE_PLANTUML)
            src = Path(td) / "seq.puml"
            src.write_text(DIAGRAM)
            code, out, err = self.run_cli(["render", str(src), "-o", td, "--plantuml-cmd", cmd])
            self.assertEqual(code, 0, err)
            self.assertTrue(Path(out.strip()).exists())

    def test_render_command_failure(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cmd = self._script(td, "#!/bin/sh\necho 'Syntax Error?' >&2\nexit 200\n")
            code, _out, err = self.run_cli(["render", "--text", DIAGRAM, "-o", td, "--plantuml-cmd", cmd])
            self.assertEqual(code, 3)
            self.assertIn("E_COMMAND_FAILED", err)
            self.assertIn("Syntax Error?", err)

    def test_render_no_output(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cmd = self._script(td, "#!/bin/sh\nexit 0\n")
            code, _out, err = self.run_cli(["render", "--text", "A->B", "-o", td, "--plantuml-cmd", cmd])
            self.assertEqual(code, 3)
            self.assertIn("E_NO_OUTPUT", err)
            self.assertIn("@startuml", err)


if __name__ == "__main__":
    unittest.main()
