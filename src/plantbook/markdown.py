"""Locate fenced ``plantuml`` blocks in Markdown and splice in replacements."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional

PLANTUML_INFO = "plantuml"

_OPEN_FENCE = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})(?P<info>[^\r\n]*)")


@dataclass
class FencedBlock:
    start: int  # first line index (opening fence)
    end: int  # one past the closing fence line
    info: str
    code: str

    @property
    def language(self) -> str:
        parts = self.info.split()
        return parts[0] if parts else ""


def _closes(line: str, fence: str) -> bool:
    stripped = line.rstrip("\r\n")
    match = re.match(r"^ {0,3}(`+|~+)[ \t]*$", stripped)
    if not match:
        return False
    run = match.group(1)
    return run[0] == fence[0] and len(run) >= len(fence)


def _dedent(line: str, indent: int) -> str:
    removed = 0
    while removed < indent and line.startswith(" "):
        line = line[1:]
        removed += 1
    return line


def iter_fenced_blocks(lines: List[str]) -> Iterator[FencedBlock]:
    """Yield every fenced code block; *lines* must keep their line endings."""
    i = 0
    while i < len(lines):
        match = _OPEN_FENCE.match(lines[i])
        if not match:
            i += 1
            continue
        fence = match.group("fence")
        info = match.group("info").strip()
        if fence[0] == "`" and "`" in info:
            i += 1
            continue
        indent = len(match.group("indent"))
        j = i + 1
        body: List[str] = []
        while j < len(lines) and not _closes(lines[j], fence):
            body.append(_dedent(lines[j], indent))
            j += 1
        # Unterminated blocks run to the end of the document.
        end = min(j + 1, len(lines))
        yield FencedBlock(start=i, end=end, info=info, code="".join(body))
        i = end


def find_plantuml_blocks(markdown: str) -> List[FencedBlock]:
    lines = markdown.splitlines(keepends=True)
    return [block for block in iter_fenced_blocks(lines) if block.language == PLANTUML_INFO]


def replace_plantuml_blocks(markdown: str, render: Callable[[str], str]) -> str:
    """Replace each ``plantuml`` block with ``render(code)``; the rest is kept verbatim."""
    lines = markdown.splitlines(keepends=True)
    out: List[str] = []
    cursor = 0
    for block in iter_fenced_blocks(lines):
        if block.language != PLANTUML_INFO:
            continue
        out.extend(lines[cursor:block.start])
        out.append(render(block.code))
        cursor = block.end
    out.extend(lines[cursor:])
    return "".join(out)


def image_reference(link: str, clickable: bool = False) -> str:
    if clickable:
        return f"[![]({link})]({link})\n\n"
    return f"![]({link})\n\n"


def render_error_text(message: str) -> str:
    return f"\nPlantUML rendering error:\n{message}\n\n"


def relative_link(chapter_path: Optional[str], target: str) -> str:
    """Link to *target* (relative to the book source dir) from a chapter file."""
    depth = 0
    if chapter_path:
        depth = len([part for part in re.split(r"[\\/]", chapter_path)[:-1] if part and part != "."])
    return "../" * depth + target
