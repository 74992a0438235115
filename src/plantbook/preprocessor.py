"""mdBook preprocessor: render every ``plantuml`` block of every chapter."""
from __future__ import annotations

import json
from pathlib import Path, PurePosixPath
from typing import Any, Dict, IO, List, Optional, Tuple

from .backend import RenderError, RenderingBackend
from .config import PlantUMLConfig, get_plantuml_config
from .logsetup import get_logger
from .markdown import image_reference, relative_link, render_error_text, replace_plantuml_blocks
from .runner import CommandRunner

IMAGE_DIR_NAME = "mdbook-plantuml-img"
DEFAULT_SRC_DIR = "src"
# mdBook minor series this preprocessor was written against.
SUPPORTED_MDBOOK_SERIES = ("0.4",)


class ProtocolError(ValueError):
    """Raised when the JSON received from mdBook does not have the expected shape."""


def parse_input(stream: IO[str]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    try:
        payload = json.load(stream)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"unable to parse preprocessor input: {exc}") from exc
    if not isinstance(payload, list) or len(payload) != 2:
        raise ProtocolError("preprocessor input must be a JSON array of [context, book]")
    context, book = payload
    if not isinstance(context, dict) or not isinstance(book, dict):
        raise ProtocolError("preprocessor context and book must both be JSON objects")
    return context, book


def version_is_supported(mdbook_version: Optional[str]) -> bool:
    if not mdbook_version:
        return True
    return any(
        mdbook_version == series or mdbook_version.startswith(series + ".")
        for series in SUPPORTED_MDBOOK_SERIES
    )


def image_root(context: Dict[str, Any]) -> Path:
    root = Path(context.get("root") or ".")
    book_cfg = (context.get("config") or {}).get("book") or {}
    src = book_cfg.get("src") or DEFAULT_SRC_DIR
    return root / src / IMAGE_DIR_NAME


class PlantUMLPreprocessor:
    name = "plantuml"

    def __init__(self, runner: Optional[CommandRunner] = None, logger=None) -> None:
        self._runner = runner
        self._log = logger if logger is not None else get_logger(__name__)

    def supports_renderer(self, renderer: str) -> bool:
        return renderer != "not-supported"

    def run(self, context: Dict[str, Any], book: Dict[str, Any], config: Optional[PlantUMLConfig] = None) -> Dict[str, Any]:
        if config is None:
            config = get_plantuml_config(context)
        img_root = image_root(context)
        self._log.info("rendering plantuml blocks", image_root=str(img_root), command=config.command)

        with RenderingBackend(
            config.command,
            img_root,
            config.image_format,
            runner=self._runner,
            logger=self._log,
        ) as backend:
            for key in ("sections", "items"):
                if isinstance(book.get(key), list):
                    self._process_items(book[key], backend, config)
        return book

    def _process_items(self, items: List[Any], backend: RenderingBackend, config: PlantUMLConfig) -> None:
        for item in items:
            if not isinstance(item, dict) or "Chapter" not in item:
                continue
            chapter = item["Chapter"]
            content = chapter.get("content")
            if isinstance(content, str):
                chapter["content"] = self.process_content(content, chapter.get("path"), backend, config)
            sub_items = chapter.get("sub_items")
            if isinstance(sub_items, list):
                self._process_items(sub_items, backend, config)

    def process_content(
        self,
        content: str,
        chapter_path: Optional[str],
        backend: RenderingBackend,
        config: PlantUMLConfig,
    ) -> str:
        def render_block(code: str) -> str:
            try:
                image_path = backend.render(code)
            except RenderError as exc:
                self._log.error("failed to render diagram", chapter=chapter_path, error=str(exc))
                return render_error_text(str(exc))
            target = str(PurePosixPath(IMAGE_DIR_NAME, image_path.name))
            return image_reference(relative_link(chapter_path, target), config.clickable_img)

        return replace_plantuml_blocks(content, render_block)
