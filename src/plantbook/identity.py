"""Content-addressed names for rendered diagrams."""
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path

# PlantUML writes these formats with an extension that differs from the -t flag.
_EXTENSION_OVERRIDES = {
    "txt": "atxt",
    "latex": "tex",
    "braille": "braille.png",
}


def extension_for_format(image_format: str) -> str:
    fmt = (image_format or "").strip().lower()
    if not fmt:
        raise ValueError("image format must be a non-empty string")
    # Sub-options such as svg:nornd or latex:nopreamble keep the base extension.
    base = fmt.split(":", 1)[0]
    if not base:
        raise ValueError(f"image format has no base type: {image_format!r}")
    return _EXTENSION_OVERRIDES.get(base, base)


@dataclass(frozen=True)
class ImageIdentity:
    digest: str
    image_format: str
    extension: str

    @property
    def filename(self) -> str:
        return f"{self.digest}.{self.extension}"

    def under(self, root: Path) -> Path:
        return Path(root) / self.filename


def image_identity(source_text: str, image_format: str) -> ImageIdentity:
    """Hash the exact bytes of *source_text*; no syntax checks are made."""
    digest = hashlib.sha256(source_text.encode("utf-8")).hexdigest()
    fmt = image_format.strip().lower() if image_format else ""
    return ImageIdentity(digest=digest, image_format=fmt, extension=extension_for_format(fmt))


def compute_image_path(output_root: Path, source_text: str, image_format: str) -> Path:
    return image_identity(source_text, image_format).under(output_root)
