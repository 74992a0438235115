"""Preprocessor options read from the ``[preprocessor.plantuml]`` table of book.toml."""
from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

from .identity import extension_for_format
from .logsetup import get_logger

log = get_logger(__name__)

CONFIG_SECTION = ("preprocessor", "plantuml")


def default_plantuml_cmd() -> str:
    if os.name == "nt":
        return "java -jar plantuml.jar"
    return "/usr/bin/plantuml"


@dataclass
class PlantUMLConfig:
    # When unset, PlantUML is assumed to be installed in the default location.
    # Set it to add flags or point at a jar, e.g. "java -jar plantuml.jar".
    plantuml_cmd: Optional[str] = None
    # Wrap each image in a link to itself so large diagrams can be zoomed.
    clickable_img: bool = False
    image_format: str = "svg"
    logging_enabled: bool = False
    # logging.config.fileConfig INI file replacing the default output.log logger.
    logging_config: Optional[str] = None

    @property
    def command(self) -> str:
        return self.plantuml_cmd or default_plantuml_cmd()

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "PlantUMLConfig":
        """Build from a kebab-case mapping; raises ValueError on a mistyped value."""
        values = {}
        for field in fields(cls):
            key = field.name.replace("_", "-")
            if key not in raw:
                continue
            value = raw[key]
            default = getattr(cls, field.name)
            if isinstance(default, bool):
                if not isinstance(value, bool):
                    raise ValueError(f"{key} must be a boolean, got {value!r}")
            elif field.name == "image_format":
                if not isinstance(value, str) or not value.strip():
                    raise ValueError(f"{key} must be a non-empty string, got {value!r}")
                extension_for_format(value)
            elif value is not None and not isinstance(value, str):
                raise ValueError(f"{key} must be a string, got {value!r}")
            values[field.name] = value
        return cls(**values)


def get_plantuml_config(context: Mapping[str, Any]) -> PlantUMLConfig:
    raw: Any = context.get("config") or {}
    for key in CONFIG_SECTION:
        raw = raw.get(key) if isinstance(raw, Mapping) else None
        if raw is None:
            return PlantUMLConfig()
    if not isinstance(raw, Mapping):
        log.warning("plantuml config is not a table, using default configuration")
        return PlantUMLConfig()
    try:
        return PlantUMLConfig.from_mapping(raw)
    except ValueError as exc:
        log.warning("failed to get config from book.toml, using default configuration", error=str(exc))
        return PlantUMLConfig()
