"""Public API for plantbook."""
from .backend import (
    CommandFailed,
    CopyFailed,
    NoOutputProduced,
    RenderError,
    RenderingBackend,
    ScratchWriteFailed,
)
from .identity import ImageIdentity, compute_image_path
from .preprocessor import PlantUMLPreprocessor
from .runner import CommandExecutionError, CommandRunner, ShellCommandRunner

__all__ = [
    "RenderingBackend",
    "RenderError",
    "ScratchWriteFailed",
    "CommandFailed",
    "NoOutputProduced",
    "CopyFailed",
    "ImageIdentity",
    "compute_image_path",
    "CommandRunner",
    "ShellCommandRunner",
    "CommandExecutionError",
    "PlantUMLPreprocessor",
]
