"""Cross-build backend interfaces and implementations."""

from .base import BuildBackend, file_sha256
from .nix import NixCrossBackend

__all__ = [
    "BuildBackend",
    "NixCrossBackend",
    "file_sha256",
]
