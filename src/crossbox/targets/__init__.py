"""Target registry: known triples, their images, and host detection."""

from .registry import (
    DEFAULT_REGISTRY,
    TargetRegistry,
    TargetSpec,
    host_triple,
)

__all__ = [
    "DEFAULT_REGISTRY",
    "TargetRegistry",
    "TargetSpec",
    "host_triple",
]
