"""Image reference resolution policy.

This module provides ImageResolver for choosing between the public
registry and the mirror registry.
"""

from .interface import (
    HostMode,
    MirrorRequiredButUnavailable,
    MirrorSelection,
    ResolutionError,
    ResolutionOutcome,
    ResolverSettings,
    UnsupportedPrivateRegistry,
)
from .resolver import ImageResolver

__all__ = [
    "HostMode",
    "ImageResolver",
    "MirrorRequiredButUnavailable",
    "MirrorSelection",
    "ResolutionError",
    "ResolutionOutcome",
    "ResolverSettings",
    "UnsupportedPrivateRegistry",
]
