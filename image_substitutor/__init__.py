"""Container image name substitution for test harnesses.

Routes image pulls through an internal mirror registry when it is required
or available, and records every image used for later verification.
"""

from .reference import ImageReference, MalformedReference, parse_image_reference
from .substitutor import ImageNameSubstitutor, build_substitutor

__all__ = [
    "ImageNameSubstitutor",
    "ImageReference",
    "MalformedReference",
    "build_substitutor",
    "parse_image_reference",
]
