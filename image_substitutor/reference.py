"""Container image reference value type and parser."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Optional

DEFAULT_TAG = "latest"

_COMPONENT_RE = re.compile(r"^[a-z0-9]+(?:(?:\.|_|__|-+)[a-z0-9]+)*$")
_TAG_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")
_DIGEST_RE = re.compile(r"^[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}$")
_REGISTRY_RE = re.compile(r"^[A-Za-z0-9.-]+(?::[0-9]+)?$")


class MalformedReference(ValueError):
    """Raised when an image reference string cannot be parsed."""


@dataclass(frozen=True)
class ImageReference:
    """Immutable container image reference.

    - registry: host[:port], None for the default public registry
    - repository: path below the registry, e.g. "org/name"
    - tag: optional tag, "latest" is implied when neither tag nor digest is set
    - digest: optional content digest, e.g. "sha256:..."
    """

    repository: str
    registry: Optional[str] = None
    tag: Optional[str] = None
    digest: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.repository:
            raise MalformedReference("image repository must not be empty")

    @property
    def version(self) -> str:
        """Digest if pinned, else tag, else "latest"."""
        return self.digest or self.tag or DEFAULT_TAG

    @property
    def canonical_name(self) -> str:
        name = f"{self.registry}/{self.repository}" if self.registry else self.repository
        if self.digest:
            return f"{name}@{self.digest}"
        return f"{name}:{self.tag or DEFAULT_TAG}"

    @property
    def namespace(self) -> str:
        """First path segment of the repository."""
        return self.repository.split("/", 1)[0]

    def with_registry(self, registry: Optional[str]) -> ImageReference:
        return replace(self, registry=registry or None)

    def with_repository(self, repository: str) -> ImageReference:
        return replace(self, repository=repository)

    def __str__(self) -> str:
        return self.canonical_name


def parse_image_reference(text: str) -> ImageReference:
    """Parse ``[registry/]repository[:tag][@digest]`` into an ImageReference.

    The first path component is treated as a registry when it contains a
    "." or ":" or is exactly "localhost".

    Raises:
        MalformedReference: If the text is not a valid image reference
    """
    if not isinstance(text, str) or not text:
        raise MalformedReference("image reference must be a non-empty string")
    if any(ch.isspace() for ch in text):
        raise MalformedReference(f"image reference contains whitespace: {text!r}")

    name = text
    digest = None
    if "@" in name:
        name, digest = name.split("@", 1)
        if not _DIGEST_RE.match(digest):
            raise MalformedReference(f"invalid digest in image reference: {text!r}")

    tag = None
    colon = name.rfind(":")
    if colon > name.rfind("/"):
        name, tag = name[:colon], name[colon + 1:]
        if not _TAG_RE.match(tag):
            raise MalformedReference(f"invalid tag in image reference: {text!r}")

    parts = name.split("/")
    registry = None
    if len(parts) > 1 and ("." in parts[0] or ":" in parts[0] or parts[0] == "localhost"):
        registry = parts.pop(0)
        if not _REGISTRY_RE.match(registry):
            raise MalformedReference(f"invalid registry in image reference: {text!r}")

    for component in parts:
        if not _COMPONENT_RE.match(component):
            raise MalformedReference(
                f"invalid repository component {component!r} in image reference: {text!r}"
            )

    return ImageReference(
        repository="/".join(parts),
        registry=registry,
        tag=tag,
        digest=digest,
    )
