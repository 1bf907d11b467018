from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from ..reference import ImageReference


class HostMode(enum.Enum):
    """Where the container service performing pulls runs."""

    LOCAL = "local"
    REMOTE = "remote"


class MirrorSelection(enum.Enum):
    """Mirror organization an image is routed through."""

    STANDARD = "standard"
    LEGACY = "legacy"


@dataclass(frozen=True)
class ResolverSettings:
    """Constants the resolution rules match against.

    - mirror_name / legacy_mirror_name: mirror organizations prefixed to
      routed repositories
    - legacy_prefixes: repository prefixes served by the legacy mirror
    - mirror_only_marker: repository substring of mirror-only images
    - forbidden_registry_pattern: registry substring that is never allowed
    - loopback_registry / ephemeral_namespace / placeholder_repository:
      naming convention of images built at test time
    - mock_registry: registry host used when mocking an unconfigured mirror
    """

    mirror_name: str = "wasliberty-docker-remote"
    legacy_mirror_name: str = "wasliberty-infrastructure-docker"
    legacy_prefixes: Sequence[str] = ("kyleaure/",)
    mirror_only_marker: str = "wasliberty-"
    forbidden_registry_pattern: str = "artifactory.swg-devops.com"
    loopback_registry: str = "localhost"
    ephemeral_namespace: str = "testcontainers"
    placeholder_repository: str = "sha256"
    mock_registry: str = "mock.mirror.example.com"

    @classmethod
    def from_config(cls) -> ResolverSettings:
        from .. import config as sub_config

        return cls(
            mirror_name=sub_config.mirror_name(),
            legacy_mirror_name=sub_config.legacy_mirror_name(),
            legacy_prefixes=tuple(sub_config.legacy_prefixes()),
            mirror_only_marker=sub_config.mirror_only_marker(),
            forbidden_registry_pattern=sub_config.forbidden_registry_pattern(),
            mock_registry=sub_config.mock_registry(),
        )

    def mirror_for(self, selection: MirrorSelection) -> str:
        if selection is MirrorSelection.LEGACY:
            return self.legacy_mirror_name
        return self.mirror_name


@dataclass(frozen=True)
class ResolutionOutcome:
    """Result of resolving one image reference.

    ``collect`` is False only for synthetic images, which are never handed
    to the audit collector.
    """

    original: ImageReference
    resolved: ImageReference
    used_mirror: bool
    reason: str
    rule: str = field(default="", compare=False)
    collect: bool = True

    def __post_init__(self) -> None:
        if not self.reason:
            raise ValueError("resolution reason must not be empty")

    @property
    def changed(self) -> bool:
        return self.resolved != self.original


AuditCallback = Callable[[ImageReference, ImageReference], None]


class ResolutionError(RuntimeError):
    """Raised when an image reference cannot be resolved; never retried."""

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class UnsupportedPrivateRegistry(ResolutionError):
    """The requested registry is private and not reachable by every user."""

    def __init__(self, original: ImageReference, pattern: str) -> None:
        super().__init__(
            f"Image {original.canonical_name} requests registry {original.registry}, "
            f"which matches private registry pattern [ {pattern} ]. Not every "
            "developer has access to it, a public registry must be used."
        )
        self.original = original
        self.pattern = pattern


class MirrorRequiredButUnavailable(ResolutionError):
    """A rule required the mirror registry but it is not usable."""

    def __init__(
        self,
        original: ImageReference,
        resolved: ImageReference,
        reason: str,
        *,
        cause: Optional[BaseException] = None,
    ) -> None:
        error = cause if cause is not None else "no setup error was recorded"
        super().__init__(
            f"Need to swap image {original.canonical_name} --> {resolved.canonical_name}\n"
            f"Reason: {reason}\n"
            f"Error: The mirror registry is not available: {error}",
            cause=cause,
        )
        self.original = original
        self.resolved = resolved
        self.reason = reason
