"""Harness-facing image name substitutor.

The test harness hands every image name to ``ImageNameSubstitutor.apply``
before pulling it. Names are routed through the mirror registry when it is
required or available, so remote builds do not hit public registry rate
limits.
"""

from __future__ import annotations

import logging
from typing import Optional

from . import config as sub_config
from .audit import ImageCollector
from .mirror.interface import AvailabilityGate
from .policy import HostMode, ImageResolver, ResolutionOutcome
from .reference import ImageReference, parse_image_reference

logger = logging.getLogger(__name__)


class ImageNameSubstitutor:
    """Applies the resolution policy with process-wide flags from config."""

    description = "MirrorImageNameSubstitutor"

    def __init__(
        self,
        resolver: ImageResolver,
        *,
        collector: Optional[ImageCollector] = None,
        host_mode: Optional[HostMode] = None,
        force_external: Optional[bool] = None,
        mock_mirror: Optional[bool] = None,
    ) -> None:
        """Initialize ImageNameSubstitutor.

        Flags left as None are read from config once, at construction.

        Args:
            resolver: Resolver deciding the final reference
            collector: Optional collector backing the resolver's audit callback
            host_mode: Local or remote container service
            force_external: Operator override to keep original names
            mock_mirror: Behave as if the mirror were available
        """
        self.resolver = resolver
        self.collector = collector
        self.host_mode = host_mode if host_mode is not None else sub_config.host_mode()
        self.force_external = (
            force_external if force_external is not None else sub_config.force_external()
        )
        self.mock_mirror = mock_mirror if mock_mirror is not None else sub_config.mock_mirror()

    @property
    def gate(self) -> AvailabilityGate:
        return self.resolver.gate

    def apply_reference(self, original: ImageReference) -> ResolutionOutcome:
        return self.resolver.resolve(
            original,
            host_mode=self.host_mode,
            force_external=self.force_external,
            mock_mirror=self.mock_mirror,
        )

    def apply(self, image: str) -> str:
        """Resolve an image name and return the canonical name to pull."""
        return self.apply_reference(parse_image_reference(image)).resolved.canonical_name


def build_substitutor(
    gate: Optional[AvailabilityGate] = None,
    collector: Optional[ImageCollector] = None,
) -> ImageNameSubstitutor:
    """Wire a substitutor from config.

    Starts the monitoring server when monitoring_enabled is set.

    Args:
        gate: Availability gate (defaults to a PodmanAvailabilityGate)
        collector: Audit collector (defaults to one seeded with known images)
    """
    if gate is None:
        from .mirror.podman_gate import PodmanAvailabilityGate

        gate = PodmanAvailabilityGate()
    if collector is None:
        collector = ImageCollector(known_images=sub_config.known_images())

    resolver = ImageResolver(gate, audit=collector.collect)
    substitutor = ImageNameSubstitutor(resolver, collector=collector)
    logger.debug(
        "Built %s (host_mode=%s force_external=%s mock_mirror=%s)",
        substitutor.description,
        substitutor.host_mode.value,
        substitutor.force_external,
        substitutor.mock_mirror,
    )

    from .monitoring import start_monitoring_from_config

    start_monitoring_from_config(substitutor)
    return substitutor
