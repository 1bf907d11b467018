"""ImageResolver: decides which registry an image is pulled from."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..mirror.interface import AvailabilityGate
from ..reference import ImageReference
from .interface import (
    AuditCallback,
    HostMode,
    MirrorRequiredButUnavailable,
    ResolutionOutcome,
    ResolverSettings,
)
from .rules import RULES, Rule, RuleContext, first_match

logger = logging.getLogger(__name__)


class ImageResolver:
    """Resolves image references to the public registry or the mirror.

    The resolver keeps no per-call state, so a single instance can serve
    any number of threads. Availability comes from the injected gate and
    collected images go to the injected audit callback.

    Example:
        resolver = ImageResolver(gate, audit=collector.collect)
        outcome = resolver.resolve(parse_image_reference("foo/bar:1.0"))
        print(outcome.resolved.canonical_name)
    """

    def __init__(
        self,
        gate: AvailabilityGate,
        *,
        settings: Optional[ResolverSettings] = None,
        audit: Optional[AuditCallback] = None,
        rules: Sequence[Rule] = RULES,
    ) -> None:
        """Initialize ImageResolver.

        Args:
            gate: Mirror availability gate (read only)
            settings: Rule constants (defaults to ResolverSettings.from_config())
            audit: Optional callback receiving (original, resolved) per resolution
            rules: Ordered rule table
        """
        self.gate = gate
        self.settings = settings if settings is not None else ResolverSettings.from_config()
        self.audit = audit
        self.rules = tuple(rules)

    def resolve(
        self,
        original: ImageReference,
        host_mode: HostMode = HostMode.LOCAL,
        force_external: bool = False,
        mock_mirror: bool = False,
    ) -> ResolutionOutcome:
        """Resolve an image reference.

        Args:
            original: Requested image reference
            host_mode: Whether the container service is local or remote
            force_external: Operator override to keep the original name
            mock_mirror: Behave as if the mirror were available (tests only)

        Returns:
            ResolutionOutcome with the reference to pull

        Raises:
            UnsupportedPrivateRegistry: If a private registry was requested
            MirrorRequiredButUnavailable: If the mirror is required but unusable
        """
        ctx = RuleContext(
            original=original,
            host_mode=host_mode,
            force_external=force_external,
            mock_mirror=mock_mirror,
            gate=self.gate,
            settings=self.settings,
        )
        outcome = first_match(ctx, self.rules)

        # Availability may have been probed long before this image was requested
        if outcome.used_mirror and not mock_mirror and not self.gate.is_available():
            raise MirrorRequiredButUnavailable(
                original,
                outcome.resolved,
                outcome.reason,
                cause=self.gate.setup_error(),
            )

        if outcome.changed:
            logger.info(
                "Swapping image name %s --> %s\nReason: %s",
                original.canonical_name,
                outcome.resolved.canonical_name,
                outcome.reason,
            )
        else:
            logger.info(
                "Keeping original image name: %s\nReason: %s",
                original.canonical_name,
                outcome.reason,
            )

        if outcome.collect:
            self._notify_audit(outcome)
        return outcome

    def _notify_audit(self, outcome: ResolutionOutcome) -> None:
        if self.audit is None:
            return
        try:
            self.audit(outcome.original, outcome.resolved)
        except Exception as exc:
            logger.warning(
                "Failed to record image %s for verification: %s",
                outcome.original.canonical_name,
                exc,
            )
