"""Ordered image resolution rules.

Rules are evaluated in the order of ``RULES``; the first rule whose
``matches`` predicate holds produces the outcome and evaluation stops.

Precedence:
1. synthetic: images built at test time are never rewritten or collected
2. mirror_only: repositories that only exist in the mirror
3. forbidden_registry: private registries are rejected
4. explicit_registry: an explicit registry is kept as requested
5. remote_host: remote container hosts must pull through the mirror
6. force_external: operator opt-out
7. mirror_available: use the mirror to avoid public rate limits
8. mock_mirror: pretend the mirror is available
9. default: keep the original image
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from ..mirror.interface import AvailabilityGate
from ..reference import DEFAULT_TAG, ImageReference
from .interface import (
    HostMode,
    MirrorSelection,
    ResolutionOutcome,
    ResolverSettings,
    UnsupportedPrivateRegistry,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleContext:
    """Inputs visible to every rule for one resolution."""

    original: ImageReference
    host_mode: HostMode
    force_external: bool
    mock_mirror: bool
    gate: AvailabilityGate
    settings: ResolverSettings


@dataclass(frozen=True)
class Rule:
    name: str
    matches: Callable[[RuleContext], bool]
    apply: Callable[[RuleContext], ResolutionOutcome]


def is_synthetic(ref: ImageReference, settings: ResolverSettings) -> bool:
    """True for images built or committed programmatically during a test run.

    Pulling these through a mirror fails with a 404, so they are never
    substituted.
    """
    built = (
        ref.registry == settings.loopback_registry
        and ref.namespace == settings.ephemeral_namespace
        and ref.version == DEFAULT_TAG
    )
    committed = ref.repository == settings.placeholder_repository
    return built or committed


def select_mirror(ref: ImageReference, settings: ResolverSettings) -> MirrorSelection:
    """Pick the mirror organization for a repository."""
    for prefix in settings.legacy_prefixes:
        if ref.repository.startswith(prefix):
            return MirrorSelection.LEGACY
    return MirrorSelection.STANDARD


def mirror_host(ctx: RuleContext) -> Optional[str]:
    """Registry host of the mirror.

    When the gate is unavailable the configured host is still used so the
    would-be name can be reported. With no configured host the mocked host
    stands in only in mock mode; otherwise None is returned and the
    would-be name carries no registry.
    """
    if ctx.gate.is_available():
        return ctx.gate.registry_host()
    registry = ctx.gate.state().registry
    if registry:
        return registry
    if ctx.mock_mirror:
        return ctx.settings.mock_registry
    return None


def _keep(
    ctx: RuleContext,
    reason: str,
    *,
    collect: bool = True,
    rule: str = "",
) -> ResolutionOutcome:
    return ResolutionOutcome(
        original=ctx.original,
        resolved=ctx.original,
        used_mirror=False,
        reason=reason,
        rule=rule,
        collect=collect,
    )


def route_through_mirror(ctx: RuleContext, reason: str, rule: str) -> ResolutionOutcome:
    """Rewrite to ``<mirror host>/<mirror name>/<repository>``."""
    selection = select_mirror(ctx.original, ctx.settings)
    mirror_name = ctx.settings.mirror_for(selection)
    logger.debug(
        "Using %s mirror %s for image %s",
        selection.value,
        mirror_name,
        ctx.original.canonical_name,
    )
    resolved = ctx.original.with_repository(
        f"{mirror_name}/{ctx.original.repository}"
    ).with_registry(mirror_host(ctx))
    return ResolutionOutcome(
        original=ctx.original,
        resolved=resolved,
        used_mirror=True,
        reason=reason,
        rule=rule,
    )


def _apply_synthetic(ctx: RuleContext) -> ResolutionOutcome:
    logger.warning(
        "Cannot use mirror registry for programmatically built or committed image %s. "
        "Consider using a pre-built image instead.",
        ctx.original.canonical_name,
    )
    return _keep(
        ctx,
        "Image name is known to be synthetic, cannot use mirror registry.",
        collect=False,
        rule="synthetic",
    )


def _apply_mirror_only(ctx: RuleContext) -> ResolutionOutcome:
    return ResolutionOutcome(
        original=ctx.original,
        resolved=ctx.original.with_registry(mirror_host(ctx)),
        used_mirror=True,
        reason="This image only exists in the mirror, must use mirror registry.",
        rule="mirror_only",
    )


def _apply_forbidden_registry(ctx: RuleContext) -> ResolutionOutcome:
    raise UnsupportedPrivateRegistry(ctx.original, ctx.settings.forbidden_registry_pattern)


def _apply_explicit_registry(ctx: RuleContext) -> ResolutionOutcome:
    return _keep(
        ctx,
        "Image name is explicitly set with registry, cannot modify registry.",
        rule="explicit_registry",
    )


def _apply_force_external(ctx: RuleContext) -> ResolutionOutcome:
    return _keep(
        ctx,
        "Force external was set to true, must use original image name.",
        rule="force_external",
    )


RULES: Sequence[Rule] = (
    Rule(
        name="synthetic",
        matches=lambda ctx: is_synthetic(ctx.original, ctx.settings),
        apply=_apply_synthetic,
    ),
    Rule(
        name="mirror_only",
        matches=lambda ctx: ctx.settings.mirror_only_marker in ctx.original.repository,
        apply=_apply_mirror_only,
    ),
    Rule(
        name="forbidden_registry",
        matches=lambda ctx: bool(ctx.original.registry)
        and ctx.settings.forbidden_registry_pattern in ctx.original.registry,
        apply=_apply_forbidden_registry,
    ),
    Rule(
        name="explicit_registry",
        matches=lambda ctx: bool(ctx.original.registry),
        apply=_apply_explicit_registry,
    ),
    Rule(
        name="remote_host",
        matches=lambda ctx: ctx.host_mode is HostMode.REMOTE,
        apply=lambda ctx: route_through_mirror(
            ctx, "Using a remote container host, must use mirror registry.", "remote_host"
        ),
    ),
    Rule(
        name="force_external",
        matches=lambda ctx: ctx.force_external,
        apply=_apply_force_external,
    ),
    Rule(
        name="mirror_available",
        matches=lambda ctx: ctx.gate.is_available(),
        apply=lambda ctx: route_through_mirror(
            ctx, "Mirror registry was available.", "mirror_available"
        ),
    ),
    Rule(
        name="mock_mirror",
        matches=lambda ctx: ctx.mock_mirror,
        apply=lambda ctx: route_through_mirror(
            ctx, "Mocking mirror registry behavior.", "mock_mirror"
        ),
    ),
    Rule(
        name="default",
        matches=lambda ctx: True,
        apply=lambda ctx: _keep(
            ctx, "Default behavior: use default registry.", rule="default"
        ),
    ),
)


def first_match(ctx: RuleContext, rules: Optional[Sequence[Rule]] = None) -> ResolutionOutcome:
    """Apply the first matching rule."""
    for rule in rules if rules is not None else RULES:
        if rule.matches(ctx):
            logger.debug("Rule %s matched image %s", rule.name, ctx.original.canonical_name)
            return rule.apply(ctx)
    raise LookupError(f"no rule matched image {ctx.original.canonical_name}")
