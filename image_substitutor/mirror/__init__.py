"""Mirror registry availability gates."""

from .interface import (
    AvailabilityGate,
    AvailabilityState,
    MirrorSetupError,
    MirrorUnavailableError,
    StaticAvailabilityGate,
)

__all__ = [
    "AvailabilityGate",
    "AvailabilityState",
    "MirrorSetupError",
    "MirrorUnavailableError",
    "StaticAvailabilityGate",
]
