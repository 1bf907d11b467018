from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


class MirrorSetupError(RuntimeError):
    """Captured when the mirror registry could not be set up."""

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class MirrorUnavailableError(RuntimeError):
    """Raised when the mirror host is requested from an unavailable gate."""


@dataclass(frozen=True)
class AvailabilityState:
    """Snapshot of mirror availability taken by a single probe."""

    available: bool
    registry: Optional[str] = None
    setup_error: Optional[BaseException] = None


class AvailabilityGate(Protocol):
    """Reports whether the mirror registry can be used.

    Implementations establish their state at most once and never change it
    on behalf of a caller. The resolver only reads it.
    """

    def is_available(self) -> bool:  # pragma: no cover - protocol
        """True when images can be pulled through the mirror."""
        ...

    def registry_host(self) -> str:  # pragma: no cover - protocol
        """Mirror registry host[:port].

        Raises:
            MirrorUnavailableError: If no registry host is known
        """
        ...

    def setup_error(self) -> Optional[BaseException]:  # pragma: no cover - protocol
        """Failure captured when the gate was first probed, if any."""
        ...

    def state(self) -> AvailabilityState:  # pragma: no cover - protocol
        """Full availability snapshot."""
        ...


class StaticAvailabilityGate:
    """Gate with a fixed state, useful for tests and explicit wiring."""

    def __init__(
        self,
        available: bool,
        registry: Optional[str] = None,
        setup_error: Optional[BaseException] = None,
    ) -> None:
        self._state = AvailabilityState(
            available=available,
            registry=registry,
            setup_error=setup_error,
        )

    def is_available(self) -> bool:
        return self._state.available

    def registry_host(self) -> str:
        if not self._state.registry:
            raise MirrorUnavailableError("mirror registry host is not configured")
        return self._state.registry

    def setup_error(self) -> Optional[BaseException]:
        return self._state.setup_error

    def state(self) -> AvailabilityState:
        return self._state
