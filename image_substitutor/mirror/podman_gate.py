from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from podman import PodmanClient
from podman.errors import APIError

from .. import config as sub_config
from .interface import (
    AvailabilityGate,
    AvailabilityState,
    MirrorSetupError,
    MirrorUnavailableError,
)

logger = logging.getLogger(__name__)


class PodmanAvailabilityGate(AvailabilityGate):
    """Availability gate that logs in to the mirror through Podman.

    The probe runs at most once per instance. The first caller probes while
    holding the lock; every later caller reads the cached snapshot. Probe
    failures are captured as the setup error and never raised.

    Probe order:
    1. mirror registry configured
    2. mirror credentials configured
    3. container service answers ping
    4. registry login succeeds (stores credentials for later pulls)
    """

    def __init__(
        self,
        *,
        registry: Optional[str] = None,
        username: Optional[str] = None,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        client_factory: Optional[Callable[..., Any]] = None,
    ) -> None:
        self._registry = registry if registry is not None else sub_config.mirror_registry()
        self._username = username if username is not None else sub_config.mirror_user()
        self._token = token if token is not None else sub_config.mirror_token()
        self._base_url = base_url or sub_config.container_host()
        self._client_factory = client_factory or PodmanClient
        self._state: Optional[AvailabilityState] = None
        self._lock = threading.Lock()

    # --- public interface ---

    def is_available(self) -> bool:
        return self.state().available

    def registry_host(self) -> str:
        state = self.state()
        if not state.available or not state.registry:
            raise MirrorUnavailableError(
                f"mirror registry is not available: {state.setup_error}"
            )
        return state.registry

    def setup_error(self) -> Optional[BaseException]:
        return self.state().setup_error

    def state(self) -> AvailabilityState:
        state = self._state
        if state is None:
            with self._lock:
                if self._state is None:
                    self._state = self._probe()
                state = self._state
        return state

    def reset(self) -> None:
        """Forget the cached snapshot (useful for testing)."""
        with self._lock:
            self._state = None

    # --- private helpers ---

    def _probe(self) -> AvailabilityState:
        try:
            self._check_mirror()
        except MirrorSetupError as exc:
            logger.warning("Mirror registry %s is unavailable: %s", self._registry, exc)
            return AvailabilityState(available=False, registry=self._registry, setup_error=exc)

        logger.info("Mirror registry %s is available", self._registry)
        return AvailabilityState(available=True, registry=self._registry)

    def _check_mirror(self) -> None:
        if not self._registry:
            raise MirrorSetupError(
                "mirror registry is not configured (IMAGE_SUBSTITUTOR_MIRROR_REGISTRY)"
            )
        if not self._username or not self._token:
            raise MirrorSetupError(
                f"no credentials configured for mirror registry {self._registry} "
                "(IMAGE_SUBSTITUTOR_MIRROR_USER, IMAGE_SUBSTITUTOR_MIRROR_TOKEN)"
            )

        try:
            with self._client_factory(base_url=self._base_url) as client:
                if not client.ping():
                    raise MirrorSetupError(
                        f"container service at {self._base_url} did not answer ping"
                    )
                client.login(
                    username=self._username,
                    password=self._token,
                    registry=self._registry,
                )
        except MirrorSetupError:
            raise
        except APIError as exc:
            raise MirrorSetupError(
                f"login to mirror registry {self._registry} failed: {exc}", cause=exc
            )
        except Exception as exc:
            raise MirrorSetupError(
                f"container service at {self._base_url} is unreachable: {exc}", cause=exc
            )

        logger.debug("Logged in to mirror registry %s as %s", self._registry, self._username)
