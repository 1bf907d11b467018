from __future__ import annotations

import logging
from time import monotonic, sleep
from typing import Any, Callable, Optional

from podman import PodmanClient
from podman.errors import APIError, NotFound

from .. import config as sub_config
from ..substitutor import ImageNameSubstitutor
from .interface import ContainerError, ImagePuller

logger = logging.getLogger(__name__)


class PodmanImagePuller(ImagePuller):
    """Pull hook that substitutes image names before pulling through Podman.

    Boundary rules:
    - Only this module and the availability gate talk to Podman Python APIs.
    - Name decisions belong to the substitutor; this class only pulls.
    """

    def __init__(
        self,
        substitutor: ImageNameSubstitutor,
        *,
        base_url: Optional[str] = None,
        pull_timeout: Optional[int] = None,
        client_factory: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.substitutor = substitutor
        self._base_url = base_url or sub_config.container_host()
        self._timeout_pull_s = int(
            pull_timeout if pull_timeout is not None else sub_config.pull_timeout()
        )
        self._client_factory = client_factory or PodmanClient
        # Lazy-init Podman client on first use
        self._client = None  # type: ignore[var-annotated]

    def ensure_image_available(self, image: str) -> str:
        """Resolve ``image`` and make sure the resolved image is present.

        Raises:
            MalformedReference: If ``image`` cannot be parsed
            ResolutionError: If the image name cannot be resolved
            ContainerError: If the image cannot be checked or pulled
        """
        resolved = self.substitutor.apply(image)
        self._ensure_client()
        try:
            has_local = self._has_image(resolved)
        except APIError as exc:
            raise ContainerError(f"failed to check image {resolved}", cause=exc)

        if has_local:
            logger.debug("Image %s already present, not pulling", resolved)
        else:
            self._pull_image(resolved)
        return resolved

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    # --- private helpers ---

    def _ensure_client(self) -> None:
        if self._client is None:
            try:
                self._client = self._client_factory(base_url=self._base_url)
            except Exception as exc:
                raise ContainerError(
                    f"failed to connect to container service at {self._base_url}", cause=exc
                )

    def _has_image(self, image: str) -> bool:
        assert self._client is not None
        try:
            self._client.images.get(image)
            return True
        except NotFound:
            return False

    def _pull_image(self, image: str) -> None:
        assert self._client is not None
        deadline = monotonic() + self._timeout_pull_s
        last_exc: Optional[BaseException] = None
        logger.info("Pulling image %s", image)
        while True:
            try:
                self._client.images.pull(image)
                return
            except APIError as exc:
                last_exc = exc
                logger.debug("Pull of %s failed, retrying: %s", image, exc)
            if monotonic() >= deadline:
                raise ContainerError(f"timeout pulling image: {image}", cause=last_exc)
            sleep(1.0)
