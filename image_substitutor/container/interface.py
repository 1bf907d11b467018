from __future__ import annotations

from typing import Optional, Protocol


class ImagePuller(Protocol):
    """Makes resolved images available to the container service."""

    def ensure_image_available(self, image: str) -> str:  # pragma: no cover - protocol
        """Resolve the image name, pull it if missing and return the name used."""
        ...


class ContainerError(RuntimeError):
    """Raised for container service failures while pulling images."""

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.__cause__ = cause
