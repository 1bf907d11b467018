from .interface import ContainerError, ImagePuller

__all__ = [
    "ContainerError",
    "ImagePuller",
]
