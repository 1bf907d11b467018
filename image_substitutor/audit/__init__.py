from .collector import ImageCollector, ImageRecord, UnverifiedImagesError

__all__ = ["ImageCollector", "ImageRecord", "UnverifiedImagesError"]
