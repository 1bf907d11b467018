"""Thread-safe collection of resolved images for post-run verification."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set

from ..reference import ImageReference

logger = logging.getLogger(__name__)


class UnverifiedImagesError(RuntimeError):
    """Raised when images outside the known set were used."""

    def __init__(self, records: List["ImageRecord"]) -> None:
        names = ", ".join(r.original.canonical_name for r in records)
        super().__init__(f"Images were used that are not in the known image list: {names}")
        self.records = records


@dataclass
class ImageRecord:
    """One original image and what it was resolved to."""

    original: ImageReference
    resolved: ImageReference
    first_seen: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_seen: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    count: int = 1

    @property
    def substituted(self) -> bool:
        return self.original != self.resolved


class ImageCollector:
    """Thread-safe registry of images resolved during a test run.

    Uses RLock for thread-safe operations. Records are keyed by the
    original canonical name; repeated resolutions bump the use count and
    keep the latest resolved reference.
    """

    def __init__(self, known_images: Optional[Iterable[str]] = None):
        """Initialize collector.

        Args:
            known_images: Canonical original names expected during the run
        """
        self._images: Dict[str, ImageRecord] = {}
        self._known: Set[str] = set(known_images or ())
        self._lock = threading.RLock()

    def collect(self, original: ImageReference, resolved: ImageReference) -> ImageReference:
        """Record an image and return the resolved reference unchanged."""
        key = original.canonical_name
        with self._lock:
            record = self._images.get(key)
            if record is None:
                self._images[key] = ImageRecord(original=original, resolved=resolved)
                logger.debug("Collected image: %s -> %s", key, resolved.canonical_name)
            else:
                record.resolved = resolved
                record.count += 1
                record.last_seen = datetime.now(timezone.utc)
        return resolved

    def get(self, name: str) -> Optional[ImageRecord]:
        with self._lock:
            return self._images.get(name)

    def list_images(self) -> List[ImageRecord]:
        with self._lock:
            return sorted(self._images.values(), key=lambda r: r.original.canonical_name)

    def add_known(self, names: Iterable[str]) -> None:
        with self._lock:
            self._known.update(names)

    def unverified(self) -> List[ImageRecord]:
        """Records whose original name is not in the known set.

        Nothing is reported while no known images are configured.
        """
        with self._lock:
            if not self._known:
                return []
            return [r for r in self.list_images() if r.original.canonical_name not in self._known]

    def verify(self) -> None:
        """Raise UnverifiedImagesError if any unknown image was used."""
        unknown = self.unverified()
        if unknown:
            for record in unknown:
                logger.error("Unverified image used: %s", record.original.canonical_name)
            raise UnverifiedImagesError(unknown)
        logger.info("Verified %d collected images", len(self._images))

    def clear(self) -> None:
        """Clear all entries."""
        with self._lock:
            self._images.clear()
