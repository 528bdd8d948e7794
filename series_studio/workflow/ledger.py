"""
Result Ledger
=============

Authoritative mapping from image id to its current ImageResult. Every
generation outcome in a session lands here; review, retry and export read it.
"""

import logging
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from ..series.models import ImageResult, ImageStatus

logger = logging.getLogger(__name__)

LedgerObserver = Callable[[ImageResult], None]


class ResultLedger:
    """
    Ordered, keyed collection of image results.

    At most one result exists per id. Seeding an id that is already present
    replaces the old result in place with a fresh ``generating`` placeholder.
    """

    def __init__(self, results: Optional[Iterable[ImageResult]] = None):
        self._results: Dict[str, ImageResult] = {}
        self._observers: List[LedgerObserver] = []
        for result in results or ():
            self._results[result.id] = result

    # -------------------------------------------------------------------------
    # Observation
    # -------------------------------------------------------------------------

    def subscribe(self, observer: LedgerObserver) -> None:
        """Register a callback invoked with every changed result."""
        self._observers.append(observer)

    def unsubscribe(self, observer: LedgerObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, result: ImageResult) -> None:
        for observer in list(self._observers):
            observer(result)

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def seed(self, image_id: str, prompt_id: Optional[str] = None) -> ImageResult:
        """Replace-or-insert a ``generating`` placeholder for ``image_id``."""
        placeholder = ImageResult.placeholder(image_id, prompt_id)
        self._results[image_id] = placeholder
        self._notify(placeholder)
        return placeholder

    def put(self, result: ImageResult) -> None:
        """Replace-or-insert a complete result (uploads, edits)."""
        self._results[result.id] = result
        self._notify(result)

    def mark_success(self, image_id: str, url: str, generated_by: Optional[str] = None) -> None:
        current = self._require(image_id)
        self.put(ImageResult.success(image_id, url, generated_by, prompt_id=current.prompt_id))

    def mark_error(self, image_id: str, message: str) -> None:
        current = self._require(image_id)
        self.put(ImageResult.failure(image_id, message, prompt_id=current.prompt_id))

    def mark_cancelled(self, image_id: str, reason: str) -> bool:
        """
        Cancel a still-pending entry.

        Entries that already reached a terminal state are left untouched.

        Returns:
            True if the entry was cancelled
        """
        current = self._results.get(image_id)
        if current is None or current.status != ImageStatus.GENERATING:
            return False
        self.put(ImageResult.cancelled(image_id, reason, prompt_id=current.prompt_id))
        return True

    def remove(self, image_id: str) -> Optional[ImageResult]:
        return self._results.pop(image_id, None)

    def clear(self) -> None:
        self._results.clear()

    def _require(self, image_id: str) -> ImageResult:
        try:
            return self._results[image_id]
        except KeyError:
            raise KeyError(f"No ledger entry for image: {image_id}") from None

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, image_id: str) -> Optional[ImageResult]:
        return self._results.get(image_id)

    def __contains__(self, image_id: object) -> bool:
        return image_id in self._results

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[ImageResult]:
        return iter(list(self._results.values()))

    def ids(self) -> List[str]:
        return list(self._results)

    def is_success(self, image_id: str) -> bool:
        result = self._results.get(image_id)
        return result is not None and result.status == ImageStatus.SUCCESS

    def successful(self) -> List[ImageResult]:
        """Results with a usable payload."""
        return [r for r in self._results.values() if r.status == ImageStatus.SUCCESS and r.url]

    def retryable(self) -> List[ImageResult]:
        """Failed or cancelled results that can be traced back to a prompt."""
        return [r for r in self._results.values() if r.status.is_retryable and r.prompt_id]

    def first_success_for(self, prompt_id: str) -> Optional[ImageResult]:
        for result in self._results.values():
            if result.prompt_id == prompt_id and result.status == ImageStatus.SUCCESS:
                return result
        return None

    def count_by_status(self) -> Dict[ImageStatus, int]:
        counts = {status: 0 for status in ImageStatus}
        for result in self._results.values():
            counts[result.status] += 1
        return counts

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def to_list(self) -> List[dict]:
        return [r.to_dict() for r in self._results.values()]

    @classmethod
    def from_list(cls, data: Iterable[dict]) -> "ResultLedger":
        return cls(ImageResult.from_dict(item) for item in data)
