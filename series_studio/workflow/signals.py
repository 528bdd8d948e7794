"""
Batch Signals
=============

Cancellation and quota flags shared between the issuing session and a
running batch. A signals object is passed explicitly into every runner call.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..core.exceptions import is_quota_message  # noqa: F401  (re-exported)

logger = logging.getLogger(__name__)

USER_STOPPED_REASON = "Stopped by user"
QUOTA_CANCELLED_REASON = "Cancelled due to API limit"
INTERRUPTED_REASON = "Batch interrupted"
QUOTA_ADVISORY = (
    "Your API quota has reached its limit. Save the project and send it to "
    "another team member to load and continue."
)


@dataclass
class BatchSignals:
    """
    Cooperative control flags for sequential batches.

    ``stopping`` is polled by a runner before each task. ``quota_exceeded``
    survives the batch that set it and is only cleared explicitly.
    """

    stopping: bool = False
    quota_exceeded: bool = False
    error: Optional[str] = None

    def request_stop(self) -> None:
        if not self.stopping:
            logger.info("Stop requested; remaining tasks will be cancelled")
        self.stopping = True

    def reset_stop(self) -> None:
        self.stopping = False

    def mark_quota_exceeded(self, advisory: str = QUOTA_ADVISORY) -> None:
        self.quota_exceeded = True
        self.error = advisory

    def clear_quota(self) -> None:
        self.quota_exceeded = False

    def set_error(self, message: str) -> None:
        self.error = message

    def clear_error(self) -> None:
        self.error = None
