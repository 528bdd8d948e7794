"""
Sequential Generation Runner
============================

Executes a batch of generation tasks strictly one at a time against the
generation service, with a fixed pacing delay between calls, cooperative
cancellation and quota escalation.

The batch is processed as a small pipeline:

1. seed a ``generating`` placeholder in the ledger for every task
2. drain the tasks through a cancellation-aware step loop
3. cancel anything still pending and clear the stop flag

A failing task only fails itself, except when its message reports an
exhausted quota: then the quota flag is raised and every remaining task is
cancelled.
"""

import asyncio
import logging
from collections import Counter
from typing import Any, Awaitable, Callable, Generic, Optional, Sequence, TypeVar

from ..core.exceptions import GenerationTimeoutError
from ..core.security import redact_api_key
from .ledger import ResultLedger
from .signals import (
    BatchSignals,
    INTERRUPTED_REASON,
    QUOTA_CANCELLED_REASON,
    USER_STOPPED_REASON,
    is_quota_message,
)
from .tasks import GenerationTask

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PACING_DELAY = 2.5

Sleep = Callable[[float], Awaitable[Any]]


def error_message(error: BaseException) -> str:
    """Human-readable failure reason recorded on an image."""
    return str(error) or error.__class__.__name__


class SequentialDrain(Generic[T]):
    """
    Step loop shared by all sequential orchestrators.

    Exactly one ``execute`` call is in flight at a time. The stop flag is
    polled before each item; a call already in flight always runs to
    completion.
    """

    def __init__(
        self,
        pacing_delay: float = DEFAULT_PACING_DELAY,
        call_timeout: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.pacing_delay = pacing_delay
        self.call_timeout = call_timeout
        self._sleep = sleep

    async def drain(
        self,
        items: Sequence[T],
        execute: Callable[[T], Awaitable[Any]],
        on_success: Callable[[T, Any], None],
        on_error: Callable[[T, str], None],
        on_cancel: Callable[[T, str], None],
        signals: BatchSignals,
        label: Callable[[T], str] = str,
    ) -> None:
        """
        Run ``items`` in order until done, stopped, or quota-aborted.

        Args:
            items: Ordered work items
            execute: Calls the generation service for one item
            on_success: Records a payload for an item
            on_error: Records a failure message for an item
            on_cancel: Records a cancellation reason for an item
            signals: Stop and quota flags for this batch
            label: Names an item in log messages
        """
        total = len(items)

        for position, item in enumerate(items):
            if signals.stopping:
                logger.info(f"Batch stopped by user; cancelling {total - position} remaining task(s)")
                self._cancel_all(items[position:], on_cancel, USER_STOPPED_REASON)
                return

            logger.info(f"Generating {position + 1}/{total}: {label(item)}")

            try:
                payload = await self._call(execute, item)
            except Exception as e:
                message = error_message(e)
                logger.warning(f"Task {label(item)} failed: {redact_api_key(message)}")
                on_error(item, message)

                if is_quota_message(message):
                    remaining = items[position + 1:]
                    logger.error(
                        f"Quota exhausted; aborting batch and cancelling {len(remaining)} remaining task(s)"
                    )
                    signals.mark_quota_exceeded()
                    self._cancel_all(remaining, on_cancel, QUOTA_CANCELLED_REASON)
                    return
            else:
                on_success(item, payload)

            if position < total - 1:
                await self._sleep(self.pacing_delay)

    async def _call(self, execute: Callable[[T], Awaitable[Any]], item: T) -> Any:
        if self.call_timeout is None:
            return await execute(item)
        try:
            return await asyncio.wait_for(execute(item), timeout=self.call_timeout)
        except asyncio.TimeoutError:
            raise GenerationTimeoutError(
                f"Generation timed out after {self.call_timeout:g} seconds",
                timeout_seconds=self.call_timeout,
            ) from None

    @staticmethod
    def _cancel_all(items: Sequence[T], on_cancel: Callable[[T, str], None], reason: str) -> None:
        for item in items:
            on_cancel(item, reason)


class GenerationRunner:
    """
    Runs batches of GenerationTask into a ResultLedger.

    Usage:
        runner = GenerationRunner(SequentialDrain(pacing_delay=2.5))
        await runner.run(tasks, studio.images, execute, studio.signals, "Alex")
    """

    def __init__(self, drain: Optional[SequentialDrain] = None):
        self.drain = drain or SequentialDrain()

    async def run(
        self,
        tasks: Sequence[GenerationTask],
        ledger: ResultLedger,
        execute: Callable[[GenerationTask], Awaitable[str]],
        signals: BatchSignals,
        generated_by: Optional[str] = None,
    ) -> None:
        """
        Execute ``tasks`` in order, keeping ``ledger`` current after each one.

        Args:
            tasks: Ordered batch; an empty batch is a no-op
            ledger: Ledger receiving placeholders and outcomes
            execute: Produces the image payload for one task
            signals: Stop and quota flags
            generated_by: Attribution recorded on successful images
        """
        if not tasks:
            return

        signals.reset_stop()
        signals.clear_error()

        # Observers see the whole batch pending before the first call
        for task in tasks:
            ledger.seed(task.target_image_id, task.prompt_id)

        logger.info(f"Starting batch of {len(tasks)} generation task(s)")

        try:
            await self.drain.drain(
                tasks,
                execute,
                on_success=lambda task, url: ledger.mark_success(task.target_image_id, url, generated_by),
                on_error=lambda task, message: ledger.mark_error(task.target_image_id, message),
                on_cancel=lambda task, reason: ledger.mark_cancelled(task.target_image_id, reason),
                signals=signals,
                label=lambda task: task.target_image_id,
            )
        finally:
            # Nothing is left generating if the batch is torn down early
            for task in tasks:
                ledger.mark_cancelled(task.target_image_id, INTERRUPTED_REASON)
            signals.reset_stop()

        outcomes = [ledger.get(task.target_image_id) for task in tasks]
        summary = Counter(result.status.value for result in outcomes if result is not None)
        logger.info(f"Batch finished: {dict(summary)}")
