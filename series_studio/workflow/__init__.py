"""
Workflow Module
===============

Sequential batch generation and the session facade:
- ResultLedger: authoritative image results by id
- Task compilers: intents expanded into ordered GenerationTasks
- GenerationRunner / CharacterPreviewRunner: paced, cancellable, quota-aware loops
- SeriesStudio: one project's state and intents
"""

from .ledger import ResultLedger
from .signals import (
    BatchSignals,
    INTERRUPTED_REASON,
    QUOTA_ADVISORY,
    QUOTA_CANCELLED_REASON,
    USER_STOPPED_REASON,
)
from .tasks import (
    GenerationTask,
    compile_series,
    compile_prompt,
    compile_prompt_by_id,
    compile_single,
    compile_retry,
    compile_thumbnails,
)
from .runner import GenerationRunner, SequentialDrain
from .characters import CharacterPreviewRunner
from .studio import SeriesStudio

__all__ = [
    "ResultLedger",
    "BatchSignals",
    "INTERRUPTED_REASON",
    "QUOTA_ADVISORY",
    "QUOTA_CANCELLED_REASON",
    "USER_STOPPED_REASON",
    "GenerationTask",
    "compile_series",
    "compile_prompt",
    "compile_prompt_by_id",
    "compile_single",
    "compile_retry",
    "compile_thumbnails",
    "GenerationRunner",
    "SequentialDrain",
    "CharacterPreviewRunner",
    "SeriesStudio",
]
