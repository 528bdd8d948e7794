"""
Storage Utilities
=================

Project file persistence. Projects are JSON documents, gzip-compressed on
save; plain JSON files are accepted on load.
"""

import gzip
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Union

from ..core.exceptions import ValidationError
from ..core.security import sanitize_filename

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
PROJECT_SUFFIX = ".tmproj"


def save_project(
    state: Dict[str, Any],
    output_path: Union[str, Path],
) -> str:
    """
    Save a project document.

    Args:
        state: Project document (``metadata`` and ``app_state``)
        output_path: Path to save the project

    Returns:
        Path to saved project
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    payload = json.dumps(state, ensure_ascii=False, default=str).encode("utf-8")
    with gzip.open(output_path, "wb") as f:
        f.write(payload)

    logger.info(f"Project saved to {output_path}")
    return str(output_path)


def load_project(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a project document.

    The application state is unwrapped from ``app_state`` (or the legacy
    ``appState``); a bare state document is accepted as is.

    Args:
        path: Path to a project file

    Returns:
        Dictionary with ``metadata`` and ``app_state`` keys

    Raises:
        ValidationError: If the file is missing, unreadable or not a project
    """
    path = Path(path)

    if not path.exists():
        raise ValidationError(f"Project file not found: {path}", field="path", value=str(path))

    raw = path.read_bytes()
    try:
        if raw[:2] == GZIP_MAGIC:
            raw = gzip.decompress(raw)
        document = json.loads(raw.decode("utf-8"))
    except (OSError, EOFError, UnicodeDecodeError, ValueError) as e:
        raise ValidationError(f"Cannot read project file {path.name}: {e}", field="path", value=str(path))

    if not isinstance(document, dict):
        raise ValidationError("Invalid project file", field="path", value=str(path))

    state = document.get("app_state") or document.get("appState") or document
    if not isinstance(state, dict) or not (
        state.get("script") or state.get("current_step") or state.get("currentStep")
    ):
        raise ValidationError(
            "Invalid project file: no script or step found",
            field="app_state",
            constraint="script or current_step required",
        )

    logger.info(f"Project loaded from {path}")
    return {"metadata": document.get("metadata") or {}, "app_state": state}


def project_filename(prefix: str = "series-project", suffix: str = PROJECT_SUFFIX) -> str:
    """
    Generate a timestamped project filename.

    Args:
        prefix: Filename prefix
        suffix: File extension

    Returns:
        Sanitized filename
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return sanitize_filename(f"{prefix}_{timestamp}{suffix}")
