"""
Security Utilities
==================

Filename sanitization and secret redaction for logs.
"""

import re
import logging
import unicodedata

logger = logging.getLogger(__name__)

# Letters NFKD leaves intact
_UNFOLDABLE = str.maketrans({"đ": "d", "Đ": "D", "ø": "o", "Ø": "O", "ß": "ss"})
_SEPARATORS = re.compile(r"(?:[^A-Za-z0-9.-]|\.{2,})+")
_EXTENSION = re.compile(r"[A-Za-z0-9]{1,10}")


def sanitize_filename(filename: str, fallback: str = "untitled", max_length: int = 120) -> str:
    """
    Turn a free-form project or member name into a portable filename.

    Accented letters are folded to ASCII ("Tập 1" becomes "Tap_1"), path
    separators and other symbols collapse into single underscores, and the
    extension survives truncation.

    Args:
        filename: Name to clean, optionally with an extension
        fallback: Result when nothing usable is left
        max_length: Maximum length including the extension
    """
    folded = unicodedata.normalize("NFKD", (filename or "").translate(_UNFOLDABLE))
    ascii_name = folded.encode("ascii", "ignore").decode("ascii")

    stem, dot, extension = ascii_name.rpartition(".")
    if not dot or not _EXTENSION.fullmatch(extension):
        stem, extension = ascii_name, ""

    stem = _SEPARATORS.sub("_", stem).strip("_.-")
    if not stem:
        return fallback

    extension = f".{extension.lower()}" if extension else ""
    stem = stem[:max(1, max_length - len(extension))].rstrip("_.-") or fallback
    return stem + extension


def redact_api_key(text: str) -> str:
    """
    Redact API keys and sensitive tokens from text.

    Args:
        text: Text that might contain API keys

    Returns:
        Text with API keys redacted
    """
    if not text:
        return text

    patterns = [
        (r"Bearer\s+[A-Za-z0-9_\-\.]+", "Bearer ***REDACTED***"),
        # Google API keys
        (r"AIza[A-Za-z0-9_\-]{35}", "AIza***REDACTED***"),
        (r"([?&]key=)[^&\s]+", r"\1***REDACTED***"),
        (r"(GEMINI_API_KEY|GOOGLE_API_KEY|API_KEY)=[^\s]+", r"\1=***REDACTED***"),
    ]

    result = text
    for pattern, replacement in patterns:
        result = re.sub(pattern, replacement, result)

    return result
